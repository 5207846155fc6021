from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from certflow.models import NodeType, WorkflowNode, WorkflowNodeIO


def make_pem_pair(
    common_name: str = "example.com",
    days_valid: int = 30,
    days_since_issue: int = 1,
    sans: tuple[str, ...] = ("example.com", "*.example.com"),
) -> tuple[str, str]:
    """Self-signed certificate valid from ``days_since_issue`` days ago."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    now = datetime.now(timezone.utc)
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Certflow Test CA"),
        ]
    )
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=days_since_issue))
        .not_valid_after(now + timedelta(days=days_valid))
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(s) for s in sans]), critical=False
        )
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode()
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    return cert_pem, key_pem


@pytest.fixture
def valid_pem():
    return make_pem_pair(days_valid=30)


@pytest.fixture
def expired_pem():
    return make_pem_pair(days_valid=-1, days_since_issue=90)


def certificate_slot() -> WorkflowNodeIO:
    return WorkflowNodeIO(name="certificate", type="certificate", required=True)


def upload_node(cert_pem: str, key_pem: str, node_id: str = "upload-1") -> WorkflowNode:
    return WorkflowNode(
        id=node_id,
        name="Upload certificate",
        type=NodeType.UPLOAD,
        config={"certificate": cert_pem, "private_key": key_pem},
        outputs=[certificate_slot()],
    )
