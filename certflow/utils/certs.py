"""PEM parsing and certificate validation helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa
from cryptography.x509.oid import ExtensionOID, NameOID

from ..errors import CertificateExpired, CertificateInvalid


def parse_certificate_from_pem(cert_pem: str) -> x509.Certificate:
    """Return the leaf certificate of a PEM bundle.

    Raises:
        CertificateInvalid: If ``cert_pem`` holds no parseable certificate.
    """
    if not cert_pem or not cert_pem.strip():
        raise CertificateInvalid("certificate PEM is empty")
    try:
        chain = x509.load_pem_x509_certificates(cert_pem.strip().encode())
    except ValueError as e:
        raise CertificateInvalid(f"failed to parse certificate: {e}") from e
    return chain[0]


def parse_private_key_from_pem(key_pem: str, password: Optional[str] = None):
    """Load a PEM private key, raising ``CertificateInvalid`` on failure."""
    if not key_pem or not key_pem.strip():
        raise CertificateInvalid("private key PEM is empty")
    try:
        return serialization.load_pem_private_key(
            key_pem.strip().encode(),
            password=password.encode() if password else None,
        )
    except (ValueError, TypeError) as e:
        raise CertificateInvalid(f"failed to parse private key: {e}") from e


def ensure_not_expired(cert: x509.Certificate, now: Optional[datetime] = None) -> None:
    """Reject certificates whose ``notAfter`` is before ``now``."""
    now = now or datetime.now(timezone.utc)
    if now > cert.not_valid_after_utc:
        raise CertificateExpired(
            f"certificate expired at {cert.not_valid_after_utc.isoformat()}"
        )


def ensure_key_matches(cert: x509.Certificate, private_key) -> None:
    """Check that ``private_key`` is the counterpart of the certificate key."""
    fmt = serialization.PublicFormat.SubjectPublicKeyInfo
    enc = serialization.Encoding.DER
    if cert.public_key().public_bytes(enc, fmt) != private_key.public_key().public_bytes(
        enc, fmt
    ):
        raise CertificateInvalid("private key does not match certificate")


def fingerprint_sha256(cert: x509.Certificate) -> str:
    return cert.fingerprint(hashes.SHA256()).hex()


def subject_alt_names(cert: x509.Certificate) -> list[str]:
    """DNS names from the SAN extension, falling back to the subject CN."""
    try:
        ext = cert.extensions.get_extension_for_oid(
            ExtensionOID.SUBJECT_ALTERNATIVE_NAME
        )
        names = ext.value.get_values_for_type(x509.DNSName)
    except x509.ExtensionNotFound:
        names = []
    if not names:
        names = [
            attr.value
            for attr in cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        ]
    return [str(n) for n in names]


def issuer_name(cert: x509.Certificate) -> str:
    attrs = cert.issuer.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)
    if not attrs:
        attrs = cert.issuer.get_attributes_for_oid(NameOID.COMMON_NAME)
    return str(attrs[0].value) if attrs else ""


def key_algorithm(cert: x509.Certificate) -> str:
    """Short label such as ``RSA2048`` or ``EC256``."""
    key = cert.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        return f"RSA{key.key_size}"
    if isinstance(key, ec.EllipticCurvePublicKey):
        return f"EC{key.curve.key_size}"
    if isinstance(key, ed25519.Ed25519PublicKey):
        return "ED25519"
    if isinstance(key, ed448.Ed448PublicKey):
        return "ED448"
    return ""
