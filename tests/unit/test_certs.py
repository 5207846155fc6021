"""Certificate parsing and validation tests."""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import make_pem_pair

from certflow.errors import CertificateExpired, CertificateInvalid
from certflow.models import Certificate, CertificateSource
from certflow.utils import certs


def test_parse_certificate_and_derive_fields(valid_pem):
    cert_pem, key_pem = valid_pem
    certificate = Certificate.from_pem(CertificateSource.UPLOADED, cert_pem, key_pem)

    assert certificate.source == CertificateSource.UPLOADED
    assert certificate.subject_alt_names == ["example.com", "*.example.com"]
    assert certificate.issuer == "Certflow Test CA"
    assert certificate.key_algorithm == "RSA2048"
    assert len(certificate.fingerprint_sha256) == 64
    assert certificate.expire_at > datetime.now(timezone.utc) + timedelta(days=29)
    assert not certificate.is_expired()


def test_parse_rejects_garbage():
    with pytest.raises(CertificateInvalid):
        certs.parse_certificate_from_pem("-----BEGIN CERTIFICATE-----\nnope\n-----END CERTIFICATE-----")
    with pytest.raises(CertificateInvalid):
        certs.parse_certificate_from_pem("")


def test_parse_takes_leaf_of_chain(valid_pem):
    leaf_pem, _ = valid_pem
    other_pem, _ = make_pem_pair(common_name="ca.example.net", sans=("ca.example.net",))
    cert = certs.parse_certificate_from_pem(leaf_pem + other_pem)
    assert certs.subject_alt_names(cert) == ["example.com", "*.example.com"]


def test_expired_certificate_is_rejected(expired_pem):
    cert = certs.parse_certificate_from_pem(expired_pem[0])
    with pytest.raises(CertificateExpired):
        certs.ensure_not_expired(cert)


def test_expiry_uses_supplied_clock(valid_pem):
    cert = certs.parse_certificate_from_pem(valid_pem[0])
    certs.ensure_not_expired(cert, now=datetime.now(timezone.utc) + timedelta(days=29))
    with pytest.raises(CertificateExpired):
        certs.ensure_not_expired(cert, now=datetime.now(timezone.utc) + timedelta(days=31))


def test_mismatched_private_key_is_rejected(valid_pem):
    cert_pem, _ = valid_pem
    _, other_key = make_pem_pair()
    with pytest.raises(CertificateInvalid):
        Certificate.from_pem(CertificateSource.UPLOADED, cert_pem, other_key)


def test_invalid_private_key_is_rejected(valid_pem):
    with pytest.raises(CertificateInvalid):
        Certificate.from_pem(CertificateSource.UPLOADED, valid_pem[0], "not a key")
