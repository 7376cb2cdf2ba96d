from __future__ import annotations

import pytest
from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from galley_core.config import get_config
from galley_core.errors import CertificateError
from galley_core.pki import (
    CaSignedAuthority,
    SelfSignedAuthority,
    bundle_filename,
    bundle_url,
    certificate_serial,
    generate_ca,
    load_authority,
    render_qr_png,
)


def _load(pem: str) -> x509.Certificate:
    return x509.load_pem_x509_certificate(pem.encode("utf-8"))


@pytest.mark.core
def test_self_signed_certificate_profile(authority):
    issued = authority.issue_certificate("device-42")
    cert = _load(issued.certificate_pem)

    cn = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
    org = cert.subject.get_attributes_for_oid(NameOID.ORGANIZATION_NAME)[0].value
    assert cn == "device-device-42"
    assert org == "Galley"
    assert cert.issuer == cert.subject
    assert str(cert.serial_number) == issued.serial

    key_usage = cert.extensions.get_extension_for_class(x509.KeyUsage)
    assert key_usage.critical is True
    assert key_usage.value.digital_signature is True
    assert key_usage.value.key_encipherment is True
    eku = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    assert ExtendedKeyUsageOID.CLIENT_AUTH in eku
    basic = cert.extensions.get_extension_for_class(x509.BasicConstraints).value
    assert basic.ca is False

    lifetime = cert.not_valid_after_utc - cert.not_valid_before_utc
    assert lifetime.days == 365
    assert "BEGIN RSA PRIVATE KEY" in issued.private_key_pem
    assert authority.ca_certificate_pem(issued.certificate_pem) == issued.certificate_pem


@pytest.mark.core
def test_serials_are_unique(authority):
    first = authority.issue_certificate("device-1")
    second = authority.issue_certificate("device-1")
    assert first.serial != second.serial
    assert certificate_serial(first.certificate_pem) == first.serial


@pytest.mark.core
def test_ca_signed_authority_uses_configured_issuer():
    ca_cert_pem, ca_key_pem = generate_ca(
        common_name="Galley Test CA", organization="Galley", validity_days=30
    )
    authority = CaSignedAuthority(
        ca_cert_pem=ca_cert_pem,
        ca_key_pem=ca_key_pem,
        organization="Galley",
        validity_days=90,
    )
    issued = authority.issue_certificate("device-7")
    cert = _load(issued.certificate_pem)
    ca_cert = _load(ca_cert_pem)

    assert cert.issuer == ca_cert.subject
    cert.verify_directly_issued_by(ca_cert)
    assert authority.ca_certificate_pem(issued.certificate_pem) == ca_cert_pem


@pytest.mark.core
def test_ca_signed_authority_rejects_bad_key():
    ca_cert_pem, _ = generate_ca(common_name="CA", organization="Galley")
    with pytest.raises(CertificateError):
        CaSignedAuthority(
            ca_cert_pem=ca_cert_pem,
            ca_key_pem="not a key",
            organization="Galley",
            validity_days=30,
        )


@pytest.mark.core
def test_load_authority_follows_config(monkeypatch):
    assert isinstance(load_authority(get_config()), SelfSignedAuthority)

    ca_cert_pem, ca_key_pem = generate_ca(common_name="CA", organization="Galley")
    monkeypatch.setenv("CA_CERT_PEM", ca_cert_pem.replace("\n", "\\n"))
    monkeypatch.setenv("CA_KEY_PEM", ca_key_pem.replace("\n", "\\n"))
    get_config.cache_clear()
    assert isinstance(load_authority(get_config()), CaSignedAuthority)


@pytest.mark.core
def test_certificate_serial_rejects_garbage():
    with pytest.raises(CertificateError):
        certificate_serial("-----BEGIN CERTIFICATE-----\nnope\n")


@pytest.mark.core
def test_bundle_link_and_qr_png():
    config = get_config()
    assert bundle_url(config, "abc") == (
        "https://galley.test/api/v1/devices/abc/provisioning-bundle"
    )
    assert bundle_filename("abc") == "device-provisioning-abc.json"

    png = render_qr_png(bundle_url(config, "abc"))
    assert png.startswith(b"\x89PNG\r\n\x1a\n")
