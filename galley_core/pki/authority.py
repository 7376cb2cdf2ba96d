"""Device certificate issuance.

Two signers share one interface: a self-signed authority for simple
deployments and a CA-signed authority that signs with a configured CA key.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from galley_core.config import Config
from galley_core.errors import CertificateError
from galley_core.logging import get_logger
from galley_core.timestamps import utc_now

logger = get_logger(__name__)

KEY_SIZE = 2048
SERIAL_BITS = 128


@dataclass(frozen=True)
class IssuedCertificate:
    certificate_pem: str
    private_key_pem: str
    serial: str
    not_before: datetime
    not_after: datetime


class CertificateAuthority:
    mode = "abstract"

    def __init__(self, *, organization: str, validity_days: int) -> None:
        self.organization = organization
        self.validity_days = validity_days

    def issue_certificate(self, device_id: str) -> IssuedCertificate:
        try:
            key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)
            serial = _random_serial()
            now = utc_now()
            not_after = now + timedelta(days=self.validity_days)
            subject = device_subject(device_id, self.organization)
            builder = (
                x509.CertificateBuilder()
                .subject_name(subject)
                .public_key(key.public_key())
                .serial_number(serial)
                .not_valid_before(now)
                .not_valid_after(not_after)
                .add_extension(
                    x509.KeyUsage(
                        digital_signature=True,
                        content_commitment=False,
                        key_encipherment=True,
                        data_encipherment=False,
                        key_agreement=False,
                        key_cert_sign=False,
                        crl_sign=False,
                        encipher_only=False,
                        decipher_only=False,
                    ),
                    critical=True,
                )
                .add_extension(
                    x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH]),
                    critical=False,
                )
                .add_extension(
                    x509.BasicConstraints(ca=False, path_length=None),
                    critical=True,
                )
            )
            certificate = self._sign(builder, subject, key)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise CertificateError(f"Failed to issue certificate: {exc}") from exc

        logger.info(
            "Device certificate issued",
            extra={"device_id": device_id, "certificate_serial": str(serial)},
        )
        return IssuedCertificate(
            certificate_pem=certificate.public_bytes(
                serialization.Encoding.PEM
            ).decode("ascii"),
            private_key_pem=key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            ).decode("ascii"),
            serial=str(serial),
            not_before=now,
            not_after=not_after,
        )

    def verify_client_certificate(
        self,
        certificate_pem: str,
        *,
        expected_pem: str | None,
    ) -> x509.Certificate:
        """Check a presented client certificate before trusting its serial.

        ``expected_pem`` is the certificate currently stored for the device the
        serial resolved to.
        """
        certificate = _load_certificate(certificate_pem)
        now = utc_now()
        if not (
            certificate.not_valid_before_utc <= now <= certificate.not_valid_after_utc
        ):
            raise CertificateError("Client certificate is outside its validity period")
        try:
            usage = certificate.extensions.get_extension_for_class(
                x509.ExtendedKeyUsage
            ).value
        except x509.ExtensionNotFound as exc:
            raise CertificateError("Client certificate has no extended key usage") from exc
        if ExtendedKeyUsageOID.CLIENT_AUTH not in usage:
            raise CertificateError("Client certificate is not valid for client auth")
        self._check_trust(certificate, expected_pem)
        return certificate

    def ca_certificate_pem(self, device_certificate_pem: str) -> str:
        raise NotImplementedError

    def _check_trust(
        self,
        certificate: x509.Certificate,
        expected_pem: str | None,
    ) -> None:
        raise NotImplementedError

    def _sign(
        self,
        builder: x509.CertificateBuilder,
        subject: x509.Name,
        key: rsa.RSAPrivateKey,
    ) -> x509.Certificate:
        raise NotImplementedError


class SelfSignedAuthority(CertificateAuthority):
    mode = "self_signed"

    def ca_certificate_pem(self, device_certificate_pem: str) -> str:
        # The device certificate is its own trust anchor.
        return device_certificate_pem

    def _sign(
        self,
        builder: x509.CertificateBuilder,
        subject: x509.Name,
        key: rsa.RSAPrivateKey,
    ) -> x509.Certificate:
        return builder.issuer_name(subject).sign(key, hashes.SHA256())

    def _check_trust(
        self,
        certificate: x509.Certificate,
        expected_pem: str | None,
    ) -> None:
        # No issuer to chain to: only the exact certificate handed out counts.
        if not expected_pem:
            raise CertificateError("Device has no issued certificate")
        expected = _load_certificate(expected_pem)
        encoding = serialization.Encoding.DER
        if certificate.public_bytes(encoding) != expected.public_bytes(encoding):
            raise CertificateError("Client certificate does not match the issued one")


class CaSignedAuthority(CertificateAuthority):
    mode = "ca_signed"

    def __init__(
        self,
        *,
        ca_cert_pem: str,
        ca_key_pem: str,
        organization: str,
        validity_days: int,
    ) -> None:
        super().__init__(organization=organization, validity_days=validity_days)
        try:
            self._ca_cert = x509.load_pem_x509_certificate(ca_cert_pem.encode("utf-8"))
        except ValueError as exc:
            raise CertificateError("Failed to parse CA certificate") from exc
        try:
            # Accepts both PKCS#1 and PKCS#8 encodings.
            ca_key = serialization.load_pem_private_key(
                ca_key_pem.encode("utf-8"),
                password=None,
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise CertificateError("Failed to parse CA private key") from exc
        if not isinstance(ca_key, rsa.RSAPrivateKey):
            raise CertificateError("CA private key must be an RSA key")
        self._ca_key = ca_key
        self._ca_cert_pem = self._ca_cert.public_bytes(
            serialization.Encoding.PEM
        ).decode("ascii")

    def ca_certificate_pem(self, device_certificate_pem: str) -> str:
        return self._ca_cert_pem

    def _sign(
        self,
        builder: x509.CertificateBuilder,
        subject: x509.Name,
        key: rsa.RSAPrivateKey,
    ) -> x509.Certificate:
        return builder.issuer_name(self._ca_cert.subject).sign(
            self._ca_key, hashes.SHA256()
        )

    def _check_trust(
        self,
        certificate: x509.Certificate,
        expected_pem: str | None,
    ) -> None:
        if certificate.issuer != self._ca_cert.subject:
            raise CertificateError("Client certificate was not issued by this CA")
        hash_algorithm = certificate.signature_hash_algorithm
        if hash_algorithm is None:
            raise CertificateError("Client certificate signature is not supported")
        try:
            self._ca_cert.public_key().verify(
                certificate.signature,
                certificate.tbs_certificate_bytes,
                padding.PKCS1v15(),
                hash_algorithm,
            )
        except (InvalidSignature, ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise CertificateError("Client certificate signature is invalid") from exc


def device_subject(device_id: str, organization: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, f"device-{device_id}"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
        ]
    )


def load_authority(config: Config) -> CertificateAuthority:
    if config.uses_ca():
        return CaSignedAuthority(
            ca_cert_pem=config.ca_cert_pem or "",
            ca_key_pem=config.ca_key_pem or "",
            organization=config.cert_organization,
            validity_days=config.cert_validity_days,
        )
    return SelfSignedAuthority(
        organization=config.cert_organization,
        validity_days=config.cert_validity_days,
    )


def generate_ca(
    *,
    common_name: str,
    organization: str,
    validity_days: int = 3650,
) -> tuple[str, str]:
    """Create a root CA certificate and key, returned as PEM strings."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=4096)
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
        ]
    )
    now = utc_now()
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(_random_serial())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=validity_days))
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .sign(key, hashes.SHA256())
    )
    cert_pem = certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    return cert_pem, key_pem


def certificate_serial(certificate_pem: str) -> str:
    return str(_load_certificate(certificate_pem).serial_number)


def _load_certificate(certificate_pem: str) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(certificate_pem.encode("utf-8"))
    except ValueError as exc:
        raise CertificateError("Failed to parse certificate") from exc


def _random_serial() -> int:
    serial = 0
    while serial == 0:
        serial = secrets.randbits(SERIAL_BITS)
    return serial
