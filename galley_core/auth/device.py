"""Device identity resolution for device-facing endpoints.

Order of precedence: client certificate forwarded by the TLS terminator
(checked against the issuing authority before its serial is trusted),
bearer token signed with the shared secret, then (dev/test only) a plain
device-id header.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import unquote

from galley_core.auth.tokens import bearer_token, decode_device_token
from galley_core.auth.types import (
    METHOD_BEARER,
    METHOD_CLIENT_CERT,
    METHOD_DEV_HEADER,
    DeviceIdentity,
)
from galley_core.config import Config
from galley_core.errors import AuthError, CertificateError, ForbiddenError
from galley_core.fleet.types import STATUS_DEACTIVATED, DeviceRecord
from galley_core.pki.authority import (
    CertificateAuthority,
    certificate_serial,
    load_authority,
)

if TYPE_CHECKING:
    from galley_core.stores import StoreBundle


def resolve_device_identity(
    stores: StoreBundle,
    *,
    config: Config,
    authority: CertificateAuthority | None = None,
    client_cert: str | None = None,
    authorization: str | None = None,
    device_id_header: str | None = None,
) -> DeviceIdentity:
    if client_cert:
        presented = unquote(client_cert)
        try:
            serial = certificate_serial(presented)
        except CertificateError as exc:
            raise AuthError("Invalid client certificate") from exc
        device = stores.fleet.find_device_by_serial(serial)
        if device is None:
            raise AuthError("Unknown client certificate")
        authority = authority or load_authority(config)
        try:
            authority.verify_client_certificate(
                presented, expected_pem=device.certificate_pem
            )
        except CertificateError as exc:
            raise AuthError(f"Client certificate rejected: {exc}") from exc
        return _checked(device, METHOD_CLIENT_CERT)

    token = bearer_token(authorization)
    if token:
        claims = decode_device_token(token, secret=config.device_token_secret)
        device = stores.fleet.get_device(str(claims["sub"]))
        if device is None:
            raise AuthError("Unknown device")
        return _checked(device, METHOD_BEARER)

    if device_id_header and config.is_dev():
        device = stores.fleet.get_device(device_id_header.strip())
        if device is None:
            raise AuthError("Unknown device")
        return _checked(device, METHOD_DEV_HEADER)

    raise AuthError("Device credentials required")


def _checked(device: DeviceRecord, method: str) -> DeviceIdentity:
    if device.status == STATUS_DEACTIVATED:
        raise ForbiddenError("Device is deactivated")
    return DeviceIdentity(device=device, method=method)
