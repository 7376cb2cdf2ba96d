from __future__ import annotations

from functools import lru_cache

from fastapi import Request

from galley_core.auth import (
    DeviceIdentity,
    OperatorContext,
    authorize_operator,
    resolve_device_identity,
)
from galley_core.config import Config, get_config
from galley_core.pki import CertificateAuthority, load_authority
from galley_core.stores import StoreBundle, get_store_bundle

API_PREFIX = "/api/v1"
DEVICE_PREFIX = f"{API_PREFIX}/device"


def get_stores() -> StoreBundle:
    return get_store_bundle(get_config().control_plane_root)


@lru_cache(maxsize=4)
def authority_for(config: Config) -> CertificateAuthority:
    return load_authority(config)


def get_authority() -> CertificateAuthority:
    return authority_for(get_config())


def device_identity(request: Request) -> DeviceIdentity:
    return resolve_device_identity(
        get_stores(),
        config=get_config(),
        authority=get_authority(),
        client_cert=request.headers.get("x-client-cert"),
        authorization=request.headers.get("authorization"),
        device_id_header=request.headers.get("x-device-id"),
    )


def authorize_operator_request(request: Request) -> OperatorContext | None:
    config = get_config()
    return authorize_operator(
        raw_key=request.headers.get("x-api-key"),
        expected_key=config.operator_api_key,
        require=not config.is_dev(),
    )


def correlation_of(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None) or request.headers.get(
        "x-correlation-id"
    )
