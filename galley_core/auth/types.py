from __future__ import annotations

from dataclasses import dataclass

from galley_core.fleet.types import DeviceRecord

METHOD_CLIENT_CERT = "client_cert"
METHOD_BEARER = "bearer"
METHOD_DEV_HEADER = "dev_header"


@dataclass(frozen=True)
class DeviceIdentity:
    device: DeviceRecord
    method: str


@dataclass(frozen=True)
class OperatorContext:
    actor_id: str
    actor_type: str = "api_key"
