from galley_core.auth.device import resolve_device_identity
from galley_core.auth.operator import authorize_operator
from galley_core.auth.tokens import (
    bearer_token,
    decode_device_token,
    issue_device_token,
)
from galley_core.auth.types import DeviceIdentity, OperatorContext

__all__ = [
    "DeviceIdentity",
    "OperatorContext",
    "authorize_operator",
    "bearer_token",
    "decode_device_token",
    "issue_device_token",
    "resolve_device_identity",
]
