from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import jwt

from galley_core.errors import AuthError
from galley_core.fleet.types import DeviceRecord
from galley_core.timestamps import utc_now

ALGORITHM = "HS256"
TOKEN_TYPE = "device"


def issue_device_token(
    device: DeviceRecord,
    *,
    secret: str,
    ttl_seconds: int,
    now: datetime | None = None,
) -> str:
    issued_at = now or utc_now()
    claims: dict[str, object] = {
        "sub": device.id,
        "typ": TOKEN_TYPE,
        "tenant_id": device.tenant_id,
        "site_id": device.site_id,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + timedelta(seconds=ttl_seconds)).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode_device_token(token: str, *, secret: str) -> dict[str, Any]:
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as exc:
        raise AuthError("Invalid device token") from exc
    if claims.get("typ", TOKEN_TYPE) != TOKEN_TYPE:
        raise AuthError("Invalid device token")
    return claims


def bearer_token(header_value: str | None) -> str | None:
    if not header_value:
        return None
    scheme, _, token = header_value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
