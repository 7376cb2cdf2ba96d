from __future__ import annotations

import secrets

from galley_core.auth.types import OperatorContext
from galley_core.errors import AuthError


def authorize_operator(
    *,
    raw_key: str | None,
    expected_key: str | None,
    require: bool = True,
) -> OperatorContext | None:
    if not require and not expected_key:
        return None
    if not raw_key:
        if require:
            raise AuthError("API key required")
        return None
    if not expected_key or not secrets.compare_digest(raw_key, expected_key):
        raise AuthError("Unauthorized")
    return OperatorContext(actor_id="operator")
