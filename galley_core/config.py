import os
from dataclasses import dataclass
from functools import lru_cache

import fsspec

DEV_ENVS = frozenset({"dev", "local", "test"})


@dataclass(frozen=True)
class Config:
    env: str
    log_level: str
    store_backend: str
    control_plane_root: str
    external_url: str
    cert_validity_days: int
    cert_organization: str
    ca_cert_pem: str | None
    ca_key_pem: str | None
    device_token_secret: str
    device_token_ttl_seconds: int
    recipe_poll_seconds: int
    order_poll_seconds: int
    order_lookahead_minutes: int
    heartbeat_retention_days: int
    offline_threshold_seconds: int
    default_order_priority: int
    operator_api_key: str | None

    def is_dev(self) -> bool:
        return self.env.lower() in DEV_ENVS

    def uses_ca(self) -> bool:
        return bool(self.ca_cert_pem and self.ca_key_pem)

    def api_base_url(self) -> str:
        return f"{self.external_url.rstrip('/')}/api/v1"

    @classmethod
    def from_env(cls) -> "Config":
        missing: list[str] = []

        def require(name: str) -> str:
            value = os.getenv(name)
            if value is None or value == "":
                missing.append(name)
                return ""
            return value

        store_backend = os.getenv("CONTROL_PLANE_STORE", "json").strip().lower()
        if store_backend not in {"json"}:
            raise ValueError("CONTROL_PLANE_STORE must be one of: json")

        env = os.getenv("ENV", "dev").strip().lower()
        log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        control_plane_root = require("CONTROL_PLANE_ROOT")
        external_url = os.getenv("EXTERNAL_URL", "https://galley.example.com")

        device_token_secret = os.getenv("DEVICE_TOKEN_SECRET", "")
        if not device_token_secret:
            if env in DEV_ENVS:
                device_token_secret = "dev-device-token-secret"
            else:
                missing.append("DEVICE_TOKEN_SECRET")

        ca_cert_pem = _read_pem("CA_CERT_PEM", "CA_CERT_PATH")
        ca_key_pem = _read_pem("CA_KEY_PEM", "CA_KEY_PATH")
        if bool(ca_cert_pem) != bool(ca_key_pem):
            raise ValueError("CA certificate and CA key must be configured together")

        if missing:
            missing_str = ", ".join(missing)
            raise ValueError(f"Missing required env vars: {missing_str}")

        return cls(
            env=env,
            log_level=log_level,
            store_backend=store_backend,
            control_plane_root=control_plane_root,
            external_url=external_url,
            cert_validity_days=_env_int("CERT_VALIDITY_DAYS", 365, minimum=1),
            cert_organization=os.getenv("CERT_ORGANIZATION", "Galley"),
            ca_cert_pem=ca_cert_pem,
            ca_key_pem=ca_key_pem,
            device_token_secret=device_token_secret,
            device_token_ttl_seconds=_env_int(
                "DEVICE_TOKEN_TTL_SECONDS", 900, minimum=1
            ),
            recipe_poll_seconds=_env_int("RECIPE_POLL_SECONDS", 300, minimum=1),
            order_poll_seconds=_env_int("ORDER_POLL_SECONDS", 30, minimum=1),
            order_lookahead_minutes=_env_int("ORDER_LOOKAHEAD_MINUTES", 60, minimum=0),
            heartbeat_retention_days=_env_int(
                "HEARTBEAT_RETENTION_DAYS", 7, minimum=1
            ),
            offline_threshold_seconds=_env_int(
                "OFFLINE_THRESHOLD_SECONDS", 120, minimum=1
            ),
            default_order_priority=_env_int("DEFAULT_ORDER_PRIORITY", 5),
            operator_api_key=os.getenv("OPERATOR_API_KEY") or None,
        )


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _read_pem(inline_name: str, path_name: str) -> str | None:
    inline = os.getenv(inline_name)
    if inline:
        return inline.replace("\\n", "\n")
    path = os.getenv(path_name)
    if not path:
        return None
    try:
        with fsspec.open(path, "rb") as handle:
            return handle.read().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ValueError(f"{path_name} could not be read: {path}") from exc


@lru_cache(maxsize=1)
def get_config() -> Config:
    return Config.from_env()
