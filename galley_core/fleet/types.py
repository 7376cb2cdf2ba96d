from __future__ import annotations

from dataclasses import dataclass

STATUS_PENDING = "pending"
STATUS_PROVISIONED = "provisioned"
STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"
STATUS_MAINTENANCE = "maintenance"
STATUS_DEACTIVATED = "deactivated"

DEVICE_STATUSES = (
    STATUS_PENDING,
    STATUS_PROVISIONED,
    STATUS_ONLINE,
    STATUS_OFFLINE,
    STATUS_MAINTENANCE,
    STATUS_DEACTIVATED,
)
# Statuses a device may report about itself.
REPORTABLE_STATUSES = (STATUS_ONLINE, STATUS_OFFLINE, STATUS_MAINTENANCE)
# Statuses an operator may set directly.
OPERATOR_STATUSES = (STATUS_OFFLINE, STATUS_MAINTENANCE)
STATUS_ALIASES = {"registered": STATUS_ONLINE}
DELETABLE_STATUSES = (STATUS_PENDING, STATUS_DEACTIVATED)


@dataclass(frozen=True)
class DeviceRecord:
    id: str
    tenant_id: str
    region_id: str
    site_id: str
    name: str
    version: str | None
    status: str
    last_heartbeat: str | None
    kitchens: tuple[str, ...]
    certificate_pem: str | None
    private_key_pem: str | None
    certificate_serial: str | None
    certificate_expiry: str | None
    registered_at: str | None
    created_at: str
    updated_at: str

    def has_certificate(self) -> bool:
        return bool(self.certificate_pem)


@dataclass(frozen=True)
class HeartbeatRecord:
    id: str
    device_id: str
    received_at: str
    status: str
    version: str | None
    metrics: dict[str, object] | None
    active_order_count: int
    expires_at: str
