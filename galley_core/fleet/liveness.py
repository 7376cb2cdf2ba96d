from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from galley_core.fleet.registry import get_device, normalize_status, touch_device
from galley_core.fleet.store import new_heartbeat
from galley_core.fleet.types import REPORTABLE_STATUSES, DeviceRecord
from galley_core.logging import get_logger
from galley_core.orders.service import reset_orphaned_orders
from galley_core.timestamps import utc_now

if TYPE_CHECKING:
    from galley_core.stores import StoreBundle

logger = get_logger(__name__)


@dataclass(frozen=True)
class HeartbeatResult:
    device: DeviceRecord
    orders_reset: int


def record_heartbeat(
    stores: StoreBundle,
    device_id: str,
    *,
    status: str,
    version: str | None = None,
    metrics: dict[str, object] | None = None,
    active_orders: Iterable[str] | None = None,
    retention_days: int = 7,
) -> HeartbeatResult:
    """Record a heartbeat and reconcile the site's in-flight orders.

    Reconciliation problems are logged and reported as zero resets; the
    heartbeat itself only fails if the device is unknown or its own writes
    fail.
    """
    reported = normalize_status(status, REPORTABLE_STATUSES)
    device = get_device(stores, device_id)
    active = [str(order_id) for order_id in active_orders or ()]
    received_at = utc_now()

    stores.fleet.append_heartbeat(
        new_heartbeat(
            device_id=device.id,
            status=reported,
            version=version,
            metrics=metrics,
            active_order_count=len(active),
            retention_days=retention_days,
            received_at=received_at,
        ),
        now=received_at,
    )
    device = touch_device(
        stores,
        device,
        status=reported,
        version=version,
        received_at=received_at,
    )

    orders_reset = 0
    try:
        orders_reset = reset_orphaned_orders(stores, device.site_id, active)
    except Exception as exc:
        logger.warning(
            "Order reconciliation failed",
            extra={
                "device_id": device.id,
                "site_id": device.site_id,
                "error_code": getattr(exc, "code", None),
                "error_message": str(exc),
            },
        )
    return HeartbeatResult(device=device, orders_reset=orders_reset)
