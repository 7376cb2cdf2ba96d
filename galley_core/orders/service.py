"""Order synchronization between the control plane and site devices.

Devices pull pending work, push status reports, and declare their active
order set on every heartbeat so lost in-flight work returns to pending.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Iterable, Sequence

from galley_core.errors import ConflictError, NotFoundError, ValidationError
from galley_core.logging import get_logger
from galley_core.orders.types import (
    CANCELLABLE_STATUSES,
    DEFAULT_BATCH_PERCENTAGE,
    DEVICE_REPORTABLE_STATUSES,
    ORDER_CANCELLED,
    ORDER_PENDING,
    ORDER_SOURCES,
    ORDER_STATUSES,
    PULLABLE_STATUSES,
    SOURCE_API,
    SOURCE_DEVICE_LOCAL,
    SYNC_PENDING,
    SYNC_SYNCED,
    SYNC_UPDATED,
    UPDATABLE_STATUSES,
    BatchItem,
    DeviceReport,
    Equipment,
    Modification,
    OrderRecord,
    OrderTask,
)
from galley_core.recipes.types import RecipeRecord
from galley_core.tenancy.scope import resolve_site_scope
from galley_core.timestamps import parse_timestamp, to_iso, utc_now

if TYPE_CHECKING:
    from galley_core.fleet.types import DeviceRecord
    from galley_core.stores import StoreBundle

logger = get_logger(__name__)

DEFAULT_PRIORITY = 5
DEFAULT_LOOKAHEAD_MINUTES = 60


@dataclass(frozen=True)
class DeviceLocalOrder:
    """An order created on the device's own UI and reported upstream."""

    device_order_id: str
    recipe_id: str
    recipe_name: str | None = None
    order_reference: str | None = None
    kitchen_id: str | None = None
    customer_name: str | None = None
    batch_percentage: int = DEFAULT_BATCH_PERCENTAGE
    modifications: tuple[Modification, ...] = ()
    priority: int | None = None
    execution_time: str | None = None
    special_instructions: str | None = None
    status: str = ORDER_PENDING
    started_at: str | None = None
    completed_at: str | None = None
    tasks: tuple[OrderTask, ...] = ()
    equipment: Equipment | None = None


def create_batch(
    stores: StoreBundle,
    *,
    tenant_id: str,
    region_id: str,
    site_id: str,
    order_reference: str,
    items: Sequence[BatchItem],
    customer_name: str | None = None,
    priority: int | None = None,
    execution_time: datetime | str | None = None,
    special_instructions: str | None = None,
    source: str | None = None,
    metadata: dict[str, object] | None = None,
    default_priority: int = DEFAULT_PRIORITY,
) -> list[OrderRecord]:
    """Expand a multi-item request into individually tracked orders."""
    reference = order_reference.strip()
    if not reference:
        raise ValidationError("order_reference is required")
    if not items:
        raise ValidationError("At least one item is required")
    source = (source or SOURCE_API).strip().lower()
    if source not in ORDER_SOURCES or source == SOURCE_DEVICE_LOCAL:
        raise ValidationError(f"Invalid order source: {source}")
    resolve_site_scope(
        stores.sites,
        site_id=site_id,
        tenant_id=tenant_id,
        region_id=region_id,
    )

    recipes: list[RecipeRecord] = []
    for item in items:
        if item.quantity < 1:
            raise ValidationError("Item quantity must be at least 1")
        _check_batch_percentage(item.batch_percentage)
        recipes.append(_published_recipe(stores, tenant_id, item.recipe_id))

    scheduled = _coerce_time(execution_time) or utc_now()
    group_id = str(uuid.uuid4())
    total = sum(item.quantity for item in items)
    orders: list[OrderRecord] = []
    ordinal = 0
    for item, recipe in zip(items, recipes):
        for _ in range(item.quantity):
            ordinal += 1
            now = utc_now().isoformat()
            order = OrderRecord(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                region_id=region_id,
                site_id=site_id,
                kitchen_id=None,
                order_reference=f"{reference}-{ordinal}" if total > 1 else reference,
                group_id=group_id,
                customer_name=customer_name,
                metadata=metadata,
                recipe_id=recipe.id,
                recipe_name=recipe.name,
                batch_percentage=item.batch_percentage,
                modifications=tuple(item.modifications),
                special_instructions=special_instructions,
                source=source,
                status=ORDER_PENDING,
                priority=default_priority if priority is None else priority,
                execution_time=scheduled.isoformat(),
                started_at=None,
                completed_at=None,
                error_message=None,
                sync_status=SYNC_PENDING,
                synced_at=None,
                device_order_id=None,
                tasks=(),
                equipment=None,
                created_at=now,
                updated_at=now,
            )
            orders.append(stores.orders.insert_order(order))

    logger.info(
        "Order batch created",
        extra={
            "tenant_id": tenant_id,
            "site_id": site_id,
            "order_group_id": group_id,
            "order_count": len(orders),
        },
    )
    return orders


def get_order(
    stores: StoreBundle,
    order_id: str,
    *,
    tenant_id: str | None = None,
) -> OrderRecord:
    order = stores.orders.get_order(order_id)
    if order is None or (tenant_id and order.tenant_id != tenant_id):
        raise NotFoundError(f"Order not found: {order_id}")
    return order


def get_order_by_reference(
    stores: StoreBundle,
    *,
    tenant_id: str,
    order_reference: str,
) -> OrderRecord:
    order = stores.orders.find_order_by_reference(tenant_id, order_reference)
    if order is None:
        raise NotFoundError(f"Order not found: {order_reference}")
    return order


def get_orders_by_group(
    stores: StoreBundle,
    group_id: str,
    *,
    tenant_id: str | None = None,
) -> list[OrderRecord]:
    orders = [
        order
        for order in stores.orders.load_orders()
        if order.group_id == group_id
        and (not tenant_id or order.tenant_id == tenant_id)
    ]
    if not orders:
        raise NotFoundError(f"Order group not found: {group_id}")
    return sorted(orders, key=lambda order: (order.created_at, order.id))


def list_orders(
    stores: StoreBundle,
    *,
    tenant_id: str | None = None,
    site_id: str | None = None,
    status: str | None = None,
) -> list[OrderRecord]:
    if status and status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status: {status}")
    orders = [
        order
        for order in stores.orders.load_orders()
        if (not tenant_id or order.tenant_id == tenant_id)
        and (not site_id or order.site_id == site_id)
        and (not status or order.status == status)
    ]
    return sorted(orders, key=lambda order: order.created_at, reverse=True)


def pending_for_site(
    stores: StoreBundle,
    site_id: str,
    *,
    lookahead_minutes: int = DEFAULT_LOOKAHEAD_MINUTES,
    now: datetime | None = None,
) -> list[OrderRecord]:
    """Orders a site's device should see, in dispatch order."""
    horizon = (now or utc_now()) + timedelta(minutes=lookahead_minutes)
    candidates: list[tuple[OrderRecord, datetime]] = []
    for order in stores.orders.load_orders():
        if order.site_id != site_id or order.status not in PULLABLE_STATUSES:
            continue
        scheduled = parse_timestamp(order.execution_time)
        if scheduled is None or scheduled > horizon:
            continue
        candidates.append((order, scheduled))
    candidates.sort(
        key=lambda pair: (
            -pair[0].priority,
            pair[1],
            parse_timestamp(pair[0].created_at) or pair[1],
            pair[0].id,
        )
    )
    return [order for order, _ in candidates]


def apply_device_report(
    stores: StoreBundle,
    order_id: str,
    report: DeviceReport,
    *,
    device: DeviceRecord,
) -> OrderRecord:
    """Overwrite status, task tree and equipment from a device report."""
    if report.status not in DEVICE_REPORTABLE_STATUSES:
        raise ValidationError(f"Invalid order status: {report.status}")
    order = stores.orders.get_order(order_id)
    if order is None or order.site_id != device.site_id:
        raise NotFoundError(f"Order not found: {order_id}")
    if order.status == ORDER_CANCELLED:
        raise ConflictError("Order has been cancelled")
    now = utc_now().isoformat()
    updated = replace(
        order,
        status=report.status,
        device_order_id=report.device_order_id or order.device_order_id,
        kitchen_id=report.kitchen_id or order.kitchen_id,
        started_at=_report_time(report.started_at) or order.started_at,
        completed_at=_report_time(report.completed_at) or order.completed_at,
        error_message=report.error_message or order.error_message,
        tasks=tuple(report.tasks),
        equipment=report.equipment,
        sync_status=SYNC_SYNCED,
        synced_at=now,
        updated_at=now,
    )
    stores.orders.update_order(updated)
    logger.info(
        "Order status reported",
        extra={
            "order_id": order_id,
            "device_id": device.id,
            "site_id": device.site_id,
            "status": report.status,
        },
    )
    return updated


def reset_orphaned_orders(
    stores: StoreBundle,
    site_id: str,
    active_order_ids: Iterable[str],
) -> int:
    """Return active orders the device no longer knows about to pending."""
    declared = {str(order_id) for order_id in active_order_ids if order_id}
    orphaned = stores.orders.reset_orphaned_orders(
        site_id, declared, updated_at=utc_now().isoformat()
    )
    if not orphaned:
        return 0
    logger.warning(
        "Orphaned orders reset to pending",
        extra={"site_id": site_id, "orders_reset": len(orphaned)},
    )
    return len(orphaned)


def cancel_order(
    stores: StoreBundle,
    order_id: str,
    *,
    reason: str | None = None,
    tenant_id: str | None = None,
) -> OrderRecord:
    order = get_order(stores, order_id, tenant_id=tenant_id)
    if order.status not in CANCELLABLE_STATUSES:
        raise ConflictError(f"Cannot cancel order in status: {order.status}")
    updated = replace(
        order,
        status=ORDER_CANCELLED,
        error_message=reason or order.error_message,
        sync_status=_changed_sync_status(order),
        updated_at=utc_now().isoformat(),
    )
    stores.orders.update_order(updated)
    logger.info("Order cancelled", extra={"order_id": order_id})
    return updated


def update_order(
    stores: StoreBundle,
    order_id: str,
    *,
    priority: int | None = None,
    execution_time: datetime | str | None = None,
    special_instructions: str | None = None,
    tenant_id: str | None = None,
) -> OrderRecord:
    order = get_order(stores, order_id, tenant_id=tenant_id)
    if order.status not in UPDATABLE_STATUSES:
        raise ConflictError(f"Cannot update order in status: {order.status}")
    scheduled = _coerce_time(execution_time)
    updated = replace(
        order,
        priority=order.priority if priority is None else priority,
        execution_time=scheduled.isoformat() if scheduled else order.execution_time,
        special_instructions=(
            special_instructions
            if special_instructions is not None
            else order.special_instructions
        ),
        sync_status=_changed_sync_status(order),
        updated_at=utc_now().isoformat(),
    )
    return stores.orders.update_order(updated)


def record_device_order(
    stores: StoreBundle,
    local: DeviceLocalOrder,
    *,
    device: DeviceRecord,
    default_priority: int = DEFAULT_PRIORITY,
) -> OrderRecord:
    """Upsert an order that originated on the device, keyed by its local id."""
    if not local.device_order_id.strip():
        raise ValidationError("device_order_id is required")
    if local.status != ORDER_PENDING and local.status not in DEVICE_REPORTABLE_STATUSES:
        raise ValidationError(f"Invalid order status: {local.status}")
    _check_batch_percentage(local.batch_percentage)
    now = utc_now().isoformat()
    existing = stores.orders.find_order_by_device_order_id(
        device.site_id, local.device_order_id
    )
    if existing is not None:
        updated = replace(
            existing,
            status=local.status,
            started_at=_report_time(local.started_at) or existing.started_at,
            completed_at=_report_time(local.completed_at) or existing.completed_at,
            tasks=tuple(local.tasks) or existing.tasks,
            equipment=local.equipment or existing.equipment,
            sync_status=SYNC_SYNCED,
            synced_at=now,
            updated_at=now,
        )
        return stores.orders.update_order(updated)

    recipe = stores.recipes.get_recipe(local.recipe_id)
    if recipe is None or recipe.tenant_id != device.tenant_id:
        raise NotFoundError(f"Recipe not found: {local.recipe_id}")
    scheduled = _coerce_time(local.execution_time) or utc_now()
    order = OrderRecord(
        id=str(uuid.uuid4()),
        tenant_id=device.tenant_id,
        region_id=device.region_id,
        site_id=device.site_id,
        kitchen_id=local.kitchen_id,
        order_reference=local.order_reference or f"LOCAL-{local.device_order_id}",
        group_id=str(uuid.uuid4()),
        customer_name=local.customer_name,
        metadata=None,
        recipe_id=recipe.id,
        recipe_name=local.recipe_name or recipe.name,
        batch_percentage=local.batch_percentage,
        modifications=tuple(local.modifications),
        special_instructions=local.special_instructions,
        source=SOURCE_DEVICE_LOCAL,
        status=local.status,
        priority=default_priority if local.priority is None else local.priority,
        execution_time=scheduled.isoformat(),
        started_at=_report_time(local.started_at),
        completed_at=_report_time(local.completed_at),
        error_message=None,
        sync_status=SYNC_SYNCED,
        synced_at=now,
        device_order_id=local.device_order_id,
        tasks=tuple(local.tasks),
        equipment=local.equipment,
        created_at=now,
        updated_at=now,
    )
    stores.orders.insert_order(order)
    logger.info(
        "Device-local order recorded",
        extra={"order_id": order.id, "device_id": device.id, "site_id": device.site_id},
    )
    return order


def _published_recipe(
    stores: StoreBundle,
    tenant_id: str,
    recipe_id: str,
) -> RecipeRecord:
    recipe = stores.recipes.get_recipe(recipe_id)
    if recipe is None or recipe.tenant_id != tenant_id:
        raise NotFoundError(f"Recipe not found: {recipe_id}")
    if not recipe.is_published():
        raise ValidationError(f"Recipe is not published: {recipe_id}")
    return recipe


def _check_batch_percentage(value: int) -> None:
    if value < 1 or value > 100:
        raise ValidationError("batch_percentage must be between 1 and 100")


def _changed_sync_status(order: OrderRecord) -> str:
    # Orders the device already holds must be re-synced.
    if order.sync_status == SYNC_SYNCED:
        return SYNC_UPDATED
    return order.sync_status


def _coerce_time(value: datetime | str | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return parse_timestamp(value)
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid timestamp: {value}") from exc


def _report_time(value: str | None) -> str | None:
    return to_iso(_coerce_time(value))
