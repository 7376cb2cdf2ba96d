from __future__ import annotations

from dataclasses import asdict, replace
from typing import Iterable

from galley_core.errors import ConflictError, NotFoundError
from galley_core.orders.types import (
    ACTIVE_STATUSES,
    DEFAULT_BATCH_PERCENTAGE,
    ORDER_PENDING,
    SYNC_PENDING,
    Equipment,
    Modification,
    OrderRecord,
    OrderTask,
    Subtask,
)
from galley_core.storage import collection_lock, control_uri, load_items, save_items
from galley_core.storage.coerce import (
    coerce_int,
    coerce_mapping,
    coerce_optional_str,
    coerce_str_tuple,
)


def order_registry_uri(base_uri: str) -> str:
    return control_uri(base_uri, "orders.json")


def load_orders(base_uri: str) -> list[OrderRecord]:
    return [order_from_dict(item) for item in load_items(order_registry_uri(base_uri))]


def save_orders(base_uri: str, orders: Iterable[OrderRecord]) -> str:
    return save_items(order_registry_uri(base_uri), [asdict(order) for order in orders])


def get_order(base_uri: str, order_id: str) -> OrderRecord | None:
    return next((order for order in load_orders(base_uri) if order.id == order_id), None)


def find_order_by_reference(
    base_uri: str,
    tenant_id: str,
    order_reference: str,
) -> OrderRecord | None:
    return next(
        (
            order
            for order in load_orders(base_uri)
            if order.tenant_id == tenant_id and order.order_reference == order_reference
        ),
        None,
    )


def find_order_by_device_order_id(
    base_uri: str,
    site_id: str,
    device_order_id: str,
) -> OrderRecord | None:
    return next(
        (
            order
            for order in load_orders(base_uri)
            if order.site_id == site_id and order.device_order_id == device_order_id
        ),
        None,
    )


def insert_order(base_uri: str, order: OrderRecord) -> OrderRecord:
    with collection_lock(order_registry_uri(base_uri)):
        orders = load_orders(base_uri)
        for existing in orders:
            if (
                existing.tenant_id == order.tenant_id
                and existing.order_reference == order.order_reference
            ):
                raise ConflictError(
                    f"Order reference already exists: {order.order_reference}"
                )
        orders.append(order)
        save_orders(base_uri, orders)
    return order


def update_order(base_uri: str, order: OrderRecord) -> OrderRecord:
    update_orders(base_uri, [order])
    return order


def update_orders(base_uri: str, orders: Iterable[OrderRecord]) -> int:
    replacements = {order.id: order for order in orders}
    if not replacements:
        return 0
    with collection_lock(order_registry_uri(base_uri)):
        existing = load_orders(base_uri)
        known = {order.id for order in existing}
        missing = [order_id for order_id in replacements if order_id not in known]
        if missing:
            raise NotFoundError(f"Order not found: {missing[0]}")
        save_orders(
            base_uri,
            [replacements.get(order.id, order) for order in existing],
        )
    return len(replacements)


def reset_orphaned_orders(
    base_uri: str,
    site_id: str,
    declared: set[str],
    *,
    updated_at: str,
) -> list[OrderRecord]:
    """Return active orders at the site missing from ``declared`` to pending.

    The filter is evaluated on a fresh read under the collection lock, so an
    order that reached a terminal status since the heartbeat was sent stays put.
    """
    with collection_lock(order_registry_uri(base_uri)):
        orders = load_orders(base_uri)
        reset: list[OrderRecord] = []
        for index, order in enumerate(orders):
            if order.site_id != site_id or order.status not in ACTIVE_STATUSES:
                continue
            if order.id in declared or (
                order.device_order_id and order.device_order_id in declared
            ):
                continue
            orders[index] = replace(
                order,
                status=ORDER_PENDING,
                device_order_id=None,
                sync_status=SYNC_PENDING,
                synced_at=None,
                updated_at=updated_at,
            )
            reset.append(orders[index])
        if reset:
            save_orders(base_uri, orders)
    return reset


def order_from_dict(payload: dict[str, object]) -> OrderRecord:
    equipment = payload.get("equipment")
    return OrderRecord(
        id=str(payload.get("id")),
        tenant_id=str(payload.get("tenant_id", "")),
        region_id=str(payload.get("region_id", "")),
        site_id=str(payload.get("site_id", "")),
        kitchen_id=coerce_optional_str(payload.get("kitchen_id")),
        order_reference=str(payload.get("order_reference", "")),
        group_id=str(payload.get("group_id", "")),
        customer_name=coerce_optional_str(payload.get("customer_name")),
        metadata=coerce_mapping(payload.get("metadata")),
        recipe_id=str(payload.get("recipe_id", "")),
        recipe_name=str(payload.get("recipe_name", "")),
        batch_percentage=coerce_int(
            payload.get("batch_percentage"), DEFAULT_BATCH_PERCENTAGE
        ),
        modifications=tuple(
            modification_from_dict(item)
            for item in _dict_items(payload.get("modifications"))
        ),
        special_instructions=coerce_optional_str(payload.get("special_instructions")),
        source=str(payload.get("source", "api")),
        status=str(payload.get("status", "pending")),
        priority=coerce_int(payload.get("priority"), 5),
        execution_time=str(payload.get("execution_time", "")),
        started_at=coerce_optional_str(payload.get("started_at")),
        completed_at=coerce_optional_str(payload.get("completed_at")),
        error_message=coerce_optional_str(payload.get("error_message")),
        sync_status=str(payload.get("sync_status", "pending")),
        synced_at=coerce_optional_str(payload.get("synced_at")),
        device_order_id=coerce_optional_str(payload.get("device_order_id")),
        tasks=tuple(task_from_dict(item) for item in _dict_items(payload.get("tasks"))),
        equipment=equipment_from_dict(equipment) if isinstance(equipment, dict) else None,
        created_at=str(payload.get("created_at", "")),
        updated_at=str(payload.get("updated_at", "")),
    )


def modification_from_dict(payload: dict[str, object]) -> Modification:
    return Modification(
        type=str(payload.get("type", "")),
        ingredient=coerce_optional_str(payload.get("ingredient")),
        notes=coerce_optional_str(payload.get("notes")),
    )


def task_from_dict(payload: dict[str, object]) -> OrderTask:
    return OrderTask(
        task_id=str(payload.get("task_id", "")),
        step_number=coerce_int(payload.get("step_number")),
        action=str(payload.get("action", "")),
        status=str(payload.get("status", "")),
        parameters=str(payload.get("parameters") or ""),
        depends_on_tasks=coerce_str_tuple(payload.get("depends_on_tasks")),
        actual_start_time=coerce_optional_str(payload.get("actual_start_time")),
        actual_end_time=coerce_optional_str(payload.get("actual_end_time")),
        error_code=coerce_optional_str(payload.get("error_code")),
        error_message=coerce_optional_str(payload.get("error_message")),
        subtasks=tuple(
            subtask_from_dict(item) for item in _dict_items(payload.get("subtasks"))
        ),
    )


def subtask_from_dict(payload: dict[str, object]) -> Subtask:
    return Subtask(
        parent_task_id=str(payload.get("parent_task_id", "")),
        parent_action=str(payload.get("parent_action", "")),
        action=str(payload.get("action", "")),
        device_types=coerce_str_tuple(payload.get("device_types")),
        selected_devices=coerce_mapping(payload.get("selected_devices")),
        is_completed=bool(payload.get("is_completed", False)),
        is_in_progress=bool(payload.get("is_in_progress", False)),
    )


def equipment_from_dict(payload: dict[str, object]) -> Equipment:
    return Equipment(
        kitchen_name=coerce_optional_str(payload.get("kitchen_name")),
        pots=coerce_str_tuple(payload.get("pots")),
        heater_id=coerce_optional_str(payload.get("heater_id")),
    )


def _dict_items(value: object) -> list[dict[str, object]]:
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, dict)]
