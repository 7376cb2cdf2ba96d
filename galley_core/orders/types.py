from __future__ import annotations

from dataclasses import dataclass

ORDER_PENDING = "pending"
ORDER_ACCEPTED = "accepted"
ORDER_SCHEDULED = "scheduled"
ORDER_IN_PROGRESS = "in_progress"
ORDER_COMPLETED = "completed"
ORDER_FAILED = "failed"
ORDER_CANCELLED = "cancelled"

ORDER_STATUSES = (
    ORDER_PENDING,
    ORDER_ACCEPTED,
    ORDER_SCHEDULED,
    ORDER_IN_PROGRESS,
    ORDER_COMPLETED,
    ORDER_FAILED,
    ORDER_CANCELLED,
)
DEVICE_REPORTABLE_STATUSES = (
    ORDER_ACCEPTED,
    ORDER_SCHEDULED,
    ORDER_IN_PROGRESS,
    ORDER_COMPLETED,
    ORDER_FAILED,
)
PULLABLE_STATUSES = (ORDER_PENDING, ORDER_ACCEPTED)
# "scheduled" counts as accepted for reconciliation.
ACTIVE_STATUSES = (ORDER_ACCEPTED, ORDER_SCHEDULED, ORDER_IN_PROGRESS)
CANCELLABLE_STATUSES = (ORDER_PENDING, ORDER_IN_PROGRESS)
UPDATABLE_STATUSES = (ORDER_PENDING,)

SYNC_PENDING = "pending"
SYNC_SYNCED = "synced"
SYNC_FAILED = "failed"
SYNC_UPDATED = "updated"

SOURCE_API = "api"
SOURCE_OPERATOR_UI = "operator_ui"
SOURCE_POS = "pos_integration"
SOURCE_DEVICE_LOCAL = "device_local"
ORDER_SOURCES = (SOURCE_API, SOURCE_OPERATOR_UI, SOURCE_POS, SOURCE_DEVICE_LOCAL)

DEFAULT_BATCH_PERCENTAGE = 100


@dataclass(frozen=True)
class Modification:
    type: str
    ingredient: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Subtask:
    parent_task_id: str
    parent_action: str
    action: str
    device_types: tuple[str, ...] = ()
    selected_devices: dict[str, object] | None = None
    is_completed: bool = False
    is_in_progress: bool = False


@dataclass(frozen=True)
class OrderTask:
    task_id: str
    step_number: int
    action: str
    status: str
    parameters: str = ""
    depends_on_tasks: tuple[str, ...] = ()
    actual_start_time: str | None = None
    actual_end_time: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    subtasks: tuple[Subtask, ...] = ()


@dataclass(frozen=True)
class Equipment:
    kitchen_name: str | None = None
    pots: tuple[str, ...] = ()
    heater_id: str | None = None


@dataclass(frozen=True)
class OrderRecord:
    id: str
    tenant_id: str
    region_id: str
    site_id: str
    kitchen_id: str | None
    order_reference: str
    group_id: str
    customer_name: str | None
    metadata: dict[str, object] | None
    recipe_id: str
    recipe_name: str
    batch_percentage: int
    modifications: tuple[Modification, ...]
    special_instructions: str | None
    source: str
    status: str
    priority: int
    execution_time: str
    started_at: str | None
    completed_at: str | None
    error_message: str | None
    sync_status: str
    synced_at: str | None
    device_order_id: str | None
    tasks: tuple[OrderTask, ...]
    equipment: Equipment | None
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class BatchItem:
    recipe_id: str
    quantity: int = 1
    batch_percentage: int = DEFAULT_BATCH_PERCENTAGE
    modifications: tuple[Modification, ...] = ()


@dataclass(frozen=True)
class DeviceReport:
    """Status report pushed by a device for one order."""

    status: str
    device_order_id: str | None = None
    kitchen_id: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    error_message: str | None = None
    tasks: tuple[OrderTask, ...] = ()
    equipment: Equipment | None = None
