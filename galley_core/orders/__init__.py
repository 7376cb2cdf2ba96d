from galley_core.orders.projection import device_order_view
from galley_core.orders.service import (
    DeviceLocalOrder,
    apply_device_report,
    cancel_order,
    create_batch,
    get_order,
    get_order_by_reference,
    get_orders_by_group,
    list_orders,
    pending_for_site,
    record_device_order,
    reset_orphaned_orders,
    update_order,
)
from galley_core.orders.types import (
    BatchItem,
    DeviceReport,
    Equipment,
    Modification,
    OrderRecord,
    OrderTask,
    Subtask,
)

__all__ = [
    "BatchItem",
    "DeviceLocalOrder",
    "DeviceReport",
    "Equipment",
    "Modification",
    "OrderRecord",
    "OrderTask",
    "Subtask",
    "apply_device_report",
    "cancel_order",
    "create_batch",
    "device_order_view",
    "get_order",
    "get_order_by_reference",
    "get_orders_by_group",
    "list_orders",
    "pending_for_site",
    "record_device_order",
    "reset_orphaned_orders",
    "update_order",
]
