from __future__ import annotations

from dataclasses import asdict

from galley_core.orders.types import OrderRecord


def device_order_view(order: OrderRecord) -> dict[str, object]:
    """Shape of an order as served to a device's pull query."""
    return {
        "id": order.id,
        "order_reference": order.order_reference,
        "group_id": order.group_id,
        "customer_name": order.customer_name,
        "recipe_id": order.recipe_id,
        "recipe_name": order.recipe_name,
        "batch_percentage": order.batch_percentage,
        "modifications": [asdict(item) for item in order.modifications],
        "priority": order.priority,
        "execution_time": order.execution_time,
        "special_instructions": order.special_instructions,
    }
