import json
import os
import uuid
from typing import Any

from fastapi import FastAPI, Request
from pydantic import BaseModel, Field

from galley_api.common import (
    DEVICE_PREFIX,
    correlation_of,
    device_identity,
    get_stores,
)
from galley_core.config import get_config
from galley_core.errors import ForbiddenError
from galley_core.fleet import record_heartbeat, register_device
from galley_core.logging import configure_logging, get_logger
from galley_core.orders import (
    DeviceLocalOrder,
    DeviceReport,
    Equipment,
    Modification,
    OrderTask,
    Subtask,
    apply_device_report,
    device_order_view,
    pending_for_site,
    record_device_order,
)
from galley_core.recipes import (
    device_ingredient_view,
    device_recipe_view,
    list_ingredients,
    published_for_site,
)
from galley_core.services.fastapi_scaffolding import (
    HealthResponse,
    add_correlation_id_middleware,
    add_error_handlers,
    apply_cors_middleware,
    build_health_response,
)

SERVICE_NAME = "galley-device"

configure_logging(
    service=SERVICE_NAME,
    env=os.getenv("ENV"),
    version=os.getenv("GALLEY_VERSION"),
)
logger = get_logger(__name__)

app = FastAPI()
apply_cors_middleware(app)
add_correlation_id_middleware(app)
add_error_handlers(app)


class RegisterRequest(BaseModel):
    device_id: str
    version: str | None = None


class RegisterResponse(BaseModel):
    registered: bool
    device_id: str
    site_id: str
    tenant_id: str


class HeartbeatRequest(BaseModel):
    device_id: str
    status: str
    version: str | None = None
    metrics: dict[str, Any] | None = None
    active_orders: list[str] = Field(default_factory=list)


class HeartbeatResponse(BaseModel):
    acknowledged: bool
    orders_reset: int


class SubtaskPayload(BaseModel):
    parent_task_id: str
    parent_action: str
    action: str
    device_types: list[str] = Field(default_factory=list)
    selected_devices: dict[str, Any] | None = None
    is_completed: bool = False
    is_in_progress: bool = False


class TaskPayload(BaseModel):
    task_id: str
    step_number: int
    action: str
    status: str
    parameters: str | dict[str, Any] | None = None
    depends_on_tasks: list[str] = Field(default_factory=list)
    actual_start_time: str | None = None
    actual_end_time: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    subtasks: list[SubtaskPayload] = Field(default_factory=list)


class EquipmentPayload(BaseModel):
    kitchen_name: str | None = None
    pots: list[str] = Field(default_factory=list)
    heater_id: str | None = None


class ModificationPayload(BaseModel):
    type: str
    ingredient: str | None = None
    notes: str | None = None


class OrderStatusRequest(BaseModel):
    status: str
    device_order_id: str | None = None
    kitchen_id: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    error_message: str | None = None
    tasks: list[TaskPayload] = Field(default_factory=list)
    equipment: EquipmentPayload | None = None


class OrderStatusResponse(BaseModel):
    updated: bool


class LocalOrderRequest(BaseModel):
    device_order_id: str
    recipe_id: str
    recipe_name: str | None = None
    order_reference: str | None = None
    kitchen_id: str | None = None
    customer_name: str | None = None
    batch_percentage: int = 100
    modifications: list[ModificationPayload] = Field(default_factory=list)
    priority: int | None = None
    execution_time: str | None = None
    special_instructions: str | None = None
    status: str = "pending"
    started_at: str | None = None
    completed_at: str | None = None
    tasks: list[TaskPayload] = Field(default_factory=list)
    equipment: EquipmentPayload | None = None


class LocalOrderResponse(BaseModel):
    id: str
    order_reference: str
    device_order_id: str
    status: str
    sync_status: str


def _task(payload: TaskPayload) -> OrderTask:
    parameters = payload.parameters
    if isinstance(parameters, dict):
        parameters = json.dumps(parameters, sort_keys=True)
    return OrderTask(
        task_id=payload.task_id,
        step_number=payload.step_number,
        action=payload.action,
        status=payload.status,
        parameters=parameters or "",
        depends_on_tasks=tuple(payload.depends_on_tasks),
        actual_start_time=payload.actual_start_time,
        actual_end_time=payload.actual_end_time,
        error_code=payload.error_code,
        error_message=payload.error_message,
        subtasks=tuple(
            Subtask(
                parent_task_id=subtask.parent_task_id,
                parent_action=subtask.parent_action,
                action=subtask.action,
                device_types=tuple(subtask.device_types),
                selected_devices=subtask.selected_devices,
                is_completed=subtask.is_completed,
                is_in_progress=subtask.is_in_progress,
            )
            for subtask in payload.subtasks
        ),
    )


def _equipment(payload: EquipmentPayload | None) -> Equipment | None:
    if payload is None:
        return None
    return Equipment(
        kitchen_name=payload.kitchen_name,
        pots=tuple(payload.pots),
        heater_id=payload.heater_id,
    )


def _require_same_device(claimed: str, actual: str) -> None:
    if claimed != actual:
        raise ForbiddenError("Device id does not match credentials")


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return build_health_response(SERVICE_NAME)


@app.post(f"{DEVICE_PREFIX}/register", response_model=RegisterResponse)
async def register(request: Request, payload: RegisterRequest) -> RegisterResponse:
    identity = device_identity(request)
    _require_same_device(payload.device_id, identity.device.id)
    device = register_device(get_stores(), identity.device.id, version=payload.version)
    logger.info(
        "Device registration accepted",
        extra={
            "request_id": str(uuid.uuid4()),
            "correlation_id": correlation_of(request),
            "device_id": device.id,
            "site_id": device.site_id,
        },
    )
    return RegisterResponse(
        registered=True,
        device_id=device.id,
        site_id=device.site_id,
        tenant_id=device.tenant_id,
    )


@app.post(f"{DEVICE_PREFIX}/heartbeat", response_model=HeartbeatResponse)
async def heartbeat(request: Request, payload: HeartbeatRequest) -> HeartbeatResponse:
    identity = device_identity(request)
    _require_same_device(payload.device_id, identity.device.id)
    result = record_heartbeat(
        get_stores(),
        identity.device.id,
        status=payload.status,
        version=payload.version,
        metrics=payload.metrics,
        active_orders=payload.active_orders,
        retention_days=get_config().heartbeat_retention_days,
    )
    logger.info(
        "Heartbeat received",
        extra={
            "correlation_id": correlation_of(request),
            "device_id": result.device.id,
            "device_status": result.device.status,
            "active_order_count": len(payload.active_orders),
            "orders_reset": result.orders_reset,
        },
    )
    return HeartbeatResponse(acknowledged=True, orders_reset=result.orders_reset)


@app.get(f"{DEVICE_PREFIX}/recipes")
async def device_recipes(request: Request) -> list[dict[str, Any]]:
    device = device_identity(request).device
    recipes = published_for_site(
        get_stores(),
        tenant_id=device.tenant_id,
        site_id=device.site_id,
    )
    return [device_recipe_view(recipe) for recipe in recipes]


@app.get(f"{DEVICE_PREFIX}/ingredients")
async def device_ingredients(request: Request) -> list[dict[str, Any]]:
    device = device_identity(request).device
    ingredients = list_ingredients(
        get_stores(),
        tenant_id=device.tenant_id,
        active_only=True,
    )
    return [device_ingredient_view(ingredient) for ingredient in ingredients]


@app.get(f"{DEVICE_PREFIX}/orders")
async def device_orders(request: Request) -> list[dict[str, Any]]:
    device = device_identity(request).device
    orders = pending_for_site(
        get_stores(),
        device.site_id,
        lookahead_minutes=get_config().order_lookahead_minutes,
    )
    return [device_order_view(order) for order in orders]


@app.post(f"{DEVICE_PREFIX}/orders", response_model=LocalOrderResponse)
async def report_local_order(
    request: Request,
    payload: LocalOrderRequest,
) -> LocalOrderResponse:
    device = device_identity(request).device
    order = record_device_order(
        get_stores(),
        DeviceLocalOrder(
            device_order_id=payload.device_order_id,
            recipe_id=payload.recipe_id,
            recipe_name=payload.recipe_name,
            order_reference=payload.order_reference,
            kitchen_id=payload.kitchen_id,
            customer_name=payload.customer_name,
            batch_percentage=payload.batch_percentage,
            modifications=tuple(
                Modification(type=item.type, ingredient=item.ingredient, notes=item.notes)
                for item in payload.modifications
            ),
            priority=payload.priority,
            execution_time=payload.execution_time,
            special_instructions=payload.special_instructions,
            status=payload.status,
            started_at=payload.started_at,
            completed_at=payload.completed_at,
            tasks=tuple(_task(task) for task in payload.tasks),
            equipment=_equipment(payload.equipment),
        ),
        device=device,
        default_priority=get_config().default_order_priority,
    )
    return LocalOrderResponse(
        id=order.id,
        order_reference=order.order_reference,
        device_order_id=order.device_order_id or payload.device_order_id,
        status=order.status,
        sync_status=order.sync_status,
    )


@app.post(
    f"{DEVICE_PREFIX}/orders/{{order_id}}/status",
    response_model=OrderStatusResponse,
)
async def report_order_status(
    request: Request,
    order_id: str,
    payload: OrderStatusRequest,
) -> OrderStatusResponse:
    device = device_identity(request).device
    apply_device_report(
        get_stores(),
        order_id,
        DeviceReport(
            status=payload.status,
            device_order_id=payload.device_order_id,
            kitchen_id=payload.kitchen_id,
            started_at=payload.started_at,
            completed_at=payload.completed_at,
            error_message=payload.error_message,
            tasks=tuple(_task(task) for task in payload.tasks),
            equipment=_equipment(payload.equipment),
        ),
        device=device,
    )
    return OrderStatusResponse(updated=True)
