import json
import os
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from pydantic import BaseModel, Field

from galley_api.common import (
    API_PREFIX,
    authorize_operator_request,
    correlation_of,
    get_authority,
    get_stores,
)
from galley_core.config import get_config
from galley_core.errors import NotFoundError
from galley_core.fleet import (
    DeviceRecord,
    HeartbeatRecord,
    activate_device,
    create_device,
    deactivate_device,
    delete_device,
    get_device,
    list_devices,
    offline_devices,
    provision_device,
    regenerate_certificate,
    set_device_status,
    update_device,
)
from galley_core.logging import configure_logging, get_logger
from galley_core.orders import (
    BatchItem,
    Modification,
    OrderRecord,
    cancel_order,
    create_batch,
    get_order,
    get_order_by_reference,
    get_orders_by_group,
    list_orders,
    update_order,
)
from galley_core.pki import bundle_filename, bundle_url, render_qr_png
from galley_core.recipes import (
    IngredientRecord,
    Nutrition,
    RecipeIngredient,
    RecipeRecord,
    RecipeStep,
    create_ingredient,
    create_recipe,
    delete_recipe,
    get_ingredient,
    get_recipe,
    list_ingredients,
    list_recipes,
    publish_recipe,
    unpublish_recipe,
    update_ingredient,
    update_recipe,
)
from galley_core.services.fastapi_scaffolding import (
    HealthResponse,
    add_correlation_id_middleware,
    add_error_handlers,
    apply_cors_middleware,
    build_health_response,
)
from galley_core.tenancy import SiteRecord

SERVICE_NAME = "galley-operator"

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


class SiteCreateRequest(BaseModel):
    tenant_id: str
    region_id: str
    name: str
    site_id: str | None = None


class SiteResponse(BaseModel):
    id: str
    tenant_id: str
    region_id: str
    name: str
    status: str
    created_at: str
    updated_at: str


class DeviceCreateRequest(BaseModel):
    tenant_id: str
    region_id: str
    site_id: str
    name: str
    kitchens: list[str] | None = None


class DeviceUpdateRequest(BaseModel):
    name: str | None = None
    kitchens: list[str] | None = None


class DeviceStatusRequest(BaseModel):
    status: str


class DeviceResponse(BaseModel):
    id: str
    tenant_id: str
    region_id: str
    site_id: str
    name: str
    version: str | None = None
    status: str
    last_heartbeat: str | None = None
    kitchens: list[str]
    certificate_serial: str | None = None
    certificate_expiry: str | None = None
    registered_at: str | None = None
    created_at: str
    updated_at: str


class HeartbeatResponse(BaseModel):
    id: str
    device_id: str
    received_at: str
    status: str
    version: str | None = None
    metrics: dict[str, Any] | None = None
    active_order_count: int
    expires_at: str


class CertificateResponse(BaseModel):
    certificate_serial: str
    expires_at: str


class ModificationPayload(BaseModel):
    type: str
    ingredient: str | None = None
    notes: str | None = None


class BatchItemPayload(BaseModel):
    recipe_id: str
    quantity: int = Field(default=1, ge=1)
    batch_percentage: int = Field(default=100, ge=1, le=100)
    modifications: list[ModificationPayload] = Field(default_factory=list)


class OrderBatchRequest(BaseModel):
    tenant_id: str
    region_id: str
    site_id: str
    order_reference: str
    items: list[BatchItemPayload] = Field(min_length=1)
    customer_name: str | None = None
    priority: int | None = None
    execution_time: datetime | None = None
    special_instructions: str | None = None
    source: str | None = None
    metadata: dict[str, Any] | None = None


class OrderUpdateRequest(BaseModel):
    priority: int | None = None
    execution_time: datetime | None = None
    special_instructions: str | None = None


class OrderCancelRequest(BaseModel):
    reason: str | None = None


class OrderResponse(BaseModel):
    id: str
    tenant_id: str
    region_id: str
    site_id: str
    kitchen_id: str | None = None
    order_reference: str
    group_id: str
    customer_name: str | None = None
    metadata: dict[str, Any] | None = None
    recipe_id: str
    recipe_name: str
    batch_percentage: int
    modifications: list[dict[str, Any]]
    special_instructions: str | None = None
    source: str
    status: str
    priority: int
    execution_time: str
    started_at: str | None = None
    completed_at: str | None = None
    error_message: str | None = None
    sync_status: str
    synced_at: str | None = None
    device_order_id: str | None = None
    tasks: list[dict[str, Any]]
    equipment: dict[str, Any] | None = None
    created_at: str
    updated_at: str


class RecipeIngredientPayload(BaseModel):
    ingredient_id: str
    ingredient_name: str | None = None
    quantity: float = Field(gt=0)
    unit: str
    prep_notes: str | None = None
    timing_step: int | None = None
    is_critical: bool = False
    substitutes: list[str] = Field(default_factory=list)


class RecipeStepPayload(BaseModel):
    step_number: int
    action: str
    parameters: dict[str, Any] | None = None
    depends_on_steps: list[int] = Field(default_factory=list)
    name: str | None = None
    description: str | None = None


class RecipeCreateRequest(BaseModel):
    tenant_id: str
    name: str
    description: str | None = None
    category: str | None = None
    prep_time_seconds: int = Field(default=0, ge=0)
    cook_time_seconds: int = Field(default=0, ge=0)
    servings: int = Field(default=1, ge=1)
    allergen_warnings: list[str] | None = None
    ingredients: list[RecipeIngredientPayload]
    steps: list[RecipeStepPayload]


class RecipeUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    prep_time_seconds: int | None = Field(default=None, ge=0)
    cook_time_seconds: int | None = Field(default=None, ge=0)
    servings: int | None = Field(default=None, ge=1)
    allergen_warnings: list[str] | None = None
    ingredients: list[RecipeIngredientPayload] | None = None
    steps: list[RecipeStepPayload] | None = None


class RecipePublishRequest(BaseModel):
    site_ids: list[str] = Field(default_factory=list)
    publish_globally: bool = False


class RecipeResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    description: str | None = None
    category: str | None = None
    prep_time_seconds: int
    cook_time_seconds: int
    servings: int
    allergen_warnings: list[str]
    ingredients: list[dict[str, Any]]
    steps: list[dict[str, Any]]
    status: str
    version: int
    published_at: str | None = None
    published_to_sites: list[str]
    published_globally: bool
    created_at: str
    updated_at: str


class NutritionPayload(BaseModel):
    calories: float = 0.0
    protein: float = 0.0
    fat: float = 0.0
    carbs: float = 0.0
    fiber: float = 0.0
    sodium: float = 0.0
    sugar: float = 0.0


class IngredientCreateRequest(BaseModel):
    tenant_id: str
    name: str
    moisture_type: str
    shelf_life_minutes: int | None = None
    allergen_info: list[str] | None = None
    nutrition: NutritionPayload | None = None
    parameters: dict[str, Any] | None = None
    is_active: bool = True


class IngredientUpdateRequest(BaseModel):
    name: str | None = None
    moisture_type: str | None = None
    shelf_life_minutes: int | None = None
    allergen_info: list[str] | None = None
    nutrition: NutritionPayload | None = None
    parameters: dict[str, Any] | None = None
    is_active: bool | None = None


class IngredientResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    moisture_type: str
    shelf_life_minutes: int | None = None
    allergen_info: list[str]
    nutrition: dict[str, float] | None = None
    parameters: dict[str, Any] | None = None
    is_active: bool
    created_at: str
    updated_at: str


def _site_response(site: SiteRecord) -> SiteResponse:
    return SiteResponse(**asdict(site))


def _device_response(device: DeviceRecord) -> DeviceResponse:
    return DeviceResponse(
        id=device.id,
        tenant_id=device.tenant_id,
        region_id=device.region_id,
        site_id=device.site_id,
        name=device.name,
        version=device.version,
        status=device.status,
        last_heartbeat=device.last_heartbeat,
        kitchens=list(device.kitchens),
        certificate_serial=device.certificate_serial,
        certificate_expiry=device.certificate_expiry,
        registered_at=device.registered_at,
        created_at=device.created_at,
        updated_at=device.updated_at,
    )


def _heartbeat_response(heartbeat: HeartbeatRecord) -> HeartbeatResponse:
    return HeartbeatResponse(**asdict(heartbeat))


def _order_response(order: OrderRecord) -> OrderResponse:
    return OrderResponse(**asdict(order))


def _recipe_response(recipe: RecipeRecord) -> RecipeResponse:
    return RecipeResponse(**asdict(recipe))


def _ingredient_response(ingredient: IngredientRecord) -> IngredientResponse:
    return IngredientResponse(**asdict(ingredient))


def _recipe_ingredients(
    payload: list[RecipeIngredientPayload] | None,
) -> list[RecipeIngredient] | None:
    if payload is None:
        return None
    return [
        RecipeIngredient(
            ingredient_id=item.ingredient_id,
            ingredient_name=item.ingredient_name or "",
            quantity=item.quantity,
            unit=item.unit,
            prep_notes=item.prep_notes,
            timing_step=item.timing_step,
            is_critical=item.is_critical,
            substitutes=tuple(item.substitutes),
        )
        for item in payload
    ]


def _recipe_steps(payload: list[RecipeStepPayload] | None) -> list[RecipeStep] | None:
    if payload is None:
        return None
    return [
        RecipeStep(
            step_number=item.step_number,
            action=item.action,
            parameters=item.parameters,
            depends_on_steps=tuple(item.depends_on_steps),
            name=item.name,
            description=item.description,
        )
        for item in payload
    ]


def _nutrition(payload: NutritionPayload | None) -> Nutrition | None:
    if payload is None:
        return None
    return Nutrition(**payload.model_dump())


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return build_health_response(SERVICE_NAME)


@app.post(f"{API_PREFIX}/sites", response_model=SiteResponse, status_code=201)
async def create_site_endpoint(
    request: Request,
    payload: SiteCreateRequest,
) -> SiteResponse:
    authorize_operator_request(request)
    site = get_stores().sites.register_site(
        tenant_id=payload.tenant_id,
        region_id=payload.region_id,
        name=payload.name,
        site_id=payload.site_id,
    )
    return _site_response(site)


@app.get(f"{API_PREFIX}/sites/{{site_id}}", response_model=SiteResponse)
async def get_site_endpoint(request: Request, site_id: str) -> SiteResponse:
    authorize_operator_request(request)
    site = get_stores().sites.get_site(site_id)
    if site is None:
        raise NotFoundError(f"Site not found: {site_id}")
    return _site_response(site)


@app.post(f"{API_PREFIX}/devices", response_model=DeviceResponse, status_code=201)
async def create_device_endpoint(
    request: Request,
    payload: DeviceCreateRequest,
) -> DeviceResponse:
    authorize_operator_request(request)
    device = create_device(
        get_stores(),
        tenant_id=payload.tenant_id,
        region_id=payload.region_id,
        site_id=payload.site_id,
        name=payload.name,
        kitchens=payload.kitchens,
    )
    logger.info(
        "Device created",
        extra={
            "request_id": str(uuid.uuid4()),
            "correlation_id": correlation_of(request),
            "device_id": device.id,
        },
    )
    return _device_response(device)


@app.get(f"{API_PREFIX}/devices", response_model=list[DeviceResponse])
async def list_devices_endpoint(
    request: Request,
    tenant_id: str | None = None,
    site_id: str | None = None,
    status: str | None = None,
) -> list[DeviceResponse]:
    authorize_operator_request(request)
    devices = list_devices(
        get_stores(),
        tenant_id=tenant_id,
        site_id=site_id,
        status=status,
    )
    return [_device_response(device) for device in devices]


@app.get(f"{API_PREFIX}/devices/offline", response_model=list[DeviceResponse])
async def offline_devices_endpoint(
    request: Request,
    threshold_seconds: int | None = None,
    tenant_id: str | None = None,
) -> list[DeviceResponse]:
    authorize_operator_request(request)
    devices = offline_devices(
        get_stores(),
        threshold_seconds=threshold_seconds or get_config().offline_threshold_seconds,
        tenant_id=tenant_id,
    )
    return [_device_response(device) for device in devices]


@app.get(f"{API_PREFIX}/devices/{{device_id}}", response_model=DeviceResponse)
async def get_device_endpoint(request: Request, device_id: str) -> DeviceResponse:
    authorize_operator_request(request)
    return _device_response(get_device(get_stores(), device_id))


@app.put(f"{API_PREFIX}/devices/{{device_id}}", response_model=DeviceResponse)
async def update_device_endpoint(
    request: Request,
    device_id: str,
    payload: DeviceUpdateRequest,
) -> DeviceResponse:
    authorize_operator_request(request)
    device = update_device(
        get_stores(),
        device_id,
        name=payload.name,
        kitchens=payload.kitchens,
    )
    return _device_response(device)


@app.delete(f"{API_PREFIX}/devices/{{device_id}}", status_code=204)
async def delete_device_endpoint(request: Request, device_id: str) -> Response:
    authorize_operator_request(request)
    delete_device(get_stores(), device_id)
    return Response(status_code=204)


@app.get(f"{API_PREFIX}/devices/{{device_id}}/provisioning-bundle")
async def provisioning_bundle(request: Request, device_id: str) -> Response:
    authorize_operator_request(request)
    device, bundle = provision_device(
        get_stores(),
        device_id,
        authority=get_authority(),
        config=get_config(),
    )
    logger.info(
        "Provisioning bundle served",
        extra={
            "correlation_id": correlation_of(request),
            "device_id": device.id,
            "certificate_serial": device.certificate_serial,
        },
    )
    return Response(
        content=json.dumps(bundle.to_dict(), indent=2),
        media_type="application/json",
        headers={
            "Content-Disposition": (
                f"attachment; filename={bundle_filename(device.id)}"
            ),
            "Cache-Control": "no-store",
        },
    )


@app.get(f"{API_PREFIX}/devices/{{device_id}}/provisioning-qrcode")
async def provisioning_qrcode(request: Request, device_id: str) -> Response:
    authorize_operator_request(request)
    config = get_config()
    device, _ = provision_device(
        get_stores(),
        device_id,
        authority=get_authority(),
        config=config,
    )
    return Response(
        content=render_qr_png(bundle_url(config, device.id)),
        media_type="image/png",
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


@app.post(
    f"{API_PREFIX}/devices/{{device_id}}/regenerate-certificate",
    response_model=CertificateResponse,
)
async def regenerate_certificate_endpoint(
    request: Request,
    device_id: str,
) -> CertificateResponse:
    authorize_operator_request(request)
    device = regenerate_certificate(get_stores(), device_id, authority=get_authority())
    return CertificateResponse(
        certificate_serial=device.certificate_serial or "",
        expires_at=device.certificate_expiry or "",
    )


@app.post(
    f"{API_PREFIX}/devices/{{device_id}}/deactivate",
    response_model=DeviceResponse,
)
async def deactivate_device_endpoint(request: Request, device_id: str) -> DeviceResponse:
    authorize_operator_request(request)
    return _device_response(deactivate_device(get_stores(), device_id))


@app.post(f"{API_PREFIX}/devices/{{device_id}}/activate", response_model=DeviceResponse)
async def activate_device_endpoint(request: Request, device_id: str) -> DeviceResponse:
    authorize_operator_request(request)
    return _device_response(activate_device(get_stores(), device_id))


@app.put(f"{API_PREFIX}/devices/{{device_id}}/status", response_model=DeviceResponse)
async def set_device_status_endpoint(
    request: Request,
    device_id: str,
    payload: DeviceStatusRequest,
) -> DeviceResponse:
    authorize_operator_request(request)
    return _device_response(set_device_status(get_stores(), device_id, payload.status))


@app.get(
    f"{API_PREFIX}/devices/{{device_id}}/heartbeats",
    response_model=list[HeartbeatResponse],
)
async def device_heartbeats(request: Request, device_id: str) -> list[HeartbeatResponse]:
    authorize_operator_request(request)
    stores = get_stores()
    device = get_device(stores, device_id)
    heartbeats = stores.fleet.load_heartbeats(device_id=device.id)
    return [_heartbeat_response(heartbeat) for heartbeat in heartbeats]


@app.post(
    f"{API_PREFIX}/orders/batch",
    response_model=list[OrderResponse],
    status_code=201,
)
async def create_order_batch(
    request: Request,
    payload: OrderBatchRequest,
) -> list[OrderResponse]:
    authorize_operator_request(request)
    orders = create_batch(
        get_stores(),
        tenant_id=payload.tenant_id,
        region_id=payload.region_id,
        site_id=payload.site_id,
        order_reference=payload.order_reference,
        items=[
            BatchItem(
                recipe_id=item.recipe_id,
                quantity=item.quantity,
                batch_percentage=item.batch_percentage,
                modifications=tuple(
                    Modification(
                        type=modification.type,
                        ingredient=modification.ingredient,
                        notes=modification.notes,
                    )
                    for modification in item.modifications
                ),
            )
            for item in payload.items
        ],
        customer_name=payload.customer_name,
        priority=payload.priority,
        execution_time=payload.execution_time,
        special_instructions=payload.special_instructions,
        source=payload.source,
        metadata=payload.metadata,
        default_priority=get_config().default_order_priority,
    )
    return [_order_response(order) for order in orders]


@app.get(f"{API_PREFIX}/orders", response_model=list[OrderResponse])
async def list_orders_endpoint(
    request: Request,
    tenant_id: str | None = None,
    site_id: str | None = None,
    status: str | None = None,
) -> list[OrderResponse]:
    authorize_operator_request(request)
    orders = list_orders(get_stores(), tenant_id=tenant_id, site_id=site_id, status=status)
    return [_order_response(order) for order in orders]


@app.get(f"{API_PREFIX}/orders/lookup", response_model=OrderResponse)
async def lookup_order(
    request: Request,
    tenant_id: str,
    order_reference: str,
) -> OrderResponse:
    authorize_operator_request(request)
    order = get_order_by_reference(
        get_stores(),
        tenant_id=tenant_id,
        order_reference=order_reference,
    )
    return _order_response(order)


@app.get(
    f"{API_PREFIX}/orders/groups/{{group_id}}",
    response_model=list[OrderResponse],
)
async def order_group(
    request: Request,
    group_id: str,
    tenant_id: str | None = None,
) -> list[OrderResponse]:
    authorize_operator_request(request)
    orders = get_orders_by_group(get_stores(), group_id, tenant_id=tenant_id)
    return [_order_response(order) for order in orders]


@app.get(f"{API_PREFIX}/orders/{{order_id}}", response_model=OrderResponse)
async def get_order_endpoint(request: Request, order_id: str) -> OrderResponse:
    authorize_operator_request(request)
    return _order_response(get_order(get_stores(), order_id))


@app.put(f"{API_PREFIX}/orders/{{order_id}}", response_model=OrderResponse)
async def update_order_endpoint(
    request: Request,
    order_id: str,
    payload: OrderUpdateRequest,
) -> OrderResponse:
    authorize_operator_request(request)
    order = update_order(
        get_stores(),
        order_id,
        priority=payload.priority,
        execution_time=payload.execution_time,
        special_instructions=payload.special_instructions,
    )
    return _order_response(order)


@app.post(f"{API_PREFIX}/orders/{{order_id}}/cancel", response_model=OrderResponse)
async def cancel_order_endpoint(
    request: Request,
    order_id: str,
    payload: OrderCancelRequest | None = None,
) -> OrderResponse:
    authorize_operator_request(request)
    order = cancel_order(
        get_stores(),
        order_id,
        reason=payload.reason if payload else None,
    )
    return _order_response(order)


@app.post(f"{API_PREFIX}/recipes", response_model=RecipeResponse, status_code=201)
async def create_recipe_endpoint(
    request: Request,
    payload: RecipeCreateRequest,
) -> RecipeResponse:
    authorize_operator_request(request)
    recipe = create_recipe(
        get_stores(),
        tenant_id=payload.tenant_id,
        name=payload.name,
        ingredients=_recipe_ingredients(payload.ingredients) or [],
        steps=_recipe_steps(payload.steps) or [],
        description=payload.description,
        category=payload.category,
        prep_time_seconds=payload.prep_time_seconds,
        cook_time_seconds=payload.cook_time_seconds,
        servings=payload.servings,
        allergen_warnings=payload.allergen_warnings,
    )
    return _recipe_response(recipe)


@app.get(f"{API_PREFIX}/recipes", response_model=list[RecipeResponse])
async def list_recipes_endpoint(
    request: Request,
    tenant_id: str | None = None,
    status: str | None = None,
) -> list[RecipeResponse]:
    authorize_operator_request(request)
    recipes = list_recipes(get_stores(), tenant_id=tenant_id, status=status)
    return [_recipe_response(recipe) for recipe in recipes]


@app.get(f"{API_PREFIX}/recipes/{{recipe_id}}", response_model=RecipeResponse)
async def get_recipe_endpoint(request: Request, recipe_id: str) -> RecipeResponse:
    authorize_operator_request(request)
    return _recipe_response(get_recipe(get_stores(), recipe_id))


@app.put(f"{API_PREFIX}/recipes/{{recipe_id}}", response_model=RecipeResponse)
async def update_recipe_endpoint(
    request: Request,
    recipe_id: str,
    payload: RecipeUpdateRequest,
) -> RecipeResponse:
    authorize_operator_request(request)
    recipe = update_recipe(
        get_stores(),
        recipe_id,
        name=payload.name,
        ingredients=_recipe_ingredients(payload.ingredients),
        steps=_recipe_steps(payload.steps),
        description=payload.description,
        category=payload.category,
        prep_time_seconds=payload.prep_time_seconds,
        cook_time_seconds=payload.cook_time_seconds,
        servings=payload.servings,
        allergen_warnings=payload.allergen_warnings,
    )
    return _recipe_response(recipe)


@app.delete(f"{API_PREFIX}/recipes/{{recipe_id}}", status_code=204)
async def delete_recipe_endpoint(request: Request, recipe_id: str) -> Response:
    authorize_operator_request(request)
    delete_recipe(get_stores(), recipe_id)
    return Response(status_code=204)


@app.post(
    f"{API_PREFIX}/recipes/{{recipe_id}}/publish",
    response_model=RecipeResponse,
)
async def publish_recipe_endpoint(
    request: Request,
    recipe_id: str,
    payload: RecipePublishRequest,
) -> RecipeResponse:
    authorize_operator_request(request)
    recipe = publish_recipe(
        get_stores(),
        recipe_id,
        site_ids=payload.site_ids,
        publish_globally=payload.publish_globally,
    )
    return _recipe_response(recipe)


@app.post(
    f"{API_PREFIX}/recipes/{{recipe_id}}/unpublish",
    response_model=RecipeResponse,
)
async def unpublish_recipe_endpoint(request: Request, recipe_id: str) -> RecipeResponse:
    authorize_operator_request(request)
    return _recipe_response(unpublish_recipe(get_stores(), recipe_id))


@app.post(
    f"{API_PREFIX}/ingredients",
    response_model=IngredientResponse,
    status_code=201,
)
async def create_ingredient_endpoint(
    request: Request,
    payload: IngredientCreateRequest,
) -> IngredientResponse:
    authorize_operator_request(request)
    ingredient = create_ingredient(
        get_stores(),
        tenant_id=payload.tenant_id,
        name=payload.name,
        moisture_type=payload.moisture_type,
        shelf_life_minutes=payload.shelf_life_minutes,
        allergen_info=payload.allergen_info,
        nutrition=_nutrition(payload.nutrition),
        parameters=payload.parameters,
        is_active=payload.is_active,
    )
    return _ingredient_response(ingredient)


@app.get(f"{API_PREFIX}/ingredients", response_model=list[IngredientResponse])
async def list_ingredients_endpoint(
    request: Request,
    tenant_id: str | None = None,
    active_only: bool = False,
) -> list[IngredientResponse]:
    authorize_operator_request(request)
    ingredients = list_ingredients(
        get_stores(),
        tenant_id=tenant_id,
        active_only=active_only,
    )
    return [_ingredient_response(ingredient) for ingredient in ingredients]


@app.get(
    f"{API_PREFIX}/ingredients/{{ingredient_id}}",
    response_model=IngredientResponse,
)
async def get_ingredient_endpoint(
    request: Request,
    ingredient_id: str,
) -> IngredientResponse:
    authorize_operator_request(request)
    return _ingredient_response(get_ingredient(get_stores(), ingredient_id))


@app.put(
    f"{API_PREFIX}/ingredients/{{ingredient_id}}",
    response_model=IngredientResponse,
)
async def update_ingredient_endpoint(
    request: Request,
    ingredient_id: str,
    payload: IngredientUpdateRequest,
) -> IngredientResponse:
    authorize_operator_request(request)
    ingredient = update_ingredient(
        get_stores(),
        ingredient_id,
        name=payload.name,
        moisture_type=payload.moisture_type,
        shelf_life_minutes=payload.shelf_life_minutes,
        allergen_info=payload.allergen_info,
        nutrition=_nutrition(payload.nutrition),
        parameters=payload.parameters,
        is_active=payload.is_active,
    )
    return _ingredient_response(ingredient)
