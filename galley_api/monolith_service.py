from __future__ import annotations

import os
from typing import Iterable

from fastapi import FastAPI

from galley_api import device_service, operator_service
from galley_core.logging import configure_logging, get_logger
from galley_core.services.fastapi_scaffolding import (
    HealthResponse,
    add_correlation_id_middleware,
    add_error_handlers,
    apply_cors_middleware,
    build_health_response,
)

SERVICE_NAME = "galley-monolith"

configure_logging(
    service=SERVICE_NAME,
    env=os.getenv("ENV"),
    version=os.getenv("GALLEY_VERSION"),
)
logger = get_logger(__name__)


def _attach_routes(
    app: FastAPI,
    source_app: FastAPI,
    *,
    drop_paths: Iterable[str] = ("/health",),
) -> None:
    drop = set(drop_paths)
    for route in source_app.router.routes:
        path = getattr(route, "path", None)
        if path in drop:
            continue
        app.router.routes.append(route)


app = FastAPI()
apply_cors_middleware(app)
add_correlation_id_middleware(app)
add_error_handlers(app)

_attach_routes(app, device_service.app)
_attach_routes(app, operator_service.app)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return build_health_response(SERVICE_NAME)
