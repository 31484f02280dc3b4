from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time
from typing import AsyncIterator
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mongodrop.apps.api.errors import (
    mongodrop_exception_handler,
    routing_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from mongodrop.apps.api.routes.backups import router as backups_router
from mongodrop.apps.api.routes.health import router as health_router
from mongodrop.core.config import get_settings
from mongodrop.core.errors import MongodropError
from mongodrop.core.logging import configure_logging
from mongodrop.services.coordinator import BackupCoordinator, initialize


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Wire the coordinator lazily so importing the app never requires configuration.
    if app.state.coordinator is None:
        app.state.coordinator = initialize(get_settings())
    coordinator: BackupCoordinator = app.state.coordinator
    coordinator.start()
    logger.info("backup_service_started")
    try:
        yield
    finally:
        await coordinator.aclose()
        logger.info("backup_service_stopped")


def create_app(coordinator: BackupCoordinator | None = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title="mongodrop", lifespan=lifespan)
    app.state.coordinator = coordinator

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = (time.monotonic() - start) * 1000.0
        logger.debug(
            "request_completed method=%s path=%s status=%s latency_ms=%.1f",
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
        )
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _routing_exception_handler(request: Request, exc: StarletteHTTPException):
        return await routing_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(MongodropError)
    async def _mongodrop_exception_handler(request: Request, exc: MongodropError):
        return await mongodrop_exception_handler(request, exc)

    app.include_router(health_router)
    app.include_router(backups_router)

    return app


app = create_app()
