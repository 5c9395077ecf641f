"""Drydock FastAPI application."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from drydock import __version__
from drydock.api import router as api_router
from drydock.clients.health import HealthProbe
from drydock.config import Settings, get_settings
from drydock.errors import DrydockError, ValidationError
from drydock.services.pool.lifecycle import open_pool_manager
from drydock.services.pool.manager import PoolManager

if TYPE_CHECKING:
    from drydock.providers.base import Provider
    from drydock.store.base import PoolStore

logger = structlog.get_logger()


def create_app(
    settings: Settings | None = None,
    *,
    store: "PoolStore | None" = None,
    provider: "Provider | None" = None,
    probe: HealthProbe | None = None,
) -> FastAPI:
    """Create the application.

    With an injected ``store`` the pool is wired immediately and the lifespan
    does not touch the database (tests, embedding). Otherwise the lifespan
    opens the configured database and provider.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "pool", None) is not None:
            yield
            return

        async with open_pool_manager(settings) as pool:
            app.state.pool = pool
            logger.info("drydock.started", version=__version__)
            yield
            app.state.pool = None
        logger.info("drydock.stopped")

    app = FastAPI(
        title="Drydock",
        description="Pre-booted server pool manager",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pool = None

    if store is not None:
        if provider is None or probe is None:
            raise ValueError("provider and probe are required when injecting a store")
        app.state.pool = PoolManager.build(
            settings,
            store=store,
            provider=provider,
            probe=probe,
        )

    @app.exception_handler(DrydockError)
    async def drydock_error_handler(request: Request, exc: DrydockError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "api.error",
                path=request.url.path,
                code=exc.code,
                message=exc.message,
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError(
            "Invalid request body",
            details={"errors": jsonable_encoder(exc.errors())},
        )
        return JSONResponse(status_code=error.status_code, content=error.to_response())

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(api_router)
    return app
