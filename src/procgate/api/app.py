"""
procgate.api.app

FastAPI app factory for the procgate gateway service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Initialize and dispose shared infrastructure (DB engine, caches, outbound clients).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from procgate.api.routers.dev_auth import router as dev_auth_router
from procgate.api.routers.gateway import gateway_validation_handler
from procgate.api.routers.gateway import router as gateway_router
from procgate.api.routers.health import router as health_router
from procgate.api.routers.internal.router import router as internal_router
from procgate.db.init_db import init_db
from procgate.db.session import create_engine, create_sessionmaker
from procgate.execution import ProcedureExecutor
from procgate.observability.logging import configure_logging, get_logger
from procgate.observability.middleware import RequestContextMiddleware
from procgate.services.container import build_services
from procgate.settings import Settings, get_settings

log = get_logger(__name__)


def create_app(*, settings: Settings, executor: ProcedureExecutor | None = None) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically. Prod should use Alembic migrations.
            await init_db(engine)
        services = build_services(
            settings,
            engine=engine,
            session_factory=app.state.sessionmaker,
            executor=executor,
        )
        app.state.services = services
        try:
            yield
        finally:
            await services.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="procgate",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    # Routers and auth dependencies resolve settings through `get_settings`; pin it to ours.
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(RequestValidationError, gateway_validation_handler)
    app.include_router(health_router, tags=["health"])
    app.include_router(dev_auth_router)
    app.include_router(internal_router)
    app.include_router(gateway_router)
    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; the gateway object graph is assembled in
# `procgate.services.container`, request handling in `procgate.gateway`.
