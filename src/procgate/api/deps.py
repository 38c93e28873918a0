"""
procgate.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and DB sessions.
- Encapsulate app.state access patterns (sessionmaker, gateway services).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from procgate.cache.coordinator import CacheCoordinator
from procgate.gateway.pipeline import GatewayPipeline
from procgate.services.container import GatewayServices


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmaker is created in the lifespan of `procgate.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


def services_from_app(request: Request) -> GatewayServices:
    return request.app.state.services  # type: ignore[attr-defined]


def pipeline_dep(services: GatewayServices = Depends(services_from_app)) -> GatewayPipeline:
    return services.pipeline


def coordinator_dep(services: GatewayServices = Depends(services_from_app)) -> CacheCoordinator:
    return services.coordinator


# --- Module Notes -----------------------------------------------------------
# The gateway pipeline is built once per process; nothing request-scoped is injected
# into it beyond the `GatewayRequest` itself.
