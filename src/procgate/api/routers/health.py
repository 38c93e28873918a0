"""
procgate.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) checking the credential database and the cache backend.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from procgate.api.deps import coordinator_dep, db_session
from procgate.cache.coordinator import CacheCoordinator

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    coordinator: CacheCoordinator = Depends(coordinator_dep),
) -> dict[str, Any]:
    # The database is required; a degraded cache only slows requests down.
    await session.execute(text("SELECT 1"))
    cache = await coordinator.health()
    return {"status": "ready", "cache": cache["status"]}
