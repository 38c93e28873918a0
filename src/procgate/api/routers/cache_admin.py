"""
procgate.api.routers.cache_admin

Operator surface over the Cache Coordinator.

Responsibilities:
- Expose cache statistics and health.
- Expose scoped invalidation (function, client, role), full flush, and warmup.
- Require an operator token carrying `cache_admin` (or `admin`).
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from procgate.api.deps import coordinator_dep
from procgate.auth.deps import require_roles
from procgate.cache.coordinator import CacheCoordinator

router = APIRouter(dependencies=[Depends(require_roles("cache_admin"))])


class CacheActionResponse(BaseModel):
    success: bool
    message: str


class WarmupRequest(BaseModel):
    functions: list[str] | None = Field(default=None, max_length=500)


class WarmupResponse(BaseModel):
    warmed: int


def _result(ok: bool, message: str) -> CacheActionResponse:
    if not ok:
        # Coordinator already logged the cause; surface a retryable status.
        raise HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail=f"{message} failed")
    return CacheActionResponse(success=True, message=message)


@router.get("/stats")
async def cache_stats(coordinator: CacheCoordinator = Depends(coordinator_dep)) -> dict[str, Any]:
    return await coordinator.stats()


@router.get("/health")
async def cache_health(coordinator: CacheCoordinator = Depends(coordinator_dep)) -> dict[str, Any]:
    return await coordinator.health()


@router.post("/flush", response_model=CacheActionResponse)
async def flush_caches(
    coordinator: CacheCoordinator = Depends(coordinator_dep),
) -> CacheActionResponse:
    return _result(await coordinator.flush_all(), "Cache flush")


@router.post("/functions/{identifier}/invalidate", response_model=CacheActionResponse)
async def invalidate_function(
    identifier: str,
    coordinator: CacheCoordinator = Depends(coordinator_dep),
) -> CacheActionResponse:
    return _result(
        await coordinator.invalidate_function(identifier),
        f"Function '{identifier}' invalidation",
    )


@router.post("/clients/{client_id}/invalidate", response_model=CacheActionResponse)
async def invalidate_client(
    client_id: int,
    coordinator: CacheCoordinator = Depends(coordinator_dep),
) -> CacheActionResponse:
    return _result(
        await coordinator.invalidate_client(client_id), f"Client {client_id} invalidation"
    )


@router.post("/roles/{role_id}/invalidate", response_model=CacheActionResponse)
async def invalidate_role(
    role_id: int,
    coordinator: CacheCoordinator = Depends(coordinator_dep),
) -> CacheActionResponse:
    return _result(await coordinator.invalidate_role(role_id), f"Role {role_id} invalidation")


@router.post("/warmup", response_model=WarmupResponse)
async def warmup(
    body: WarmupRequest | None = None,
    coordinator: CacheCoordinator = Depends(coordinator_dep),
) -> WarmupResponse:
    warmed = await coordinator.warmup(body.functions if body else None)
    return WarmupResponse(warmed=warmed)
