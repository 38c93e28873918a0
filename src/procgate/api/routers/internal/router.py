"""
procgate.api.routers.internal.router

Internal (operator) router aggregator.

Responsibilities:
- Mount operator routers under `/internal/v1`.
"""

from __future__ import annotations

from fastapi import APIRouter

from procgate.api.routers import cache_admin

router = APIRouter(prefix="/internal/v1", tags=["internal"])

## Cache administration is protected by operator role `cache_admin`.
router.include_router(cache_admin.router, prefix="/cache")


# --- Module Notes -----------------------------------------------------------
# Client/role/function CRUD lives outside this service; its write path calls the
# invalidation endpoints here after committing.
