"""
procgate.cache.permissions

Permission Cache: memoized role grants, client role sets, and function-access results.

Responsibilities:
- `role_perm:{role_id}`: permission grants held by a role.
- `client_perm:{client_id}`: role ids assigned to a client.
- `func_perm:{client_id}:{function_id}`: boolean authorization outcome.
- Scoped deletes per client, per role, and per function.
"""

from __future__ import annotations

from typing import Any

from procgate.authz.models import PermissionGrant
from procgate.cache.backend import CacheBackend
from procgate.observability.logging import get_logger

log = get_logger(__name__)

ROLE_PREFIX = "role_perm:"
CLIENT_PREFIX = "client_perm:"
FUNCTION_PREFIX = "func_perm:"


class PermissionCache:
    def __init__(self, backend: CacheBackend, *, ttl: int = 1800) -> None:
        self._backend = backend
        self.ttl = ttl

    async def _read(self, key: str) -> Any | None:
        try:
            return await self._backend.get(key)
        except Exception as e:
            log.warning("permission_cache_read_failed", key=key, error=str(e))
            return None

    async def _write(self, key: str, value: Any) -> bool:
        try:
            await self._backend.set(key, value, self.ttl)
        except Exception as e:
            log.warning("permission_cache_write_failed", key=key, error=str(e))
            return False
        return True

    async def get_role_permissions(self, role_id: int) -> list[PermissionGrant] | None:
        raw = await self._read(f"{ROLE_PREFIX}{role_id}")
        if raw is None:
            return None
        return [PermissionGrant.from_list(item) for item in raw]

    async def put_role_permissions(self, role_id: int, grants: list[PermissionGrant]) -> bool:
        return await self._write(f"{ROLE_PREFIX}{role_id}", [g.to_list() for g in grants])

    async def get_client_roles(self, client_id: int) -> frozenset[int] | None:
        raw = await self._read(f"{CLIENT_PREFIX}{client_id}")
        return frozenset(int(r) for r in raw) if raw is not None else None

    async def put_client_roles(self, client_id: int, role_ids: frozenset[int]) -> bool:
        return await self._write(f"{CLIENT_PREFIX}{client_id}", sorted(role_ids))

    async def get_function_access(self, client_id: int, function_id: int) -> bool | None:
        raw = await self._read(f"{FUNCTION_PREFIX}{client_id}:{function_id}")
        return bool(raw) if raw is not None else None

    async def put_function_access(self, client_id: int, function_id: int, allowed: bool) -> bool:
        return await self._write(f"{FUNCTION_PREFIX}{client_id}:{function_id}", allowed)

    async def forget_client(self, client_id: int) -> int:
        removed = int(await self._backend.delete(f"{CLIENT_PREFIX}{client_id}"))
        removed += await self._backend.delete_matching(f"{FUNCTION_PREFIX}{client_id}:*")
        return removed

    async def forget_role(self, role_id: int) -> int:
        return int(await self._backend.delete(f"{ROLE_PREFIX}{role_id}"))

    async def forget_function(self, function_id: int) -> int:
        return await self._backend.delete_matching(f"{FUNCTION_PREFIX}*:{function_id}")

    async def flush(self) -> int:
        removed = 0
        for prefix in (ROLE_PREFIX, CLIENT_PREFIX, FUNCTION_PREFIX):
            removed += await self._backend.delete_matching(f"{prefix}*")
        return removed

    async def ping(self) -> bool:
        return await self._backend.ping()

    async def stats(self) -> dict[str, Any]:
        roles = await self._backend.count(f"{ROLE_PREFIX}*")
        clients = await self._backend.count(f"{CLIENT_PREFIX}*")
        functions = await self._backend.count(f"{FUNCTION_PREFIX}*")
        return {
            "role_permissions_cached": roles,
            "client_permissions_cached": clients,
            "function_permissions_cached": functions,
            "total_cached": roles + clients + functions,
            "default_ttl": self.ttl,
        }


# --- Module Notes -----------------------------------------------------------
# Reads and writes swallow backend errors; deletes propagate so the coordinator can
# report a failed invalidation instead of silently leaving stale grants behind.
