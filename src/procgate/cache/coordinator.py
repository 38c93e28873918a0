"""
procgate.cache.coordinator

Cache Coordinator: the single entry point for cache invalidation and cache introspection.

Responsibilities:
- Fan out invalidation for a changed function, client, or role to the affected slices only.
- Flush both caches on demand (idempotent; concurrent readers just miss).
- Aggregate stats and health, and warm the configuration cache.

The admin write path calls these methods synchronously after its transaction commits.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from procgate.cache.configuration import ConfigurationCache
from procgate.cache.permissions import PermissionCache
from procgate.functions.resolver import ConfigurationResolver
from procgate.observability.logging import get_logger
from procgate.store import CredentialStore

log = get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


class CacheCoordinator:
    def __init__(
        self,
        *,
        configuration: ConfigurationCache,
        permissions: PermissionCache,
        store: CredentialStore,
        resolver: ConfigurationResolver,
        warmup_functions: list[str] | None = None,
    ) -> None:
        self._configuration = configuration
        self._permissions = permissions
        self._store = store
        self._resolver = resolver
        self._warmup_functions = list(warmup_functions or [])

    async def _function_id(self, identifier: str) -> int | None:
        cached = await self._configuration.get(identifier)
        if cached is not None:
            return cached.id
        definition = await self._store.find_function_by_identifier(identifier)
        return definition.id if definition is not None else None

    async def invalidate_function(self, identifier: str, function_id: int | None = None) -> bool:
        try:
            if function_id is None:
                # Resolve before forgetting the config entry, which may be the only place it lives.
                function_id = await self._function_id(identifier)
            await self._configuration.forget(identifier)
            removed = 0
            if function_id is not None:
                removed = await self._permissions.forget_function(function_id)
        except Exception as e:
            log.error("invalidate_function_failed", function=identifier, error=str(e))
            return False
        log.info(
            "function_cache_invalidated",
            function=identifier,
            function_id=function_id,
            permission_entries=removed,
        )
        return True

    async def invalidate_client(self, client_id: int) -> bool:
        try:
            removed = await self._permissions.forget_client(client_id)
        except Exception as e:
            log.error("invalidate_client_failed", client_id=client_id, error=str(e))
            return False
        log.info("client_cache_invalidated", client_id=client_id, permission_entries=removed)
        return True

    async def invalidate_role(self, role_id: int) -> bool:
        try:
            removed = await self._permissions.forget_role(role_id)
            client_ids = await self._store.find_client_ids_for_role(role_id)
            for client_id in client_ids:
                removed += await self._permissions.forget_client(client_id)
        except Exception as e:
            log.error("invalidate_role_failed", role_id=role_id, error=str(e))
            return False
        log.info(
            "role_cache_invalidated",
            role_id=role_id,
            clients=len(client_ids),
            permission_entries=removed,
        )
        return True

    async def flush_all(self) -> bool:
        try:
            config_removed = await self._configuration.flush()
            perm_removed = await self._permissions.flush()
        except Exception as e:
            log.error("cache_flush_failed", error=str(e))
            return False
        log.info("caches_flushed", configuration=config_removed, permission=perm_removed)
        return True

    async def stats(self) -> dict[str, Any]:
        try:
            return {
                "configuration": await self._configuration.stats(),
                "permission": await self._permissions.stats(),
                "timestamp": _now_iso(),
            }
        except Exception as e:
            log.error("cache_stats_failed", error=str(e))
            return {"error": "cache statistics unavailable", "timestamp": _now_iso()}

    async def health(self) -> dict[str, Any]:
        report: dict[str, Any] = {"status": "healthy", "checks": {}}
        caches: tuple[tuple[str, ConfigurationCache | PermissionCache], ...] = (
            ("configuration", self._configuration),
            ("permission", self._permissions),
        )
        for name, cache in caches:
            try:
                if not await cache.ping():
                    raise ConnectionError("cache backend did not answer ping")
                stats = await cache.stats()
                report["checks"][name] = {"status": "ok", "cached_items": stats["total_cached"]}
            except Exception as e:
                report["status"] = "unhealthy"
                report["checks"][name] = {"status": "error", "error": str(e)}
        return report

    async def warmup(self, identifiers: list[str] | None = None) -> int:
        targets = identifiers or self._warmup_functions or None
        return await self._resolver.warm(targets)


# --- Module Notes -----------------------------------------------------------
# Rate windows are quota state rather than a projection of the store, so flush_all()
# leaves them alone; `RateLimiter.clear()` resets a single caller explicitly.
