"""
procgate.cache.configuration

Configuration Cache: validated function definitions keyed by identifier.

Responsibilities:
- Read/write `FunctionDefinition` snapshots under `api_config:{identifier}`.
- Degrade backend failures to "miss" / "skipped write" so the request continues.
- Report counts for the coordinator's stats and health views.
"""

from __future__ import annotations

from typing import Any

from procgate.cache.backend import CacheBackend
from procgate.functions.definitions import FunctionDefinition
from procgate.observability.logging import get_logger

log = get_logger(__name__)

CONFIG_PREFIX = "api_config:"


class ConfigurationCache:
    def __init__(self, backend: CacheBackend, *, ttl: int = 3600) -> None:
        self._backend = backend
        self.ttl = ttl

    @staticmethod
    def key(identifier: str) -> str:
        return f"{CONFIG_PREFIX}{identifier}"

    async def get(self, identifier: str) -> FunctionDefinition | None:
        try:
            raw = await self._backend.get(self.key(identifier))
        except Exception as e:
            log.warning("config_cache_read_failed", identifier=identifier, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return FunctionDefinition.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            # Snapshot from an older build; re-resolve and let put() overwrite it.
            log.warning("config_cache_entry_corrupt", identifier=identifier, error=str(e))
            return None

    async def put(self, definition: FunctionDefinition, *, ttl: int | None = None) -> bool:
        try:
            await self._backend.set(
                self.key(definition.identifier), definition.to_dict(), ttl or self.ttl
            )
        except Exception as e:
            log.warning(
                "config_cache_write_failed", identifier=definition.identifier, error=str(e)
            )
            return False
        return True

    async def has(self, identifier: str) -> bool:
        return await self.get(identifier) is not None

    async def forget(self, identifier: str) -> bool:
        return await self._backend.delete(self.key(identifier))

    async def flush(self) -> int:
        return await self._backend.delete_matching(f"{CONFIG_PREFIX}*")

    async def ping(self) -> bool:
        return await self._backend.ping()

    async def stats(self) -> dict[str, Any]:
        # Raises on backend failure; the coordinator turns that into an unhealthy check.
        return {
            "total_cached": await self._backend.count(f"{CONFIG_PREFIX}*"),
            "cache_prefix": CONFIG_PREFIX,
            "default_ttl": self.ttl,
        }


# --- Module Notes -----------------------------------------------------------
# The `ttl` bounds how long a cached `is_active` flag may disagree with the store
# when an edit skips `CacheCoordinator.invalidate_function()`.
