"""
procgate.functions.resolver

Configuration Resolver: cache-first loading of validated function definitions.

Responsibilities:
- `load()`: Configuration Cache, then Credential Store, then validate, then fill the cache.
- Enforce the active filter on both the hit and the miss path.
- Batch helpers used by warmup and the operator surface (reload/load_many/exists/warm).
"""

from __future__ import annotations

from procgate.cache.configuration import ConfigurationCache
from procgate.errors import ErrorKind
from procgate.functions.definitions import FunctionDefinition
from procgate.functions.validation import validate_definition
from procgate.observability.logging import get_logger
from procgate.results import Err, Ok, Result, err
from procgate.store import CredentialStore

log = get_logger(__name__)


class ConfigurationResolver:
    def __init__(self, *, cache: ConfigurationCache, store: CredentialStore) -> None:
        self._cache = cache
        self._store = store

    async def load(
        self, identifier: str, *, active_only: bool = True
    ) -> Result[FunctionDefinition]:
        cached = await self._cache.get(identifier)
        if cached is not None:
            # A cached active flag may lag the store by at most the cache TTL.
            if active_only and not cached.is_active:
                return err(
                    ErrorKind.function_disabled,
                    f"Function '{identifier}' is disabled",
                    {"function": identifier},
                )
            return Ok(cached)

        if active_only:
            definition = await self._store.find_active_function_by_identifier(identifier)
        else:
            definition = await self._store.find_function_by_identifier(identifier)

        if definition is None:
            return err(
                ErrorKind.function_not_found,
                f"Function '{identifier}' not found",
                {"function": identifier},
            )

        issues = validate_definition(definition)
        if issues:
            log.error(
                "function_configuration_invalid",
                function=identifier,
                function_id=definition.id,
                issues=[i.to_dict() for i in issues],
            )
            return err(
                ErrorKind.configuration_invalid,
                f"Function '{identifier}' has an invalid configuration",
                {"function": identifier, "issues": [i.to_dict() for i in issues]},
            )

        await self._cache.put(definition)
        return Ok(definition)

    async def reload(self, identifier: str) -> Result[FunctionDefinition]:
        """Drop the cached entry and load straight from the store."""
        await self._cache.forget(identifier)
        return await self.load(identifier, active_only=False)

    async def exists(self, identifier: str) -> bool:
        if await self._cache.has(identifier):
            return True
        return await self._store.find_active_function_by_identifier(identifier) is not None

    async def load_many(
        self, identifiers: list[str], *, active_only: bool = True
    ) -> dict[str, FunctionDefinition]:
        loaded: dict[str, FunctionDefinition] = {}
        for identifier in identifiers:
            result = await self.load(identifier, active_only=active_only)
            if isinstance(result, Err):
                log.warning("function_load_skipped", function=identifier, reason=result.kind.value)
                continue
            loaded[identifier] = result.value
        return loaded

    async def warm(self, identifiers: list[str] | None = None) -> int:
        """
        Preload definitions into the cache; with no identifiers, every active function.
        Returns how many definitions are now cached.
        """
        if identifiers is None:
            identifiers = await self._store.list_active_function_identifiers()
        warmed = await self.load_many(identifiers)
        log.info("configuration_cache_warmed", requested=len(identifiers), cached=len(warmed))
        return len(warmed)


# --- Module Notes -----------------------------------------------------------
# Invalid definitions are never cached, so fixing the row in the store takes effect on
# the very next request without an explicit invalidation.
