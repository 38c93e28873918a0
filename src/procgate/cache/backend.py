"""
procgate.cache.backend

Key/value storage behind the configuration and permission caches.

Responsibilities:
- Define the `CacheBackend` boundary (get/set/delete, glob deletes, counts, ping).
- Provide an in-process TTL backend for single-worker deployments and tests.
- Provide a Redis backend over a shared client (JSON values, SET EX, SCAN deletes).
"""

from __future__ import annotations

import fnmatch
import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import redis.asyncio as redis


class CacheBackend(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: int) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def delete_matching(self, pattern: str) -> int: ...

    async def count(self, pattern: str) -> int: ...

    async def ping(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: Any
    expires_at: float

    def expired(self, now: float) -> bool:
        return self.expires_at <= now


class InMemoryCacheBackend:
    """
    Process-local backend. Expired entries read as absent and are dropped lazily.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._clock = clock

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            self._entries.pop(key, None)
            return None
        return entry.value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_matching(self, pattern: str) -> int:
        # Snapshot keys first; readers on other tasks just observe a miss.
        doomed = [k for k in list(self._entries) if fnmatch.fnmatchcase(k, pattern)]
        for key in doomed:
            self._entries.pop(key, None)
        return len(doomed)

    async def count(self, pattern: str) -> int:
        now = self._clock()
        return sum(
            1
            for k, e in list(self._entries.items())
            if fnmatch.fnmatchcase(k, pattern) and not e.expired(now)
        )

    async def ping(self) -> bool:
        return True


class RedisCacheBackend:
    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    async def get(self, key: str) -> Any | None:
        raw = await self._redis.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        await self._redis.set(key, json.dumps(value, separators=(",", ":")), ex=ttl)

    async def delete(self, key: str) -> bool:
        return bool(await self._redis.delete(key))

    async def delete_matching(self, pattern: str) -> int:
        # SCAN instead of KEYS so a large keyspace never blocks the server.
        removed = 0
        batch: list[str] = []
        async for key in self._redis.scan_iter(match=pattern, count=500):
            batch.append(key)
            if len(batch) >= 500:
                removed += await self._redis.delete(*batch)
                batch = []
        if batch:
            removed += await self._redis.delete(*batch)
        return removed

    async def count(self, pattern: str) -> int:
        n = 0
        async for _ in self._redis.scan_iter(match=pattern, count=500):
            n += 1
        return n

    async def ping(self) -> bool:
        return bool(await self._redis.ping())


# --- Module Notes -----------------------------------------------------------
# Values must be JSON-serializable so both backends behave identically; callers
# convert domain objects to plain dicts before writing.
