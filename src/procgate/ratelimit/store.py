"""
procgate.ratelimit.store

Rate Window Store: time-ordered sets of admitted-request timestamps per caller.

Responsibilities:
- Record a uniquely-tagged timestamp, pruning expired entries and refreshing expiry.
- Count entries inside a window, pruning lazily on read.
- Report the earliest surviving entry (for reset hints) and drop a caller's window.
"""

from __future__ import annotations

import bisect
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as redis


class RateWindowStore(Protocol):
    async def add(self, key: str, timestamp: float, member: str, *, window: int, ttl: int) -> int:
        """Prune entries at or before `timestamp - window`, add one, return the window count."""
        ...

    async def count(self, key: str, *, window_start: float, now: float) -> int: ...

    async def earliest(self, key: str) -> float | None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryRateWindowStore:
    """
    Single-process store. Each call completes without awaiting, so the event loop
    never interleaves two mutations of the same window.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._windows: dict[str, list[tuple[float, str]]] = {}
        self._expires: dict[str, float] = {}
        self._clock = clock

    def _live(self, key: str) -> list[tuple[float, str]]:
        expires = self._expires.get(key)
        if expires is not None and expires <= self._clock():
            self._windows.pop(key, None)
            self._expires.pop(key, None)
        return self._windows.setdefault(key, [])

    @staticmethod
    def _prune(entries: list[tuple[float, str]], window_start: float) -> None:
        # Scores at or before window_start fall out (inclusive, like ZREMRANGEBYSCORE 0 start).
        cut = bisect.bisect_right(entries, window_start, key=lambda e: e[0])
        del entries[:cut]

    async def add(self, key: str, timestamp: float, member: str, *, window: int, ttl: int) -> int:
        entries = self._live(key)
        window_start = timestamp - window
        self._prune(entries, window_start)
        bisect.insort(entries, (timestamp, member))
        self._expires[key] = self._clock() + ttl
        return sum(1 for ts, _ in entries if window_start < ts <= timestamp)

    async def count(self, key: str, *, window_start: float, now: float) -> int:
        entries = self._live(key)
        self._prune(entries, window_start)
        return sum(1 for ts, _ in entries if ts <= now)

    async def earliest(self, key: str) -> float | None:
        entries = self._live(key)
        return entries[0][0] if entries else None

    async def delete(self, key: str) -> None:
        self._windows.pop(key, None)
        self._expires.pop(key, None)


class RedisRateWindowStore:
    """
    Sorted-set store shared by every gateway worker (score = timestamp).
    """

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    async def add(self, key: str, timestamp: float, member: str, *, window: int, ttl: int) -> int:
        window_start = timestamp - window
        # MULTI/EXEC keeps prune + insert + count atomic with respect to other workers.
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zadd(key, {member: timestamp})
            pipe.expire(key, ttl)
            pipe.zcount(key, f"({window_start}", timestamp)
            results = await pipe.execute()
        return int(results[-1])

    async def count(self, key: str, *, window_start: float, now: float) -> int:
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcount(key, f"({window_start}", now)
            results = await pipe.execute()
        return int(results[-1])

    async def earliest(self, key: str) -> float | None:
        head = await self._redis.zrange(key, 0, 0, withscores=True)
        if not head:
            return None
        _, score = head[0]
        return float(score)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)


# --- Module Notes -----------------------------------------------------------
# Between a caller's count check and its hit another worker may add an entry, so a
# window can briefly hold more entries than the budget; admission itself never
# happens at or above the threshold as observed by the check.
