"""
tests.test_ratelimit

Sliding-window limiter over the in-process window store.
"""

from __future__ import annotations

import pytest

from procgate.ratelimit.limiter import RateLimiter, RateStatus, parse_budget
from procgate.ratelimit.store import InMemoryRateWindowStore
from tests.conftest import FakeClock


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(InMemoryRateWindowStore(clock=clock), clock=clock)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(60, 60), ("100", 100), ("10/minute", 10), ("junk", 60), (0, 60), (None, 60), (True, 60)],
)
def test_parse_budget(raw, expected) -> None:
    assert parse_budget(raw, 60) == expected


@pytest.mark.asyncio
async def test_admits_budget_then_denies(limiter: RateLimiter) -> None:
    for _ in range(3):
        assert await limiter.admit("client:1", 3, 60) is True
        await limiter.hit("client:1", 60)

    assert await limiter.admit("client:1", 3, 60) is False
    assert await limiter.remaining("client:1", 3, 60) == 0
    # Callers are independent.
    assert await limiter.admit("client:2", 3, 60) is True


@pytest.mark.asyncio
async def test_window_slides(limiter: RateLimiter, clock: FakeClock) -> None:
    await limiter.hit("client:1", 60)
    clock.advance(30)
    await limiter.hit("client:1", 60)
    assert await limiter.attempts("client:1", 60) == 2

    clock.advance(30)
    # The first hit sits exactly on the window edge and falls out.
    assert await limiter.attempts("client:1", 60) == 1
    assert await limiter.admit("client:1", 2, 60) is True

    clock.advance(30)
    assert await limiter.attempts("client:1", 60) == 0


@pytest.mark.asyncio
async def test_status_reports_retry_after_when_exhausted(
    limiter: RateLimiter, clock: FakeClock
) -> None:
    await limiter.hit("client:1", 60)
    clock.advance(20)

    status = await limiter.status("client:1", 1, 60)

    assert status == RateStatus(
        limit=1, remaining=0, reset_at=int(clock.now) + 40, retry_after=40
    )
    headers = status.headers()
    assert headers["Retry-After"] == "40"
    assert headers["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_clear_resets_a_single_caller(limiter: RateLimiter) -> None:
    await limiter.hit("client:1", 60)
    await limiter.hit("client:2", 60)

    await limiter.clear("client:1")

    assert await limiter.attempts("client:1", 60) == 0
    assert await limiter.attempts("client:2", 60) == 1


class _BrokenStore:
    async def add(self, *args, **kwargs):
        raise ConnectionError("redis down")

    async def count(self, *args, **kwargs):
        raise ConnectionError("redis down")

    async def earliest(self, key):
        raise ConnectionError("redis down")

    async def delete(self, key):
        raise ConnectionError("redis down")


@pytest.mark.asyncio
async def test_store_outage_admits(clock: FakeClock) -> None:
    limiter = RateLimiter(_BrokenStore(), clock=clock)

    assert await limiter.admit("client:1", 1, 60) is True
    assert await limiter.hit("client:1", 60) == 0
    status = await limiter.status("client:1", 5, 60)
    assert status.remaining == 5
