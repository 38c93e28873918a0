"""
procgate.ratelimit.limiter

Rate Limiter: moving-window quota per caller identity.

Responsibilities:
- `admit()`: pure count check against the pruned window (records nothing).
- `hit()`: record one admitted call.
- `remaining()` / `reset_in()`: read-only projections for response headers.
- Parse "count/period" budget shorthand into an absolute count.
"""

from __future__ import annotations

import math
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from procgate.observability.logging import get_logger
from procgate.ratelimit.store import RateWindowStore

log = get_logger(__name__)

# Extra lifetime of a window structure beyond the window itself.
EXPIRY_GRACE_SECONDS = 10


def parse_budget(value: int | str | None, default: int) -> int:
    """
    `60` / `"60"` / `"60/minute"` -> 60. Anything unparseable or non-positive -> `default`.
    """
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    head = str(value).strip().split("/", 1)[0].strip()
    try:
        parsed = int(head)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


@dataclass(frozen=True, slots=True)
class RateStatus:
    limit: int
    remaining: int
    reset_at: int
    retry_after: int

    def headers(self) -> dict[str, str]:
        out = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if self.remaining <= 0:
            out["Retry-After"] = str(self.retry_after)
        return out


class RateLimiter:
    def __init__(
        self,
        store: RateWindowStore,
        *,
        prefix: str = "rate_limit:",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._clock = clock

    def _key(self, caller_key: str) -> str:
        return f"{self._prefix}{caller_key}"

    async def attempts(self, caller_key: str, window: int) -> int:
        now = self._clock()
        return await self._store.count(self._key(caller_key), window_start=now - window, now=now)

    async def admit(self, caller_key: str, budget: int, window: int) -> bool:
        try:
            return await self.attempts(caller_key, window) < budget
        except Exception as e:
            # Quota tracking is best-effort; an unreachable store must not take the gateway down.
            log.warning("rate_window_read_failed", caller=caller_key, error=str(e))
            return True

    async def hit(self, caller_key: str, window: int) -> int:
        now = self._clock()
        member = f"{now}:{uuid.uuid4().hex}"
        try:
            return await self._store.add(
                self._key(caller_key),
                now,
                member,
                window=window,
                ttl=window + EXPIRY_GRACE_SECONDS,
            )
        except Exception as e:
            log.warning("rate_window_write_failed", caller=caller_key, error=str(e))
            return 0

    async def remaining(self, caller_key: str, budget: int, window: int) -> int:
        return max(0, budget - await self.attempts(caller_key, window))

    async def reset_in(self, caller_key: str, window: int) -> int:
        earliest = await self._store.earliest(self._key(caller_key))
        if earliest is None:
            return 0
        return max(0, math.ceil(earliest + window - self._clock()))

    async def clear(self, caller_key: str) -> None:
        await self._store.delete(self._key(caller_key))

    async def status(self, caller_key: str, budget: int, window: int) -> RateStatus:
        try:
            remaining = await self.remaining(caller_key, budget, window)
            reset_in = await self.reset_in(caller_key, window)
        except Exception as e:
            log.warning("rate_window_read_failed", caller=caller_key, error=str(e))
            remaining, reset_in = budget, 0
        now = self._clock()
        return RateStatus(
            limit=budget,
            remaining=remaining,
            reset_at=int(now) + reset_in,
            retry_after=reset_in,
        )


# --- Module Notes -----------------------------------------------------------
# An admitted-then-abandoned request still consumes budget: hit() is never undone.
