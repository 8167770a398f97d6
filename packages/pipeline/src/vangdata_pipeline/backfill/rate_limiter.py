"""
backfill/rate_limiter.py — Per-source sliding-window rate limiting.

Each crawler_sources row declares rate_limit_per_minute. All executors in a
process that talk to the same source share one SlidingWindowRateLimiter, so
concurrent jobs against one source cannot exceed its quota together.

The window holds the timestamps of requests made in the last 60 seconds.
When it is full, acquire() sleeps until the oldest timestamp leaves the
window (plus a small buffer) and tries again.

Usage:
    limiter = get_rate_limiter(source.id, source.rate_limit_per_minute)
    await limiter.acquire()
    response = await client.get(url)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger(__name__)

WINDOW_SECONDS = 60.0
BUFFER_SECONDS = 0.1


class SlidingWindowRateLimiter:
    """At most `requests_per_minute` acquisitions in any 60-second window."""

    def __init__(
        self,
        source_id: str,
        requests_per_minute: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be >= 1")
        self.source_id = source_id
        self.requests_per_minute = requests_per_minute
        self._clock = clock
        self._sleep = sleep
        self._stamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float) -> None:
        while self._stamps and self._stamps[0] <= now - WINDOW_SECONDS:
            self._stamps.popleft()

    def wait_time(self) -> float:
        """Seconds until the next acquisition would be admitted (0 if now)."""
        now = self._clock()
        self._evict(now)
        if len(self._stamps) < self.requests_per_minute:
            return 0.0
        return max(0.0, self._stamps[0] + WINDOW_SECONDS - now)

    def would_exceed(self) -> bool:
        return self.wait_time() > 0

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)
                if len(self._stamps) < self.requests_per_minute:
                    self._stamps.append(now)
                    return
                delay = self._stamps[0] + WINDOW_SECONDS - now + BUFFER_SECONDS
                log.debug(
                    "rate_limit_wait",
                    source_id=self.source_id,
                    delay_s=round(delay, 3),
                    limit=self.requests_per_minute,
                )
                await self._sleep(delay)

    def reset(self) -> None:
        self._stamps.clear()


# ---------------------------------------------------------------------------
# Process-wide registry keyed by source id
# ---------------------------------------------------------------------------
_limiters: dict[str, SlidingWindowRateLimiter] = {}


def get_rate_limiter(source_id: str, requests_per_minute: int) -> SlidingWindowRateLimiter:
    """
    Return the shared limiter for a source, creating it on first use.

    If the catalogue's limit changed since the limiter was created, the
    limiter adopts the new limit but keeps its request history.
    """
    limiter = _limiters.get(source_id)
    if limiter is None:
        limiter = SlidingWindowRateLimiter(source_id, requests_per_minute)
        _limiters[source_id] = limiter
    elif limiter.requests_per_minute != requests_per_minute:
        log.info(
            "rate_limit_changed",
            source_id=source_id,
            old=limiter.requests_per_minute,
            new=requests_per_minute,
        )
        limiter.requests_per_minute = max(1, requests_per_minute)
    return limiter


def reset_rate_limiters() -> None:
    _limiters.clear()
