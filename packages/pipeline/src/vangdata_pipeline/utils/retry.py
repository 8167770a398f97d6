"""
utils/retry.py — Exponential-backoff retries for upstream price API calls.

Uses tenacity under the hood. Each retry is logged with structlog so flaky
sources are visible without failing the backfill.

Usage:
    from vangdata_pipeline.utils.retry import retry_async, with_retry

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=TransientFetchError)
    async def fetch_day(day: date) -> dict: ...

    # Per-call knobs taken from settings or a crawler_sources row:
    payload = await retry_async(
        source.fetch_chunk, day, codes,
        max_attempts=settings.backfill_max_fetch_retries,
        retry_on=TransientFetchError,
    )
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])

RetryOn = type[BaseException] | tuple[type[BaseException], ...]


def _log_before_sleep(name: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    def _before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        log.warning(
            "retry_attempt",
            function=name,
            attempt=state.attempt_number,
            max_attempts=max_attempts,
            next_delay_s=round(state.next_action.sleep, 2) if state.next_action else None,
            last_error=str(exc) if exc else None,
        )

    return _before_sleep


async def retry_async(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: RetryOn = Exception,
    **kwargs: Any,
) -> T:
    """
    Await fn(*args, **kwargs), retrying on `retry_on` with exponential backoff.

    Delays: base_delay * 2^(attempt-1), capped at max_delay. The last
    exception is re-raised once attempts are exhausted; exceptions outside
    `retry_on` propagate immediately.
    """
    name = getattr(fn, "__qualname__", repr(fn))
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=base_delay, max=max_delay),
            retry=retry_if_exception_type(retry_on),
            before_sleep=_log_before_sleep(name, max_attempts),
            reraise=True,
        ):
            with attempt:
                return await fn(*args, **kwargs)
    except retry_on as exc:
        log.error("retry_exhausted", function=name, max_attempts=max_attempts, error=str(exc))
        raise
    raise AssertionError("unreachable")  # pragma: no cover


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: RetryOn = Exception,
) -> Callable[[F], F]:
    """Decorator form of retry_async."""

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await retry_async(
                fn,
                *args,
                max_attempts=max_attempts,
                base_delay=base_delay,
                max_delay=max_delay,
                retry_on=retry_on,
                **kwargs,
            )

        return wrapper  # type: ignore[return-value]

    return decorator
