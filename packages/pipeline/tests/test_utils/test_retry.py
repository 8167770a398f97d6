"""
tests/test_utils/test_retry.py — retry_async / with_retry.
"""

from __future__ import annotations

import pytest

from vangdata_shared.errors import ExternalFetchError, TransientFetchError

from vangdata_pipeline.utils.retry import retry_async, with_retry


class Flaky:
    def __init__(self, failures: int, exc: Exception) -> None:
        self.failures = failures
        self.exc = exc
        self.calls = 0

    async def __call__(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return value


@pytest.mark.asyncio
async def test_retries_until_success():
    fn = Flaky(2, TransientFetchError("503"))

    result = await retry_async(fn, "ok", max_attempts=3, base_delay=0, retry_on=TransientFetchError)

    assert result == "ok"
    assert fn.calls == 3


@pytest.mark.asyncio
async def test_reraises_after_exhaustion():
    fn = Flaky(5, TransientFetchError("503"))

    with pytest.raises(TransientFetchError):
        await retry_async(fn, "ok", max_attempts=3, base_delay=0, retry_on=TransientFetchError)

    assert fn.calls == 3


@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    fn = Flaky(1, ExternalFetchError("404"))

    with pytest.raises(ExternalFetchError):
        await retry_async(fn, "ok", max_attempts=3, base_delay=0, retry_on=TransientFetchError)

    assert fn.calls == 1


@pytest.mark.asyncio
async def test_decorator_form():
    calls = []

    @with_retry(max_attempts=2, base_delay=0, retry_on=ValueError)
    async def parse(raw):
        calls.append(raw)
        if len(calls) == 1:
            raise ValueError("first")
        return int(raw)

    assert await parse("7") == 7
    assert calls == ["7", "7"]
