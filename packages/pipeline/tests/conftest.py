"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  mock_http()          — respx router for faking upstream HTTP responses
  fast_retries()       — zero backoff delays so retry tests do not sleep
  vang_today_history() — builds a vang.today summary payload for given days
  make_job()           — inserts a backfill job through BackfillManager

The in-memory Supabase fake (fake_supabase, seed_source) lives in the
repository-root conftest.py.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
import respx

from vangdata_shared.config import settings

from vangdata_pipeline.backfill import executor as executor_module
from vangdata_pipeline.backfill.rate_limiter import reset_rate_limiters


@pytest.fixture(autouse=True)
def _isolate_process_state():
    """Rate limiters and executor tasks are process-wide; clear them per test."""
    reset_rate_limiters()
    yield
    reset_rate_limiters()
    executor_module._running.clear()


@pytest.fixture
def fast_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "backfill_max_fetch_retries", 3)
    monkeypatch.setattr(settings, "backfill_retry_base_delay", 0.0)
    monkeypatch.setattr(settings, "backfill_retry_max_delay", 0.0)


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, json={...}))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def build_vang_today_payload(
    code: str,
    days: list[date],
    *,
    buy: float = 84_500_000,
    sell: float = 86_500_000,
) -> dict[str, Any]:
    """A successful vang.today `action=summary` response for one type code."""
    return {
        "success": True,
        "type": code,
        "days": len(days),
        "history": [
            {
                "date": day.isoformat(),
                "prices": {code: {"name": code, "buy": buy, "sell": sell, "change_buy": 0}},
            }
            for day in days
        ],
    }


@pytest.fixture
def vang_today_history():
    return build_vang_today_payload


@pytest.fixture
def make_job(seed_source):
    """
    Create a job through the manager and return its id.

    make_job(days=3)                                  full_historical, types "all"
    make_job(job_type="date_range", config={...})     any config
    """
    from vangdata_pipeline.backfill.manager import BackfillManager

    def _make(
        *,
        source_id: str | None = None,
        job_type: str = "full_historical",
        config: dict[str, Any] | None = None,
        days: int = 3,
        types: str | list[str] = "all",
        **source_kwargs: Any,
    ) -> str:
        sid = source_id or seed_source(**source_kwargs)
        payload = config if config is not None else {"days": days, "types": types}
        return BackfillManager().create_job(sid, job_type, payload, requester="user-1")

    return _make
