"""Tests for the /cron/scheduler entry point."""

from __future__ import annotations

import pytest

from vangdata_shared.config import settings

CRON_SECRET = "cron-s3cret"


@pytest.fixture()
def cron_secret(monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", CRON_SECRET)
    return CRON_SECRET


def test_missing_secret_header_is_401(client, cron_secret):
    assert client.get("/cron/scheduler").status_code == 401


def test_wrong_secret_is_401(client, cron_secret):
    response = client.get("/cron/scheduler", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401


def test_unset_secret_rejects_everything(client, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "")
    response = client.get("/cron/scheduler", headers={"Authorization": "Bearer "})
    assert response.status_code == 401


def test_tick_returns_counts(client, cron_secret, fake_supabase):
    fake_supabase.seed(
        "automations",
        [
            {"id": "a1", "name": "broken", "type": "daily_price_summary", "schedule": "nonsense", "is_active": True},
            {"id": "a2", "name": "paused", "type": "daily_price_summary", "schedule": "0 * * * *", "is_active": False},
        ],
    )

    response = client.get("/cron/scheduler", headers={"Authorization": f"Bearer {cron_secret}"})

    assert response.status_code == 200
    assert response.json() == {"ran": 0, "skipped": 1, "failed": 0}


def test_tick_runs_hourly_summary(client, cron_secret, fake_supabase):
    fake_supabase.seed(
        "automations",
        [{"id": "a1", "name": "summary", "type": "daily_price_summary", "schedule": "0 * * * *", "is_active": True}],
    )

    response = client.get("/cron/scheduler", headers={"Authorization": f"Bearer {cron_secret}"})

    assert response.json() == {"ran": 1, "skipped": 0, "failed": 0}
    assert fake_supabase.rows("automations")[0]["last_run_at"] is not None


def test_non_ascii_secret_header_is_401(client, cron_secret):
    response = client.get("/cron/scheduler", headers={"Authorization": b"Bearer cr\xe9on"})
    assert response.status_code == 401
