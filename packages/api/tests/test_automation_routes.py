"""Tests for /admin/automations endpoints."""

from __future__ import annotations


def _seed(fake_supabase, type_="daily_price_summary"):
    fake_supabase.seed(
        "automations",
        [{"id": "auto-1", "name": "summary", "type": type_, "schedule": "0 1 * * *", "is_active": True}],
    )


def test_run_now(client, admin_headers, fake_supabase):
    _seed(fake_supabase)

    response = client.post("/admin/automations/auto-1/run", headers=admin_headers)

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["success"] is True
    assert result["message"].startswith("No snapshots for ")
    log = fake_supabase.rows("automation_logs")[0]
    assert log["log_level"] == "info"
    assert log["meta"]["triggered_by"] == "admin-1"


def test_unknown_automation_is_404(client, admin_headers):
    response = client.post("/admin/automations/missing/run", headers=admin_headers)
    assert response.status_code == 404


def test_unknown_handler_type_is_400(client, admin_headers, fake_supabase):
    _seed(fake_supabase, type_="no_such_type")

    response = client.post("/admin/automations/auto-1/run", headers=admin_headers)

    assert response.status_code == 400
    assert "No handler found" in response.json()["error"]["message"]
    assert fake_supabase.rows("automation_logs")[0]["log_level"] == "error"


def test_requires_admin(client, user_headers, fake_supabase):
    _seed(fake_supabase)
    response = client.post("/admin/automations/auto-1/run", headers=user_headers)
    assert response.status_code == 401
