"""Shared test fixtures for vangdata-api.

Supabase is the in-memory FakeSupabase from the repository conftest; these
fixtures seed API keys and build a TestClient around create_app().
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

ADMIN_KEY = "admin-key"
USER_KEY = "user-key"


@pytest.fixture()
def api_keys(fake_supabase):
    """One active admin key and one active non-admin key."""
    fake_supabase.seed(
        "api_keys",
        [
            {"key": ADMIN_KEY, "active": True, "user_id": "admin-1", "role": "admin", "email": "ops@example.com"},
            {"key": USER_KEY, "active": True, "user_id": "user-1", "role": "user", "email": "u@example.com"},
            {"key": "revoked-key", "active": False, "user_id": "admin-2", "role": "admin"},
        ],
    )
    return fake_supabase


@pytest.fixture()
def spawned():
    """Patch background executor launches; yields the list of spawned job ids."""
    calls: list[str] = []
    with patch(
        "vangdata_api.routers.admin_backfill.spawn_backfill",
        side_effect=lambda job_id: calls.append(job_id),
    ):
        yield calls


@pytest.fixture()
def app(api_keys):
    from vangdata_api.app import create_app

    return create_app()


@pytest.fixture()
def client(app):
    """HTTP test client."""
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def admin_headers():
    return {"X-API-Key": ADMIN_KEY}


@pytest.fixture()
def user_headers():
    return {"X-API-Key": USER_KEY}
