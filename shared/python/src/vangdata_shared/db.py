"""
db.py — Supabase client singletons.

Usage:
    from vangdata_shared.db import get_supabase_client

    supabase = get_supabase_client()                    # anon key (API reads)
    supabase = get_supabase_client(service_role=True)   # service key (backfill writes)
"""

from __future__ import annotations

import threading
from typing import Optional

import structlog
from supabase import Client, create_client

from vangdata_shared.config import settings

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Supabase: one client per role per process, guarded by a lock
# ---------------------------------------------------------------------------
_supabase_lock = threading.Lock()
_supabase_anon: Optional[Client] = None
_supabase_service: Optional[Client] = None


def get_supabase_client(*, service_role: bool = False) -> Client:
    """
    Return a singleton Supabase client.

    Args:
        service_role: If True, uses the service role key (bypasses RLS).
                      If False (default), uses the anon key.

    Returns:
        supabase.Client instance.
    """
    global _supabase_anon, _supabase_service

    with _supabase_lock:
        if service_role:
            if _supabase_service is None:
                if not settings.supabase_service_key:
                    raise RuntimeError(
                        "SUPABASE_SERVICE_KEY is not set. "
                        "Set it in .env before using service_role=True."
                    )
                _supabase_service = create_client(
                    settings.supabase_url,
                    settings.supabase_service_key,
                )
                logger.info("supabase_client_created", role="service_role")
            return _supabase_service

        if _supabase_anon is None:
            if not settings.supabase_anon_key:
                raise RuntimeError("SUPABASE_ANON_KEY is not set. Set it in .env.")
            _supabase_anon = create_client(
                settings.supabase_url,
                settings.supabase_anon_key,
            )
            logger.info("supabase_client_created", role="anon")
        return _supabase_anon


def set_supabase_clients(client: Client | None) -> None:
    """Install one client for both roles (test doubles, scripts)."""
    global _supabase_anon, _supabase_service
    with _supabase_lock:
        _supabase_anon = client
        _supabase_service = client


def reset_supabase_clients() -> None:
    """Reset singleton clients (useful in tests)."""
    set_supabase_clients(None)
