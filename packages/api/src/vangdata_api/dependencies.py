"""Shared FastAPI dependencies."""

from __future__ import annotations

from vangdata_pipeline.backfill.manager import BackfillManager
from vangdata_pipeline.scheduler.automation import AutomationScheduler

from vangdata_api.middleware.auth import AuthUser, get_current_user, require_admin
from vangdata_api.utils.pagination import PaginationParams


def get_backfill_manager() -> BackfillManager:
    return BackfillManager()


def get_scheduler() -> AutomationScheduler:
    return AutomationScheduler()


__all__ = [
    "AuthUser",
    "PaginationParams",
    "get_backfill_manager",
    "get_current_user",
    "get_scheduler",
    "require_admin",
]
