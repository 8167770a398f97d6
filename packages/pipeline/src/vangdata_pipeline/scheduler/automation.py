"""
scheduler/automation.py — Hourly automation scheduler.

An external cron calls tick() once an hour (GET /cron/scheduler or
`vangdata-pipeline scheduler tick`). Each tick is stateless: whether an
automation runs depends only on `now` and the stored automation rows.

Schedules are cron-like strings, but only the hour field (the second of at
least five whitespace-separated fields) is interpreted:

    "0 8 * * *"    runs in the 08:00 UTC tick
    "0 08 * * *"   same
    "0 * * * *"    runs every tick

An automation that ran less than scheduler_suppression_minutes ago is not
run again, so a retried or doubled cron call does not repeat work.

Usage:
    scheduler = AutomationScheduler()
    result = await scheduler.tick()                  # TickResult(ran, skipped, failed)
    outcome = await scheduler.run_automation(automation_id, triggered_by=user_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import structlog

from vangdata_shared.config import settings
from vangdata_shared.constants import TABLE_AUTOMATION_LOGS, TABLE_AUTOMATIONS, AutomationLogLevel
from vangdata_shared.db import get_supabase_client
from vangdata_shared.errors import NotFoundError, UnexpectedError
from vangdata_shared.models.automation import Automation, AutomationLog
from vangdata_shared.time_utils import utcnow

from vangdata_pipeline.scheduler.registry import AutomationContext, AutomationResult, get_handler

log = structlog.get_logger(__name__)


def parse_hour_field(schedule: str) -> int | None:
    """
    Return the schedule's hour (0-23), or None for "*" (every hour).

    Raises:
        ValueError: fewer than five fields, or an hour that is neither "*"
                    nor a whole number 0-23.
    """
    parts = (schedule or "").split()
    if len(parts) < 5:
        raise ValueError(f"expected at least 5 fields, got {len(parts)}")
    hour = parts[1]
    if hour == "*":
        return None
    if not hour.isdigit() or not 0 <= int(hour) <= 23:
        raise ValueError(f"unsupported hour field '{hour}'")
    return int(hour)


@dataclass
class TickResult:
    ran: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"ran": self.ran, "skipped": self.skipped, "failed": self.failed}


class AutomationScheduler:
    def __init__(self, *, suppression_minutes: int | None = None) -> None:
        self._client = get_supabase_client(service_role=True)
        minutes = (
            settings.scheduler_suppression_minutes
            if suppression_minutes is None
            else suppression_minutes
        )
        self.suppression = timedelta(minutes=minutes)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def is_due(self, automation: Automation, now: datetime) -> bool:
        """
        Raises:
            ValueError: malformed schedule.
        """
        hour = parse_hour_field(automation.schedule)
        if hour is not None and hour != now.hour:
            return False
        if automation.last_run_at is not None and now - automation.last_run_at < self.suppression:
            return False
        return True

    async def tick(self, now: datetime | None = None) -> TickResult:
        """Run every active automation that is due at `now` (UTC)."""
        now = now or utcnow()
        result = TickResult()
        automations = self._load_active()
        log.info("scheduler_tick_started", now=now.isoformat(), active=len(automations))

        for automation in automations:
            try:
                due = self.is_due(automation, now)
            except ValueError as exc:
                log.warning(
                    "invalid_schedule",
                    automation_id=automation.id,
                    name=automation.name,
                    schedule=automation.schedule,
                    error=str(exc),
                )
                result.skipped += 1
                continue
            if not due:
                result.skipped += 1
                continue

            try:
                await self._execute(automation, now, triggered_by="scheduler")
                result.ran += 1
            except Exception as exc:
                log.error(
                    "automation_failed",
                    automation_id=automation.id,
                    name=automation.name,
                    error=str(exc),
                )
                result.failed += 1

        log.info("scheduler_tick_finished", **result.to_dict())
        return result

    async def run_automation(
        self,
        automation_id: str,
        *,
        triggered_by: str = "manual",
        now: datetime | None = None,
    ) -> AutomationResult:
        """
        Run one automation immediately, regardless of schedule or last run.

        Raises:
            NotFoundError: unknown automation id.
            Any handler error, after it has been written to automation_logs.
        """
        result = (
            self._client.table(TABLE_AUTOMATIONS)
            .select("*")
            .eq("id", automation_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            raise NotFoundError(f"Automation {automation_id} not found")
        automation = Automation.from_db_row(result.data[0])
        return await self._execute(automation, now or utcnow(), triggered_by=triggered_by)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_active(self) -> list[Automation]:
        result = (
            self._client.table(TABLE_AUTOMATIONS)
            .select("*")
            .eq("is_active", True)
            .execute()
        )
        return [Automation.from_db_row(row) for row in (result.data or [])]

    async def _execute(
        self,
        automation: Automation,
        now: datetime,
        *,
        triggered_by: str,
    ) -> AutomationResult:
        meta: dict[str, Any] = {"automation_id": automation.id, "triggered_by": triggered_by}
        try:
            handler = get_handler(automation.type)
            outcome = await handler.execute(
                AutomationContext(automation=automation, now=now, triggered_by=triggered_by)
            )
            if not outcome.success:
                raise UnexpectedError(outcome.message or "Automation reported failure")
        except Exception as exc:
            self._write_log(
                automation,
                "error",
                f"Scheduler failed: {exc}",
                {**meta, "error_type": type(exc).__name__},
            )
            raise

        self._write_log(
            automation,
            "info",
            f"Automation '{automation.name}' executed successfully.",
            {**outcome.meta, **meta},
        )
        self._client.table(TABLE_AUTOMATIONS).update(
            {"last_run_at": now.isoformat()}
        ).eq("id", automation.id).execute()
        log.info(
            "automation_ran",
            automation_id=automation.id,
            type=automation.type,
            triggered_by=triggered_by,
        )
        return outcome

    def _write_log(
        self,
        automation: Automation,
        level: AutomationLogLevel,
        message: str,
        meta: dict[str, Any],
    ) -> None:
        entry = AutomationLog(
            automation_id=automation.id,
            type=automation.type,
            log_level=level,
            message=message,
            meta=meta,
            created_at=utcnow(),
        )
        self._client.table(TABLE_AUTOMATION_LOGS).insert(entry.to_insert_dict()).execute()
