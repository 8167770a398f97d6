"""
backfill/store.py — Durable persistence for backfill jobs and their logs.

The backfill_jobs table is the single source of truth for job state; no
component caches status across chunk boundaries. Every status change is a
conditional update (UPDATE … WHERE id = ? AND status IN (…)) so concurrent
writers resolve to whichever write lands last without ever taking a job
through an illegal transition.

Usage:
    store = BackfillJobStore()
    job = store.insert(job)
    moved = store.transition(job.id, "paused")      # None if the job was not running
    store.append_log(job.id, "info", "Chunk processed", {"saved": 3})
"""

from __future__ import annotations

from typing import Any

import structlog

from vangdata_shared.constants import (
    ALLOWED_TRANSITIONS,
    JOB_STATUSES,
    TABLE_BACKFILL_JOB_LOGS,
    TABLE_BACKFILL_JOBS,
    LogLevel,
)
from vangdata_shared.db import get_supabase_client
from vangdata_shared.errors import ConflictError
from vangdata_shared.models.backfill import (
    BackfillJob,
    BackfillJobLog,
    JobFilters,
    JobStats,
    ProgressCursor,
)
from vangdata_shared.time_utils import utcnow

log = structlog.get_logger(__name__)


def _strip_nulls(row: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in row.items() if v is not None}


class BackfillJobStore:
    def __init__(self) -> None:
        self._client = get_supabase_client(service_role=True)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def insert(self, job: BackfillJob) -> BackfillJob:
        result = self._client.table(TABLE_BACKFILL_JOBS).insert(
            _strip_nulls(job.to_insert_dict())
        ).execute()
        return BackfillJob.from_db_row(result.data[0]) if result.data else job

    def get(self, job_id: str) -> BackfillJob | None:
        result = (
            self._client.table(TABLE_BACKFILL_JOBS)
            .select("*")
            .eq("id", job_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return BackfillJob.from_db_row(result.data[0])

    def get_status(self, job_id: str) -> str | None:
        """Re-read only the persisted status (executor polling)."""
        result = (
            self._client.table(TABLE_BACKFILL_JOBS)
            .select("status")
            .eq("id", job_id)
            .limit(1)
            .execute()
        )
        return result.data[0]["status"] if result.data else None

    def list_jobs(self, filters: JobFilters) -> list[BackfillJob]:
        query = self._client.table(TABLE_BACKFILL_JOBS).select("*")
        if filters.status:
            query = query.eq("status", filters.status)
        if filters.source_id:
            query = query.eq("source_id", filters.source_id)
        if filters.job_type:
            query = query.eq("job_type", filters.job_type)
        result = (
            query.order("created_at", desc=True)
            .range(filters.offset, filters.offset + filters.limit - 1)
            .execute()
        )
        return [BackfillJob.from_db_row(row) for row in (result.data or [])]

    def list_ids_by_status(self, status: str) -> list[str]:
        result = (
            self._client.table(TABLE_BACKFILL_JOBS)
            .select("id")
            .eq("status", status)
            .order("created_at")
            .execute()
        )
        return [row["id"] for row in (result.data or [])]

    def transition(
        self,
        job_id: str,
        to_status: str,
        *,
        from_statuses: frozenset[str] | set[str] | None = None,
        **fields: Any,
    ) -> BackfillJob | None:
        """
        Compare-and-set a job's status.

        Args:
            job_id:        Job to update.
            to_status:     Target status.
            from_statuses: Statuses the job must currently be in. Defaults to
                           the legal predecessors of `to_status`.
            **fields:      Extra columns written in the same update.

        Returns:
            The updated job, or None if no row matched (missing job or the
            status was not one of `from_statuses`).
        """
        allowed = from_statuses if from_statuses is not None else ALLOWED_TRANSITIONS[to_status]
        update = {"status": to_status, "updated_at": utcnow().isoformat(), **fields}
        result = (
            self._client.table(TABLE_BACKFILL_JOBS)
            .update(update)
            .eq("id", job_id)
            .in_("status", sorted(allowed))
            .execute()
        )
        if not result.data:
            return None
        log.info("job_status_changed", job_id=job_id, status=to_status)
        return BackfillJob.from_db_row(result.data[0])

    def save_progress(
        self,
        job_id: str,
        cursor: ProgressCursor,
        *,
        previous: ProgressCursor | None,
        **counters: Any,
    ) -> None:
        """
        Persist the progress cursor and counters without touching status.

        Raises:
            ConflictError: if `cursor` would move backwards from `previous`.
        """
        if previous is not None and cursor.key < previous.key:
            raise ConflictError(
                f"Progress cursor for job {job_id} cannot move backwards "
                f"({previous.key} -> {cursor.key})"
            )
        self._client.table(TABLE_BACKFILL_JOBS).update(
            {
                "progress_cursor": cursor.to_dict(),
                "updated_at": utcnow().isoformat(),
                **counters,
            }
        ).eq("id", job_id).execute()

    def update_fields(self, job_id: str, **fields: Any) -> None:
        self._client.table(TABLE_BACKFILL_JOBS).update(
            {"updated_at": utcnow().isoformat(), **fields}
        ).eq("id", job_id).execute()

    def delete(self, job_id: str, *, allowed_statuses: frozenset[str]) -> bool:
        """Delete a job in one of `allowed_statuses`, then its logs."""
        result = (
            self._client.table(TABLE_BACKFILL_JOBS)
            .delete()
            .eq("id", job_id)
            .in_("status", sorted(allowed_statuses))
            .execute()
        )
        if not result.data:
            return False
        self._client.table(TABLE_BACKFILL_JOB_LOGS).delete().eq("job_id", job_id).execute()
        log.info("job_deleted", job_id=job_id)
        return True

    def stats(self) -> JobStats:
        result = (
            self._client.table(TABLE_BACKFILL_JOBS)
            .select("status, records_inserted")
            .execute()
        )
        counts = {status: 0 for status in JOB_STATUSES}
        inserted = 0
        for row in result.data or []:
            counts[row["status"]] = counts.get(row["status"], 0) + 1
            inserted += row.get("records_inserted") or 0
        return JobStats(
            total_jobs=sum(counts.values()),
            pending_jobs=counts["pending"],
            running_jobs=counts["running"],
            paused_jobs=counts["paused"],
            completed_jobs=counts["completed"],
            failed_jobs=counts["failed"],
            cancelled_jobs=counts["cancelled"],
            total_records_inserted=inserted,
        )

    # ------------------------------------------------------------------
    # Logs (append-only)
    # ------------------------------------------------------------------

    def append_log(
        self,
        job_id: str,
        level: LogLevel,
        message: str,
        meta: dict[str, Any] | None = None,
    ) -> BackfillJobLog:
        entry = BackfillJobLog(
            job_id=job_id,
            log_level=level,
            message=message,
            meta=meta or {},
            created_at=utcnow(),
        )
        self._client.table(TABLE_BACKFILL_JOB_LOGS).insert(
            _strip_nulls(entry.to_insert_dict())
        ).execute()
        return entry

    def list_logs(
        self,
        job_id: str,
        *,
        log_level: LogLevel | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[BackfillJobLog]:
        query = self._client.table(TABLE_BACKFILL_JOB_LOGS).select("*").eq("job_id", job_id)
        if log_level:
            query = query.eq("log_level", log_level)
        result = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [BackfillJobLog.from_db_row(row) for row in (result.data or [])]
