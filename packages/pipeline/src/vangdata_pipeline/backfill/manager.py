"""
backfill/manager.py — Public control surface for backfill jobs.

The manager validates requests and moves jobs through the state machine:

    pending → running → {completed, failed, paused, cancelled}
    paused  → pending (resume) → running
    paused  → cancelled,  pending → cancelled

It never fetches data and never starts an executor; callers that want a
job to run (the API's executeImmediately flag, resume, the CLI) spawn one.

Usage:
    manager = BackfillManager()
    job_id = manager.create_job(
        "src-vangtoday", "full_historical", {"days": 7, "types": "all"}, requester=user_id
    )
    manager.pause_job(job_id)
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

import pydantic
import structlog

from vangdata_shared.config import settings
from vangdata_shared.constants import TERMINAL_STATUSES, LogLevel
from vangdata_shared.errors import ConflictError, NotFoundError, ValidationError
from vangdata_shared.models.backfill import (
    BackfillJob,
    BackfillJobLog,
    DateRangeConfig,
    JobFilters,
    JobStats,
    parse_job_config,
)
from vangdata_shared.time_utils import utcnow

from vangdata_pipeline.backfill.chunks import estimate_total_items
from vangdata_pipeline.backfill.store import BackfillJobStore
from vangdata_pipeline.sources.catalogue import SourceCatalogue

log = structlog.get_logger(__name__)

_VERBS = {
    "paused": ("pause", "Job paused"),
    "pending": ("resume", "Job resumed"),
    "cancelled": ("cancel", "Job cancelled"),
}


def _describe_validation_error(exc: pydantic.ValidationError) -> tuple[str, list[dict[str, Any]]]:
    problems = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    message = "; ".join(
        f"{p['field']}: {p['message']}" if p["field"] else p["message"] for p in problems
    )
    return f"Invalid job config: {message}", problems


class BackfillManager:
    def __init__(
        self,
        store: BackfillJobStore | None = None,
        catalogue: SourceCatalogue | None = None,
    ) -> None:
        self.store = store or BackfillJobStore()
        self.catalogue = catalogue or SourceCatalogue()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_job(
        self,
        source_id: str,
        job_type: str,
        config: dict[str, Any] | pydantic.BaseModel,
        requester: str | None,
        *,
        today: date | None = None,
    ) -> str:
        """
        Validate and insert a pending job.

        Raises:
            NotFoundError:   the source does not exist.
            ValidationError: malformed job type or config.
        """
        if not source_id:
            raise ValidationError("sourceId is required")
        if self.catalogue.get(source_id) is None:
            raise NotFoundError(f"Source {source_id} not found")

        try:
            parsed = parse_job_config(job_type, config)
        except pydantic.ValidationError as exc:
            message, problems = _describe_validation_error(exc)
            raise ValidationError(message, details={"errors": problems}) from exc

        today = today or utcnow().date()
        if isinstance(parsed, DateRangeConfig):
            if parsed.end_date > today:
                raise ValidationError("end_date cannot be in the future")
            span = (parsed.end_date - parsed.start_date).days + 1
            if span > settings.backfill_max_range_days:
                raise ValidationError(
                    f"Date range cannot exceed {settings.backfill_max_range_days} days"
                )
            days = span
        else:
            days = parsed.days

        now = utcnow()
        job = BackfillJob(
            id=str(uuid.uuid4()),
            source_id=source_id,
            job_type=parsed.job_type,
            config=parsed,
            status="pending",
            created_by=requester,
            created_at=now,
            updated_at=now,
            total_items=estimate_total_items(days, parsed.types),
        )
        self.store.insert(job)
        self.store.append_log(
            job.id,
            "info",
            "Job created",
            {"job_type": job.job_type, "days": days, "types": parsed.types},
        )
        log.info(
            "job_created",
            job_id=job.id,
            source_id=source_id,
            job_type=job.job_type,
            total_items=job.total_items,
        )
        return job.id

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_jobs(self, filters: JobFilters | None = None) -> list[BackfillJob]:
        return self.store.list_jobs(filters or JobFilters())

    def get_job(self, job_id: str) -> BackfillJob | None:
        return self.store.get(job_id)

    def require_job(self, job_id: str) -> BackfillJob:
        job = self.store.get(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    def get_job_logs(
        self,
        job_id: str,
        *,
        log_level: LogLevel | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[BackfillJobLog]:
        self.require_job(job_id)
        return self.store.list_logs(job_id, log_level=log_level, limit=limit, offset=offset)

    def get_job_stats(self) -> JobStats:
        return self.store.stats()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def pause_job(self, job_id: str) -> BackfillJob:
        """running → paused. The executor stops at its next chunk boundary."""
        return self._transition(job_id, "paused")

    def resume_job(self, job_id: str) -> BackfillJob:
        """paused → pending. The caller is responsible for launching an executor."""
        return self._transition(job_id, "pending")

    def cancel_job(self, job_id: str) -> BackfillJob:
        """pending | running | paused → cancelled. Irreversible."""
        return self._transition(job_id, "cancelled", finished_at=utcnow().isoformat())

    def delete_job(self, job_id: str) -> None:
        """Remove a terminal job and its logs."""
        job = self.require_job(job_id)
        if not job.is_terminal:
            raise ConflictError(
                f"Cannot delete job {job_id} while it is {job.status}; cancel it first"
            )
        if not self.store.delete(job_id, allowed_statuses=TERMINAL_STATUSES):
            # status changed between the read and the conditional delete
            current = self.require_job(job_id)
            raise ConflictError(f"Cannot delete job {job_id} while it is {current.status}")
        log.info("job_deleted", job_id=job_id, status=job.status)

    def _transition(self, job_id: str, to_status: str, **fields: Any) -> BackfillJob:
        verb, message = _VERBS[to_status]
        moved = self.store.transition(job_id, to_status, **fields)
        if moved is not None:
            self.store.append_log(job_id, "info", message)
            return moved

        job = self.require_job(job_id)
        raise ConflictError(f"Cannot {verb} job {job_id}: status is {job.status}")
