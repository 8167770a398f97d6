"""Admin backfill job endpoints."""

from __future__ import annotations

from typing import Any, Literal

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from vangdata_shared.constants import JobStatus, JobType, LogLevel
from vangdata_shared.models.backfill import BackfillJob, JobFilters

from vangdata_pipeline.backfill.executor import spawn_backfill
from vangdata_pipeline.backfill.manager import BackfillManager

from vangdata_api.dependencies import (
    AuthUser,
    PaginationParams,
    get_backfill_manager,
    require_admin,
)
from vangdata_api.responses import message_response
from vangdata_api.utils.pagination import page_meta

logger = structlog.get_logger()

router = APIRouter(prefix="/admin/backfill", tags=["admin-backfill"])


class CreateBackfillRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_id: str = Field(alias="sourceId", min_length=1)
    job_type: Literal["full_historical", "date_range"] = Field(alias="jobType")
    config: dict[str, Any] = Field(default_factory=dict)
    execute_immediately: bool = Field(default=False, alias="executeImmediately")


def _job_body(job: BackfillJob) -> dict[str, Any]:
    return job.model_dump(mode="json")


@router.post("", status_code=201)
async def create_backfill_job(
    body: CreateBackfillRequest,
    user: AuthUser = Depends(require_admin),
    manager: BackfillManager = Depends(get_backfill_manager),
):
    """Create a job; optionally start executing it in the background."""
    job_id = manager.create_job(body.source_id, body.job_type, body.config, requester=user.user_id)
    if body.execute_immediately:
        spawn_backfill(job_id)
        message = "Backfill job created and started"
    else:
        message = "Backfill job created"
    logger.info("backfill_job_requested", job_id=job_id, user_id=user.user_id)
    return {"job": _job_body(manager.require_job(job_id)), "message": message}


@router.get("")
async def list_backfill_jobs(
    pagination: PaginationParams = Depends(),
    status: JobStatus | None = Query(None),
    source_id: str | None = Query(None, alias="sourceId"),
    job_type: JobType | None = Query(None, alias="jobType"),
    user: AuthUser = Depends(require_admin),
    manager: BackfillManager = Depends(get_backfill_manager),
):
    """List jobs, newest first."""
    jobs = manager.list_jobs(
        JobFilters(
            status=status,
            source_id=source_id,
            job_type=job_type,
            limit=pagination.limit,
            offset=pagination.offset,
        )
    )
    return {"jobs": [_job_body(job) for job in jobs], "meta": page_meta(pagination, jobs)}


@router.get("/stats")
async def backfill_stats(
    user: AuthUser = Depends(require_admin),
    manager: BackfillManager = Depends(get_backfill_manager),
):
    return {"stats": manager.get_job_stats().model_dump()}


@router.get("/{job_id}")
async def get_backfill_job(
    job_id: str,
    user: AuthUser = Depends(require_admin),
    manager: BackfillManager = Depends(get_backfill_manager),
):
    return {"job": _job_body(manager.require_job(job_id))}


@router.delete("/{job_id}")
async def delete_backfill_job(
    job_id: str,
    user: AuthUser = Depends(require_admin),
    manager: BackfillManager = Depends(get_backfill_manager),
):
    """Delete a completed, failed or cancelled job and its logs."""
    manager.delete_job(job_id)
    return message_response("Job deleted")


@router.post("/{job_id}/pause")
async def pause_backfill_job(
    job_id: str,
    user: AuthUser = Depends(require_admin),
    manager: BackfillManager = Depends(get_backfill_manager),
):
    manager.pause_job(job_id)
    return message_response("Job paused")


@router.post("/{job_id}/resume")
async def resume_backfill_job(
    job_id: str,
    user: AuthUser = Depends(require_admin),
    manager: BackfillManager = Depends(get_backfill_manager),
):
    """Move a paused job back to pending and start an executor for it."""
    manager.resume_job(job_id)
    spawn_backfill(job_id)
    return message_response("Job resumed")


@router.post("/{job_id}/cancel")
async def cancel_backfill_job(
    job_id: str,
    user: AuthUser = Depends(require_admin),
    manager: BackfillManager = Depends(get_backfill_manager),
):
    manager.cancel_job(job_id)
    return message_response("Job cancelled")


@router.get("/{job_id}/logs")
async def get_backfill_job_logs(
    job_id: str,
    pagination: PaginationParams = Depends(),
    log_level: LogLevel | None = Query(None, alias="logLevel"),
    user: AuthUser = Depends(require_admin),
    manager: BackfillManager = Depends(get_backfill_manager),
):
    """Job log entries, newest first."""
    logs = manager.get_job_logs(
        job_id,
        log_level=log_level,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return {
        "logs": [entry.model_dump(mode="json") for entry in logs],
        "meta": page_meta(pagination, logs),
    }
