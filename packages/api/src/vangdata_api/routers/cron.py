"""Cron entry point for the hourly automation scheduler."""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, HTTPException, Request

from vangdata_shared.config import settings

from vangdata_pipeline.scheduler.automation import AutomationScheduler

from vangdata_api.dependencies import get_scheduler

router = APIRouter(prefix="/cron", tags=["cron"])


def require_cron_secret(request: Request) -> None:
    """Authorization must be exactly `Bearer <CRON_SECRET>`; an unset secret rejects everything."""
    expected = f"Bearer {settings.cron_secret}"
    provided = request.headers.get("Authorization", "")
    if not settings.cron_secret or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/scheduler", dependencies=[Depends(require_cron_secret)])
async def run_scheduler(scheduler: AutomationScheduler = Depends(get_scheduler)):
    result = await scheduler.tick()
    return result.to_dict()
