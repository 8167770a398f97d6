"""Admin automation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from vangdata_pipeline.scheduler.automation import AutomationScheduler

from vangdata_api.dependencies import AuthUser, get_scheduler, require_admin

router = APIRouter(prefix="/admin/automations", tags=["admin-automations"])


@router.post("/{automation_id}/run")
async def run_automation(
    automation_id: str,
    user: AuthUser = Depends(require_admin),
    scheduler: AutomationScheduler = Depends(get_scheduler),
):
    """Run one automation now, regardless of its schedule."""
    result = await scheduler.run_automation(automation_id, triggered_by=user.user_id)
    return {"result": result.to_dict()}
