"""
models/automation.py — Pydantic models for the automations and automation_logs tables.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from vangdata_shared.constants import AutomationLogLevel
from vangdata_shared.time_utils import parse_timestamp


class Automation(BaseModel):
    """Matches the automations table row."""

    id: str
    name: str = ""
    type: str
    schedule: str
    is_active: bool = True
    last_run_at: datetime | None = None
    config: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Automation":
        data = dict(row)
        data["config"] = row.get("config") or {}
        data["last_run_at"] = parse_timestamp(row.get("last_run_at"))
        return cls.model_validate(data)


class AutomationLog(BaseModel):
    automation_id: str
    type: str
    log_level: AutomationLogLevel
    message: str
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "automation_id": self.automation_id,
            "type": self.type,
            "log_level": self.log_level,
            "message": self.message,
            "meta": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
