"""
scheduler/registry.py — Automation handler interface and registry.

A handler runs one automation type. The scheduler looks handlers up by
automations.type; an unknown type is a failed run, not a crash.

Usage:
    from vangdata_pipeline.scheduler.registry import get_handler

    handler = get_handler("daily_price_summary")
    result = await handler.execute(AutomationContext(automation=auto, now=now))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from vangdata_shared.errors import ValidationError
from vangdata_shared.models.automation import Automation


@dataclass
class AutomationContext:
    automation: Automation
    now: datetime
    triggered_by: str = "scheduler"


@dataclass
class AutomationResult:
    success: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
            "meta": self.meta,
        }


class AutomationHandler(ABC):
    # Matches automations.type
    type: str = "unknown"

    @abstractmethod
    async def execute(self, context: AutomationContext) -> AutomationResult:
        ...


_HANDLERS: dict[str, AutomationHandler] = {}


def register_handler(handler: AutomationHandler) -> AutomationHandler:
    _HANDLERS[handler.type] = handler
    return handler


def unregister_handler(automation_type: str) -> None:
    _HANDLERS.pop(automation_type, None)


def get_handler(automation_type: str) -> AutomationHandler:
    """
    Raises:
        ValidationError: no handler is registered for `automation_type`.
    """
    _load_builtin_handlers()
    handler = _HANDLERS.get(automation_type)
    if handler is None:
        raise ValidationError(f"No handler found for automation type: {automation_type}")
    return handler


def registered_types() -> list[str]:
    _load_builtin_handlers()
    return sorted(_HANDLERS)


_builtins_loaded = False


def _load_builtin_handlers() -> None:
    global _builtins_loaded
    if _builtins_loaded:
        return
    from vangdata_pipeline.scheduler.handlers.daily_summary import DailyPriceSummaryHandler

    _HANDLERS.setdefault(DailyPriceSummaryHandler.type, DailyPriceSummaryHandler())
    _builtins_loaded = True
