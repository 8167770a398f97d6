"""
constants.py — shared constants used across the pipeline and API.

Job statuses, legal state transitions, table names, price units and typed
literals are defined here so they stay in sync between Python packages.
"""

from __future__ import annotations

from typing import Final, Literal

# ---------------------------------------------------------------------------
# Backfill job lifecycle
# ---------------------------------------------------------------------------
JobStatus = Literal["pending", "running", "paused", "completed", "failed", "cancelled"]
JobType = Literal["full_historical", "date_range"]
LogLevel = Literal["info", "warn", "error"]

JOB_STATUSES: Final[tuple[str, ...]] = (
    "pending",
    "running",
    "paused",
    "completed",
    "failed",
    "cancelled",
)
TERMINAL_STATUSES: Final[frozenset[str]] = frozenset({"completed", "failed", "cancelled"})

MAX_FULL_HISTORICAL_DAYS: Final = 30

# target status -> statuses it may be entered from
ALLOWED_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    "running": frozenset({"pending"}),
    "paused": frozenset({"running"}),
    "pending": frozenset({"paused"}),
    "completed": frozenset({"running"}),
    "failed": frozenset({"pending", "running"}),
    "cancelled": frozenset({"pending", "running", "paused"}),
}

# ---------------------------------------------------------------------------
# Supabase table names
# ---------------------------------------------------------------------------
TABLE_BACKFILL_JOBS: Final = "backfill_jobs"
TABLE_BACKFILL_JOB_LOGS: Final = "backfill_job_logs"
TABLE_CRAWLER_SOURCES: Final = "crawler_sources"
TABLE_TYPE_MAPPINGS: Final = "crawler_type_mappings"
TABLE_ZONE_MAPPINGS: Final = "crawler_zone_mappings"
TABLE_PRICE_SNAPSHOTS: Final = "price_snapshots"
TABLE_DAILY_SUMMARIES: Final = "daily_price_summaries"
TABLE_AUTOMATIONS: Final = "automations"
TABLE_AUTOMATION_LOGS: Final = "automation_logs"

# ---------------------------------------------------------------------------
# Sources and units
# ---------------------------------------------------------------------------
AuthType = Literal["none", "api_key", "bearer", "basic"]

UNIT_VND_PER_LUONG: Final = "VND/luong"
UNIT_VND_PER_CHI: Final = "VND/chi"
UNIT_USD_PER_OZ: Final = "USD/oz"

CHI_PER_LUONG: Final = 10

# World gold quotes are published in USD/oz and are never unit-converted
WORLD_GOLD_CODES: Final[frozenset[str]] = frozenset({"XAUUSD", "xauusd"})

# ---------------------------------------------------------------------------
# Automations
# ---------------------------------------------------------------------------
AutomationLogLevel = Literal["info", "error"]
