"""
vangdata_shared.models — Pydantic models matching each database table.

These models are used by:
- packages/pipeline: validate data before writing to Supabase
- packages/api: serialize query results into API responses

Row models provide:
  .from_db_row(row: dict) -> Model
  .to_insert_dict() -> dict
"""

from vangdata_shared.models.automation import Automation, AutomationLog
from vangdata_shared.models.backfill import (
    BackfillJob,
    BackfillJobLog,
    DateRangeConfig,
    FailedItem,
    FullHistoricalConfig,
    JobFilters,
    JobStats,
    ProgressCursor,
    parse_job_config,
)
from vangdata_shared.models.prices import (
    CrawlerSource,
    PriceSnapshot,
    TypeMapping,
    ZoneMapping,
)

__all__ = [
    "Automation",
    "AutomationLog",
    "BackfillJob",
    "BackfillJobLog",
    "DateRangeConfig",
    "FailedItem",
    "FullHistoricalConfig",
    "JobFilters",
    "JobStats",
    "ProgressCursor",
    "parse_job_config",
    "CrawlerSource",
    "PriceSnapshot",
    "TypeMapping",
    "ZoneMapping",
]
