"""
models/backfill.py — Pydantic models for the backfill_jobs and backfill_job_logs tables.

A job's configuration is a tagged variant discriminated by `job_type`:

    FullHistoricalConfig  {job_type: "full_historical", days: 1..30, types}
    DateRangeConfig       {job_type: "date_range", start_date, end_date, types}

`types` is either the literal "all" or a non-empty list of external type codes.
Request bodies may use camelCase keys (startDate, endDate); rows are stored
in snake_case.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from vangdata_shared.constants import (
    MAX_FULL_HISTORICAL_DAYS,
    TERMINAL_STATUSES,
    JobStatus,
    JobType,
    LogLevel,
)
from vangdata_shared.time_utils import parse_iso_date, parse_timestamp

TypeSelection = Union[Literal["all"], list[str]]


def _validate_types(value: Any) -> Any:
    if isinstance(value, str):
        if value != "all":
            raise ValueError('types must be "all" or a non-empty list of type codes')
        return value
    if isinstance(value, (list, tuple, set)):
        codes: list[str] = []
        for code in value:
            if not isinstance(code, str) or not code.strip():
                raise ValueError("type codes must be non-empty strings")
            if code.strip() not in codes:
                codes.append(code.strip())
        if not codes:
            raise ValueError("types must not be empty")
        return codes
    raise ValueError('types must be "all" or a non-empty list of type codes')


class FullHistoricalConfig(BaseModel):
    """Rolling window of `days` calendar days ending on the job's creation day."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    job_type: Literal["full_historical"] = "full_historical"
    days: int = Field(ge=1, le=MAX_FULL_HISTORICAL_DAYS)
    types: TypeSelection = "all"

    @field_validator("types", mode="before")
    @classmethod
    def check_types(cls, v: Any) -> Any:
        return _validate_types(v)


class DateRangeConfig(BaseModel):
    """Inclusive ISO calendar-date range."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    job_type: Literal["date_range"] = "date_range"
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    types: TypeSelection = "all"

    @field_validator("types", mode="before")
    @classmethod
    def check_types(cls, v: Any) -> Any:
        return _validate_types(v)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def strict_iso_date(cls, v: Any) -> date:
        if isinstance(v, (str, date)):
            return parse_iso_date(v)
        raise ValueError("dates must be ISO calendar dates (YYYY-MM-DD)")

    @model_validator(mode="after")
    def check_date_order(self) -> "DateRangeConfig":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


JobConfig = Annotated[
    Union[FullHistoricalConfig, DateRangeConfig],
    Field(discriminator="job_type"),
]

_job_config_adapter: TypeAdapter[FullHistoricalConfig | DateRangeConfig] = TypeAdapter(JobConfig)


def parse_job_config(job_type: str, raw: dict[str, Any] | BaseModel) -> FullHistoricalConfig | DateRangeConfig:
    """
    Validate a raw config payload against the variant named by `job_type`.

    Any job_type/jobType key inside `raw` is ignored in favour of `job_type`.

    Raises:
        pydantic.ValidationError: malformed config or unknown job_type.
    """
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(by_alias=False)
    payload = {k: v for k, v in (raw or {}).items() if k not in ("job_type", "jobType")}
    payload["job_type"] = job_type
    return _job_config_adapter.validate_python(payload)


def dump_job_config(config: FullHistoricalConfig | DateRangeConfig) -> dict[str, Any]:
    """JSON-serialisable snake_case dict for the backfill_jobs.config column."""
    return config.model_dump(mode="json", by_alias=False)


class ProgressCursor(BaseModel):
    """Last successfully processed chunk. `type_code` is None for all-type jobs."""

    day: date
    type_code: str | None = None

    @property
    def key(self) -> tuple[date, str]:
        return (self.day, self.type_code or "")

    def to_dict(self) -> dict[str, Any]:
        return {"day": self.day.isoformat(), "type_code": self.type_code}


class FailedItem(BaseModel):
    day: date
    type_code: str | None = None
    error: str


class BackfillJob(BaseModel):
    """Matches the backfill_jobs table row."""

    id: str
    source_id: str
    job_type: JobType
    config: JobConfig
    status: JobStatus = "pending"
    progress_cursor: ProgressCursor | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    total_items: int = 0
    progress_percent: float = 0.0
    items_processed: int = 0
    items_succeeded: int = 0
    items_failed: int = 0
    items_skipped: int = 0
    records_inserted: int = 0
    records_duplicate: int = 0
    failed_items: list[FailedItem] = Field(default_factory=list)
    error_message: str | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "BackfillJob":
        data = {k: v for k, v in row.items() if k in cls.model_fields and v is not None}
        data["config"] = parse_job_config(row["job_type"], row.get("config") or {})
        for ts in ("created_at", "updated_at", "started_at", "finished_at"):
            if row.get(ts):
                data[ts] = parse_timestamp(row[ts])
        return cls.model_validate(data)

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "job_type": self.job_type,
            "config": dump_job_config(self.config),
            "status": self.status,
            "progress_cursor": self.progress_cursor.to_dict() if self.progress_cursor else None,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "total_items": self.total_items,
            "progress_percent": self.progress_percent,
            "items_processed": self.items_processed,
            "items_succeeded": self.items_succeeded,
            "items_failed": self.items_failed,
            "items_skipped": self.items_skipped,
            "records_inserted": self.records_inserted,
            "records_duplicate": self.records_duplicate,
            "failed_items": [],
        }

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class BackfillJobLog(BaseModel):
    """Matches the backfill_job_logs table row. Append-only."""

    id: str | None = None
    job_id: str
    log_level: LogLevel
    message: str
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "BackfillJobLog":
        data = dict(row)
        data["meta"] = row.get("meta") or {}
        data["created_at"] = parse_timestamp(row.get("created_at"))
        return cls.model_validate(data)

    def to_insert_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "log_level": self.log_level,
            "message": self.message,
            "meta": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class JobFilters(BaseModel):
    """Filters for listing jobs. Results are always newest first."""

    model_config = ConfigDict(populate_by_name=True)

    status: JobStatus | None = None
    source_id: str | None = Field(default=None, alias="sourceId")
    job_type: JobType | None = Field(default=None, alias="jobType")
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class JobStats(BaseModel):
    total_jobs: int = 0
    pending_jobs: int = 0
    running_jobs: int = 0
    paused_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    cancelled_jobs: int = 0
    total_records_inserted: int = 0
