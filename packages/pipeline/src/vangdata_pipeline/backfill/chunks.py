"""
backfill/chunks.py — Decompose a job's date span into ordered work chunks.

A chunk is one calendar day (types = "all", or a source that returns every
type in one response) or one day × one type code (types enumerated). Chunks
are ordered by (day, type_code) and planning always starts strictly after
the job's progress cursor, so a resumed job never reprocesses a chunk.

A full-historical job's window is anchored on the day the job was created,
not on the day it runs: [created - (days - 1), created]. Resuming a paused
job the next morning therefore processes the same days it was planned for.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from vangdata_shared.models.backfill import (
    BackfillJob,
    DateRangeConfig,
    FullHistoricalConfig,
    ProgressCursor,
)
from vangdata_shared.time_utils import date_range, to_utc_day, utcnow


@dataclass(frozen=True)
class Chunk:
    day: date
    type_code: str | None = None

    @property
    def key(self) -> tuple[date, str]:
        return (self.day, self.type_code or "")

    def to_cursor(self) -> ProgressCursor:
        return ProgressCursor(day=self.day, type_code=self.type_code)


def job_days(job: BackfillJob) -> list[date]:
    """Every calendar day the job covers, ascending."""
    config = job.config
    if isinstance(config, DateRangeConfig):
        return date_range(config.start_date, config.end_date)
    if isinstance(config, FullHistoricalConfig):
        anchor = to_utc_day(job.created_at) if job.created_at else utcnow().date()
        return date_range(anchor - timedelta(days=config.days - 1), anchor)
    raise TypeError(f"Unknown job config: {type(config).__name__}")


def plan_chunks(
    days: list[date],
    type_codes: list[str] | None,
    cursor: ProgressCursor | None = None,
) -> list[Chunk]:
    """
    Build the ordered chunk list, dropping every chunk at or before `cursor`.

    Args:
        days:       Calendar days to cover.
        type_codes: None for one chunk per day, else one chunk per day × code.
        cursor:     Last processed chunk, or None for a fresh job.
    """
    if type_codes is None:
        chunks = [Chunk(day) for day in days]
    else:
        codes = sorted(set(type_codes))
        chunks = [Chunk(day, code) for day in days for code in codes]
    chunks.sort(key=lambda c: c.key)
    if cursor is None:
        return chunks
    return [c for c in chunks if c.key > cursor.key]


def estimate_total_items(days: int, types: str | list[str]) -> int:
    """Chunk count at creation time (types="all" counts one chunk per day)."""
    if types == "all":
        return days
    return days * len(types)
