"""
time_utils.py — Calendar-day helpers for backfill planning and dedup.

All days are UTC calendar days. A backfilled snapshot is stamped at the
start of its day, so the day window [00:00, next 00:00) contains it.

Usage:
    from vangdata_shared.time_utils import day_bounds, date_range, parse_iso_date

    start, end = day_bounds(date(2025, 1, 15))     # 2025-01-15T00:00Z, 2025-01-16T00:00Z
    days = date_range(date(2025, 1, 1), date(2025, 1, 7))   # 7 dates, inclusive
    d = parse_iso_date("2025-01-15")               # date(2025, 1, 15)
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from dateutil import parser as date_parser


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def start_of_day(day: date) -> datetime:
    """Midnight UTC of the given calendar day."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the half-open UTC window [day 00:00, next day 00:00)."""
    start = start_of_day(day)
    return start, start + timedelta(days=1)


def date_range(start: date, end: date) -> list[date]:
    """Inclusive list of calendar days from start to end. Empty if end < start."""
    if end < start:
        return []
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def parse_iso_date(raw: str | date) -> date:
    """
    Parse a strict ISO calendar date (YYYY-MM-DD).

    Raises:
        ValueError: if the string is not a well-formed calendar date.
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(raw.strip())


def parse_timestamp(raw: str | datetime | None) -> datetime | None:
    """
    Parse a Supabase timestamp string into an aware UTC datetime.

    Supabase returns timestamptz values such as "2025-01-15T08:00:00.123456+00:00";
    naive values are assumed to be UTC.
    """
    if raw is None:
        return None
    dt = raw if isinstance(raw, datetime) else date_parser.isoparse(raw)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_utc_day(moment: datetime) -> date:
    """Calendar day (UTC) a timestamp falls on."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()
