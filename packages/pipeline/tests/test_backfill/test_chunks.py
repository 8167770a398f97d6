"""
tests/test_backfill/test_chunks.py — Chunk planning and job date windows.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from vangdata_shared.models.backfill import (
    BackfillJob,
    DateRangeConfig,
    FullHistoricalConfig,
    ProgressCursor,
)

from vangdata_pipeline.backfill.chunks import (
    Chunk,
    estimate_total_items,
    job_days,
    plan_chunks,
)

DAYS = [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]


def _job(config, created_at=None) -> BackfillJob:
    return BackfillJob(
        id="job-1",
        source_id="src",
        job_type=config.job_type,
        config=config,
        created_at=created_at,
    )


class TestJobDays:
    def test_full_historical_is_anchored_on_creation_day(self):
        job = _job(
            FullHistoricalConfig(days=3),
            created_at=datetime(2025, 1, 10, 23, 30, tzinfo=timezone.utc),
        )
        assert job_days(job) == [date(2025, 1, 8), date(2025, 1, 9), date(2025, 1, 10)]

    def test_date_range_is_inclusive(self):
        job = _job(DateRangeConfig(start_date=date(2025, 1, 1), end_date=date(2025, 1, 3)))
        assert job_days(job) == DAYS

    def test_single_day_range(self):
        job = _job(DateRangeConfig(start_date=date(2025, 1, 5), end_date=date(2025, 1, 5)))
        assert job_days(job) == [date(2025, 1, 5)]


class TestPlanChunks:
    def test_all_types_one_chunk_per_day(self):
        assert plan_chunks(DAYS, None) == [Chunk(d) for d in DAYS]

    def test_enumerated_types_ordered_by_day_then_code(self):
        chunks = plan_chunks(DAYS[:2], ["XAUUSD", "SJL1L10"])
        assert [(c.day.day, c.type_code) for c in chunks] == [
            (1, "SJL1L10"),
            (1, "XAUUSD"),
            (2, "SJL1L10"),
            (2, "XAUUSD"),
        ]

    def test_starts_strictly_after_cursor(self):
        cursor = ProgressCursor(day=date(2025, 1, 1), type_code="XAUUSD")
        chunks = plan_chunks(DAYS[:2], ["SJL1L10", "XAUUSD"], cursor)
        assert [(c.day.day, c.type_code) for c in chunks] == [(2, "SJL1L10"), (2, "XAUUSD")]

    def test_day_cursor_skips_processed_days(self):
        cursor = ProgressCursor(day=date(2025, 1, 2))
        assert plan_chunks(DAYS, None, cursor) == [Chunk(date(2025, 1, 3))]

    def test_cursor_at_last_chunk_leaves_nothing(self):
        cursor = ProgressCursor(day=date(2025, 1, 3))
        assert plan_chunks(DAYS, None, cursor) == []

    def test_chunk_to_cursor_round_trips_key(self):
        chunk = Chunk(date(2025, 1, 2), "SJL1L10")
        assert chunk.to_cursor().key == chunk.key


def test_estimate_total_items():
    assert estimate_total_items(7, "all") == 7
    assert estimate_total_items(7, ["A", "B"]) == 14
