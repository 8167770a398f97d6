"""
tests/test_loaders/test_supabase_loader.py — Batched inserts and upserts.
"""

from __future__ import annotations

import polars as pl
import pytest

from vangdata_pipeline.loaders.supabase_loader import SupabaseLoader

TABLE = "price_snapshots"


def _rows(n: int) -> list[dict]:
    return [{"id": f"row-{i}", "retailer": "SJC", "buy_price": 8_450_000 + i} for i in range(n)]


@pytest.mark.asyncio
async def test_insert_rows_in_batches(fake_supabase):
    result = await SupabaseLoader(batch_size=2).insert_rows(TABLE, _rows(5))

    assert result.batches_total == 3
    assert result.records_loaded == 5
    assert result.success
    assert len(fake_supabase.rows(TABLE)) == 5


@pytest.mark.asyncio
async def test_insert_empty_is_a_no_op(fake_supabase):
    result = await SupabaseLoader().insert_rows(TABLE, [])

    assert result.batches_total == 0
    assert fake_supabase.rows(TABLE) == []


@pytest.mark.asyncio
async def test_insert_failure_is_raised(fake_supabase):
    fake_supabase.fail(TABLE, "insert")

    with pytest.raises(RuntimeError, match="unavailable"):
        await SupabaseLoader(batch_size=2).insert_rows(TABLE, _rows(3))


@pytest.mark.asyncio
async def test_upsert_failure_is_counted(fake_supabase):
    fake_supabase.fail("daily_price_summaries", "upsert")
    df = pl.DataFrame({"summary_date": ["2025-01-15"], "retailer": ["SJC"]})

    result = await SupabaseLoader().upsert("daily_price_summaries", df, ["summary_date", "retailer"])

    assert not result.success
    assert result.records_failed == 1
    assert result.batches_failed == 1
