"""
handlers/daily_summary.py — Roll one day of price snapshots up into daily_price_summaries.

For every (retailer, province, product_type) seen on the target UTC day the
handler writes the latest, minimum and maximum buy and sell prices and the
number of snapshots. Re-running for the same day overwrites the rows
(upsert on summary_date, retailer, province, product_type).

Automation config:
    {"day_offset": 1}    # days before the run day; default 1 (yesterday)
    {"date": "2025-01-15"}   # fixed day, overrides day_offset

Usage:
    handler = DailyPriceSummaryHandler()
    result = await handler.execute(context)
    result.data  # {"summary_date": "2025-01-15", "snapshots": 42, "rows": 6}
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

import polars as pl
import structlog

from vangdata_shared.constants import TABLE_DAILY_SUMMARIES, TABLE_PRICE_SNAPSHOTS
from vangdata_shared.db import get_supabase_client
from vangdata_shared.errors import UnexpectedError, ValidationError
from vangdata_shared.time_utils import day_bounds, parse_iso_date, to_utc_day

from vangdata_pipeline.loaders.supabase_loader import SupabaseLoader
from vangdata_pipeline.scheduler.registry import (
    AutomationContext,
    AutomationHandler,
    AutomationResult,
)

log = structlog.get_logger(__name__)

CONFLICT_COLUMNS = ["summary_date", "retailer", "province", "product_type"]
PAGE_SIZE = 1000


def summarize_snapshots(rows: list[dict[str, Any]], summary_date: date) -> pl.DataFrame:
    """Aggregate raw snapshot rows into one summary row per price series."""
    if not rows:
        return pl.DataFrame()

    df = pl.DataFrame(rows).with_columns(
        pl.col("buy_price").cast(pl.Float64),
        pl.col("sell_price").cast(pl.Float64),
    )
    return (
        df.sort("created_at")
        .group_by(["retailer", "province", "product_type"], maintain_order=True)
        .agg(
            pl.col("unit").last(),
            pl.col("buy_price").last().alias("latest_buy_price"),
            pl.col("sell_price").last().alias("latest_sell_price"),
            pl.col("buy_price").min().alias("min_buy_price"),
            pl.col("buy_price").max().alias("max_buy_price"),
            pl.col("sell_price").min().alias("min_sell_price"),
            pl.col("sell_price").max().alias("max_sell_price"),
            pl.len().alias("sample_count"),
        )
        .with_columns(pl.lit(summary_date).alias("summary_date"))
        .sort(["retailer", "province", "product_type"])
    )


class DailyPriceSummaryHandler(AutomationHandler):
    type = "daily_price_summary"

    def __init__(self, loader: SupabaseLoader | None = None) -> None:
        self._loader = loader

    def _target_day(self, context: AutomationContext) -> date:
        config = context.automation.config
        if config.get("date"):
            try:
                return parse_iso_date(str(config["date"]))
            except ValueError as exc:
                raise ValidationError(f"Invalid summary date: {config['date']}") from exc
        offset = int(config.get("day_offset", 1))
        return to_utc_day(context.now) - timedelta(days=offset)

    def _fetch_day(self, day: date) -> list[dict[str, Any]]:
        client = get_supabase_client(service_role=True)
        start, end = day_bounds(day)
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            result = (
                client.table(TABLE_PRICE_SNAPSHOTS)
                .select("retailer, province, product_type, buy_price, sell_price, unit, created_at")
                .gte("created_at", start.isoformat())
                .lt("created_at", end.isoformat())
                .order("created_at")
                .range(offset, offset + PAGE_SIZE - 1)
                .execute()
            )
            page = result.data or []
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                return rows
            offset += PAGE_SIZE

    async def execute(self, context: AutomationContext) -> AutomationResult:
        day = self._target_day(context)
        rows = self._fetch_day(day)
        df = summarize_snapshots(rows, day)

        data = {"summary_date": day.isoformat(), "snapshots": len(rows), "rows": df.height}
        if df.is_empty():
            log.info("daily_summary_no_snapshots", summary_date=day.isoformat())
            return AutomationResult(
                success=True,
                message=f"No snapshots for {day.isoformat()}",
                data=data,
            )

        loader = self._loader or SupabaseLoader()
        loaded = await loader.upsert(TABLE_DAILY_SUMMARIES, df, CONFLICT_COLUMNS)
        if not loaded.success:
            raise UnexpectedError(
                f"Daily summary upsert failed for {day.isoformat()}: "
                + "; ".join(loaded.errors)
            )

        log.info("daily_summary_written", **data)
        return AutomationResult(
            success=True,
            message=f"Summarised {len(rows)} snapshots into {df.height} rows for {day.isoformat()}",
            data=data,
            meta={"records_loaded": loaded.records_loaded},
        )
