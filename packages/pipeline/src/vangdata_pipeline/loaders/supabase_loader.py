"""
loaders/supabase_loader.py — Batched writes to Supabase.

Backfill executors and automation handlers funnel their writes through
this module. The loader:
  - Batches rows to respect Supabase payload limits (~500 rows / request)
  - Inserts backfilled price snapshots (insert_snapshots)
  - Upserts polars DataFrames (INSERT … ON CONFLICT DO UPDATE) via conflict_columns
  - Returns a LoadResult with records_loaded and records_failed counts

Usage:
    from vangdata_pipeline.loaders.supabase_loader import SupabaseLoader

    loader = SupabaseLoader()
    result = await loader.insert_snapshots(unique_snapshots)

    result = await loader.upsert(
        table="daily_price_summaries",
        df=df,
        conflict_columns=["summary_date", "retailer", "province", "product_type"],
    )
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any

import polars as pl
import structlog

from vangdata_shared.config import settings
from vangdata_shared.constants import TABLE_PRICE_SNAPSHOTS
from vangdata_shared.db import get_supabase_client
from vangdata_shared.models.prices import PriceSnapshot

log = structlog.get_logger(__name__)


@dataclass
class LoadResult:
    """Summary of a loader write."""

    table: str
    records_loaded: int = 0
    records_failed: int = 0
    batches_total: int = 0
    batches_failed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.records_failed == 0


class SupabaseLoader:
    """
    Handles all price writes to Supabase.

    Uses the service role key so RLS is bypassed for ingestion writes.
    """

    def __init__(self, batch_size: int | None = None) -> None:
        self._batch_size = batch_size or settings.backfill_insert_batch_size
        self._client = get_supabase_client(service_role=True)

    # ------------------------------------------------------------------
    # Inserts
    # ------------------------------------------------------------------

    async def insert_rows(
        self,
        table: str,
        rows: list[dict[str, Any]],
    ) -> LoadResult:
        """
        Insert rows in batches. The first failed batch is re-raised; earlier
        batches stay written.

        Args:
            table: Target table name.
            rows:  JSON-serialisable dicts.
        """
        result = LoadResult(table=table)
        if not rows:
            return result

        t0 = time.monotonic()
        n_batches = math.ceil(len(rows) / self._batch_size)
        result.batches_total = n_batches

        for batch_idx in range(n_batches):
            batch = rows[batch_idx * self._batch_size : (batch_idx + 1) * self._batch_size]
            try:
                self._client.table(table).insert(batch).execute()
                result.records_loaded += len(batch)
            except Exception as exc:
                log.error("batch_failed", table=table, batch=batch_idx + 1, error=str(exc))
                raise

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        log.debug(
            "insert_complete",
            table=table,
            records_loaded=result.records_loaded,
            duration_ms=result.duration_ms,
        )
        return result

    async def insert_snapshots(self, snapshots: list[PriceSnapshot]) -> LoadResult:
        return await self.insert_rows(
            TABLE_PRICE_SNAPSHOTS,
            [s.to_insert_dict() for s in snapshots],
        )

    # ------------------------------------------------------------------
    # Upsert
    # ------------------------------------------------------------------

    async def upsert(
        self,
        table: str,
        df: pl.DataFrame,
        conflict_columns: list[str],
    ) -> LoadResult:
        """
        Upsert all rows from a polars DataFrame.

        Failed batches are logged and counted; the remaining batches still run.
        """
        result = LoadResult(table=table)
        t0 = time.monotonic()

        if df.is_empty():
            log.warning("upsert_empty_dataframe", table=table)
            return result

        rows = self._to_dicts(df)
        n_batches = math.ceil(len(rows) / self._batch_size)
        result.batches_total = n_batches

        for batch_idx in range(n_batches):
            batch = rows[batch_idx * self._batch_size : (batch_idx + 1) * self._batch_size]
            try:
                self._client.table(table).upsert(
                    batch,
                    on_conflict=",".join(conflict_columns),
                ).execute()
                result.records_loaded += len(batch)
            except Exception as exc:
                log.error("batch_failed", table=table, batch=batch_idx + 1, error=str(exc))
                result.records_failed += len(batch)
                result.batches_failed += 1
                result.errors.append(f"Batch {batch_idx + 1}/{n_batches}: {exc}")

        result.duration_ms = int((time.monotonic() - t0) * 1000)
        log.info(
            "upsert_complete",
            table=table,
            records_loaded=result.records_loaded,
            records_failed=result.records_failed,
            duration_ms=result.duration_ms,
        )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_dicts(df: pl.DataFrame) -> list[dict[str, Any]]:
        """
        Convert a polars DataFrame to a JSON-serialisable list of dicts.

        - Date and datetime values → ISO string
        - None/null values omitted (use DB defaults)
        """
        cast_exprs = []
        for col_name, dtype in df.schema.items():
            if dtype == pl.Date:
                cast_exprs.append(pl.col(col_name).cast(pl.String))
            elif isinstance(dtype, pl.Datetime):
                cast_exprs.append(pl.col(col_name).dt.strftime("%Y-%m-%dT%H:%M:%SZ"))
        if cast_exprs:
            df = df.with_columns(cast_exprs)
        return [{k: v for k, v in row.items() if v is not None} for row in df.to_dicts()]
