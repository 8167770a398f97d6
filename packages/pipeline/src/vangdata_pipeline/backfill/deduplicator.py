"""
backfill/deduplicator.py — Day-granularity duplicate detection for backfilled snapshots.

The historical APIs return one aggregate value per day, so a backfilled
snapshot is a duplicate when a backfilled row already exists for the same
(retailer, province, product_type) on the same UTC calendar day. Live
(non-backfilled) rows never count as duplicates.

Query errors propagate: a failed existence check fails the run rather than
risking a double write.

Usage:
    dedup = PriceDeduplicator()
    unique, duplicates = dedup.filter_duplicates_batch(snapshots)
"""

from __future__ import annotations

from datetime import date
from typing import NamedTuple

import structlog

from vangdata_shared.constants import TABLE_PRICE_SNAPSHOTS
from vangdata_shared.db import get_supabase_client
from vangdata_shared.models.prices import PriceSnapshot
from vangdata_shared.time_utils import day_bounds

log = structlog.get_logger(__name__)

DedupKey = tuple[date, str, str, str]


class DedupResult(NamedTuple):
    unique: list[PriceSnapshot]
    duplicates: list[PriceSnapshot]


class PriceDeduplicator:
    def __init__(self) -> None:
        self._client = get_supabase_client(service_role=True)

    def _exists(self, key: DedupKey) -> bool:
        day, retailer, province, product_type = key
        start, end = day_bounds(day)
        result = (
            self._client.table(TABLE_PRICE_SNAPSHOTS)
            .select("id")
            .eq("retailer", retailer)
            .eq("province", province)
            .eq("product_type", product_type)
            .eq("is_backfilled", True)
            .gte("created_at", start.isoformat())
            .lt("created_at", end.isoformat())
            .limit(1)
            .execute()
        )
        return bool(result.data)

    def is_duplicate(self, snapshot: PriceSnapshot) -> bool:
        """True if a backfilled snapshot already exists for this key and day."""
        return self._exists(snapshot.dedup_key)

    def filter_duplicates(self, snapshots: list[PriceSnapshot]) -> DedupResult:
        """Naive per-record check. Intended for small batches."""
        unique: list[PriceSnapshot] = []
        duplicates: list[PriceSnapshot] = []
        for snapshot in snapshots:
            (duplicates if self.is_duplicate(snapshot) else unique).append(snapshot)
        return DedupResult(unique, duplicates)

    def filter_duplicates_batch(self, snapshots: list[PriceSnapshot]) -> DedupResult:
        """
        One existence query per distinct (day, retailer, province, product_type).

        The first record for a key within the batch is accepted and the key is
        then treated as existing, so later records with the same key in the
        same batch are duplicates.
        """
        if not snapshots:
            return DedupResult([], [])

        existing: set[DedupKey] = set()
        for key in dict.fromkeys(s.dedup_key for s in snapshots):
            if self._exists(key):
                existing.add(key)

        unique: list[PriceSnapshot] = []
        duplicates: list[PriceSnapshot] = []
        for snapshot in snapshots:
            key = snapshot.dedup_key
            if key in existing:
                duplicates.append(snapshot)
            else:
                unique.append(snapshot)
                existing.add(key)

        log.debug(
            "dedup_batch",
            candidates=len(snapshots),
            unique=len(unique),
            duplicates=len(duplicates),
        )
        return DedupResult(unique, duplicates)
