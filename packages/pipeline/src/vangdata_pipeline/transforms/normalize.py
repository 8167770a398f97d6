"""
transforms/normalize.py — Map raw source units to canonical price snapshots.

A source speaks in its own external codes (vang.today "SJL1L10", SJC
TypeName "Vàng SJC 1L, 10L, 1KG", SJC BranchName "Hồ Chí Minh", ...).
NormalizationMapper resolves them through the crawler_type_mappings and
crawler_zone_mappings tables to canonical (retailer, province, product_type)
codes, converts prices into the canonical unit, and stamps each snapshot at
midnight UTC of its day.

Units with no enabled mapping are not errors: they are returned in
`unmapped` with a reason so the executor can log them at warn level.

Usage:
    from vangdata_pipeline.transforms.normalize import NormalizationMapper

    mapper = NormalizationMapper(source_id)
    await mapper.load()                       # one-time, loads both mapping tables
    result = mapper.normalize(fetch_result.units, job_id=job.id)
    result.snapshots                          # list[PriceSnapshot]
    result.unmapped                           # list[(RawPriceUnit, reason)]
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from vangdata_shared.config import settings
from vangdata_shared.constants import (
    CHI_PER_LUONG,
    TABLE_TYPE_MAPPINGS,
    TABLE_ZONE_MAPPINGS,
    UNIT_VND_PER_CHI,
    UNIT_VND_PER_LUONG,
)
from vangdata_shared.db import get_supabase_client
from vangdata_shared.models.prices import PriceSnapshot, TypeMapping, ZoneMapping
from vangdata_shared.time_utils import start_of_day

from vangdata_pipeline.sources.base import RawPriceUnit

log = structlog.get_logger(__name__)


def convert_price(value: float, unit: str) -> tuple[float, str]:
    """Convert a price into its canonical unit. VND/lượng becomes VND/chỉ."""
    if unit == UNIT_VND_PER_LUONG:
        return value / CHI_PER_LUONG, UNIT_VND_PER_CHI
    return value, unit


@dataclass
class NormalizeResult:
    snapshots: list[PriceSnapshot] = field(default_factory=list)
    unmapped: list[tuple[RawPriceUnit, str]] = field(default_factory=list)


class NormalizationMapper:
    """
    Resolves one source's external codes to canonical codes.

    Internal caches (enabled rows only), loaded once per executor run:
      _types: external_code -> TypeMapping
      _zones: external_code -> ZoneMapping
    """

    def __init__(self, source_id: str, *, default_province: str | None = None) -> None:
        self.source_id = source_id
        self.default_province = default_province or settings.default_province_code
        self._types: dict[str, TypeMapping] = {}
        self._zones: dict[str, ZoneMapping] = {}
        self._loaded = False

    async def load(self, *, force_reload: bool = False) -> None:
        """
        Fetch enabled type and zone mappings for the source.

        Args:
            force_reload: If True, re-fetch even if already loaded.
        """
        if self._loaded and not force_reload:
            return

        client = get_supabase_client(service_role=True)
        types = (
            client.table(TABLE_TYPE_MAPPINGS)
            .select("*")
            .eq("source_id", self.source_id)
            .eq("is_enabled", True)
            .execute()
        )
        zones = (
            client.table(TABLE_ZONE_MAPPINGS)
            .select("*")
            .eq("source_id", self.source_id)
            .eq("is_enabled", True)
            .execute()
        )
        self._types = {
            row["external_code"]: TypeMapping.from_db_row(row) for row in (types.data or [])
        }
        self._zones = {
            row["external_code"]: ZoneMapping.from_db_row(row) for row in (zones.data or [])
        }
        self._loaded = True
        log.info(
            "mapping_cache_loaded",
            source_id=self.source_id,
            type_mappings=len(self._types),
            zone_mappings=len(self._zones),
        )

    def enabled_type_codes(self) -> list[str]:
        """Every enabled external type code, sorted (what types="all" expands to)."""
        return sorted(self._types)

    def normalize(self, units: list[RawPriceUnit], *, job_id: str | None = None) -> NormalizeResult:
        result = NormalizeResult()
        for unit in units:
            mapping = self._types.get(unit.type_code)
            if mapping is None:
                result.unmapped.append((unit, f"No enabled type mapping for '{unit.type_code}'"))
                continue

            if unit.zone_code:
                zone = self._zones.get(unit.zone_code)
                if zone is None:
                    result.unmapped.append(
                        (unit, f"No enabled zone mapping for '{unit.zone_code}'")
                    )
                    continue
                province = zone.province_code
            else:
                province = mapping.province_code or self.default_province

            buy, canonical_unit = convert_price(unit.buy, unit.unit)
            sell, _ = convert_price(unit.sell, unit.unit)
            result.snapshots.append(
                PriceSnapshot(
                    retailer=mapping.retailer_code,
                    province=province,
                    product_type=mapping.product_type_code,
                    buy_price=buy,
                    sell_price=sell,
                    unit=canonical_unit,
                    created_at=start_of_day(unit.day),
                    is_backfilled=True,
                    source_job_id=job_id,
                )
            )
        if result.unmapped:
            log.debug(
                "units_unmapped",
                source_id=self.source_id,
                count=len(result.unmapped),
            )
        return result
