"""
models/prices.py — Pydantic models for price snapshots and the crawler catalogue.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from vangdata_shared.constants import AuthType
from vangdata_shared.time_utils import parse_timestamp, to_utc_day


class PriceSnapshot(BaseModel):
    """Matches the price_snapshots table row (canonical output)."""

    retailer: str
    province: str
    product_type: str
    buy_price: float
    sell_price: float
    unit: str
    created_at: datetime
    is_backfilled: bool = True
    source_job_id: str | None = None

    @property
    def day(self) -> date:
        return to_utc_day(self.created_at)

    @property
    def dedup_key(self) -> tuple[date, str, str, str]:
        return (self.day, self.retailer, self.province, self.product_type)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "PriceSnapshot":
        data = dict(row)
        data["created_at"] = parse_timestamp(row["created_at"])
        return cls.model_validate(data)

    def to_insert_dict(self) -> dict[str, Any]:
        row = {
            "retailer": self.retailer,
            "province": self.province,
            "product_type": self.product_type,
            "buy_price": self.buy_price,
            "sell_price": self.sell_price,
            "unit": self.unit,
            "created_at": self.created_at.isoformat(),
            "is_backfilled": self.is_backfilled,
        }
        if self.source_job_id:
            row["source_job_id"] = self.source_job_id
        return row


class CrawlerSource(BaseModel):
    """Matches the crawler_sources table row. Read-only for the backfill system."""

    id: str
    name: str = ""
    api_url: str
    api_type: str
    is_enabled: bool = True
    headers: dict[str, str] = Field(default_factory=dict)
    auth_type: AuthType = "none"
    auth_config: dict[str, Any] = Field(default_factory=dict)
    rate_limit_per_minute: int | None = None
    timeout_seconds: float | None = None
    priority: int = 0

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "CrawlerSource":
        data = {k: v for k, v in row.items() if v is not None}
        return cls.model_validate(data)


class TypeMapping(BaseModel):
    """crawler_type_mappings: (source_id, external_code) -> canonical codes."""

    source_id: str
    external_code: str
    retailer_code: str
    product_type_code: str
    province_code: str | None = None
    label: str | None = None
    is_enabled: bool = True

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "TypeMapping":
        return cls.model_validate(row)


class ZoneMapping(BaseModel):
    """crawler_zone_mappings: (source_id, external_code) -> province code."""

    source_id: str
    external_code: str
    province_code: str
    is_enabled: bool = True

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "ZoneMapping":
        return cls.model_validate(row)
