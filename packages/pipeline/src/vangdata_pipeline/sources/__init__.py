"""
vangdata_pipeline.sources — historical price source adapters.

Each source wraps one upstream price API, selected by crawler_sources.api_type:
  VangTodaySource — vang.today per-type history windows (JSON GET)
  SJCSource       — SJC GetGoldPriceHistory (form POST, all types per day)
  OnusSource      — Onus /line time series (JSON GET, intraday points)
"""

from __future__ import annotations

from vangdata_shared.errors import ValidationError
from vangdata_shared.models.prices import CrawlerSource

from vangdata_pipeline.backfill.rate_limiter import SlidingWindowRateLimiter
from vangdata_pipeline.sources.base import BaseHistoricalSource, FetchResult, RawPriceUnit
from vangdata_pipeline.sources.onus import OnusSource
from vangdata_pipeline.sources.sjc import SJCSource
from vangdata_pipeline.sources.vang_today import VangTodaySource

SOURCE_TYPES: dict[str, type[BaseHistoricalSource]] = {
    VangTodaySource.api_type: VangTodaySource,
    SJCSource.api_type: SJCSource,
    OnusSource.api_type: OnusSource,
}


def build_source(
    source: CrawlerSource,
    *,
    rate_limiter: SlidingWindowRateLimiter | None = None,
) -> BaseHistoricalSource:
    """Instantiate the adapter for a catalogue row's api_type."""
    cls = SOURCE_TYPES.get(source.api_type)
    if cls is None:
        raise ValidationError(
            f"Historical backfill is not supported for api_type '{source.api_type}'"
        )
    return cls(source, rate_limiter=rate_limiter)


__all__ = [
    "BaseHistoricalSource",
    "FetchResult",
    "RawPriceUnit",
    "VangTodaySource",
    "SJCSource",
    "OnusSource",
    "SOURCE_TYPES",
    "build_source",
]
