"""
sources/onus.py — Onus gold price history adapter.

API: GET {base}/line?slug=<slug>&interval=<N>d, where {base} is the source's
api_url with its trailing /golds segment replaced by /line.

    {"data": [{"buy": 8450000, "sell": 8650000, "ts": 1736899200000}, ...]}

The series can hold several points per day; the last point of each UTC day
is that day's value. Prices are VND per chỉ, except the `xauusd` slug which
is USD per troy ounce.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from vangdata_shared.constants import UNIT_USD_PER_OZ, UNIT_VND_PER_CHI, WORLD_GOLD_CODES
from vangdata_shared.errors import ExternalFetchError
from vangdata_shared.time_utils import utcnow

from vangdata_pipeline.sources.base import BaseHistoricalSource, FetchResult, RawPriceUnit

MAX_INTERVAL_DAYS = 365


def line_url(api_url: str) -> str:
    base = api_url.rstrip("/")
    if base.endswith("/golds"):
        return base[: -len("/golds")] + "/line"
    if base.endswith("/line"):
        return base
    return base + "/line"


class OnusSource(BaseHistoricalSource):
    api_type = "onus"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._series: dict[str, tuple[int, dict[date, RawPriceUnit]]] = {}

    def reset(self) -> None:
        self._series.clear()

    async def fetch_chunk(self, day: date, type_codes: list[str]) -> FetchResult:
        result = FetchResult()
        interval = (utcnow().date() - day).days + 1
        if interval < 1 or interval > MAX_INTERVAL_DAYS:
            raise ExternalFetchError(f"{day.isoformat()} is outside the Onus history window")

        for slug in type_codes:
            series = await self._daily_series(slug, interval)
            unit = series.get(day)
            if unit is None:
                result.errors.append(f"No price data for {slug} on {day.isoformat()}")
                continue
            result.units.append(unit)
        return result

    async def _daily_series(self, slug: str, interval: int) -> dict[date, RawPriceUnit]:
        cached = self._series.get(slug)
        if cached is not None and cached[0] >= interval:
            return cached[1]

        response = await self._request(
            "GET",
            line_url(self.source.api_url),
            params={"slug": slug, "interval": f"{interval}d"},
        )
        payload = self._json_object(response)
        points = [
            p
            for p in self._list_field(payload, "data")
            if isinstance(p, dict) and isinstance(p.get("ts"), (int, float))
        ]
        if not points:
            raise ExternalFetchError(f"No data in API response for {slug}")

        unit_name = UNIT_USD_PER_OZ if slug in WORLD_GOLD_CODES else UNIT_VND_PER_CHI
        series: dict[date, RawPriceUnit] = {}
        for point in sorted(points, key=lambda p: p["ts"]):
            if not self._valid_prices(point.get("buy"), point.get("sell")):
                continue
            observed_at = datetime.fromtimestamp(point["ts"] / 1000, tz=timezone.utc)
            series[observed_at.date()] = RawPriceUnit(
                day=observed_at.date(),
                type_code=slug,
                buy=float(point["buy"]),
                sell=float(point["sell"]),
                unit=unit_name,
                observed_at=observed_at,
            )
        self._series[slug] = (interval, series)
        self._log.info("line_series_fetched", slug=slug, interval=interval, days=len(series))
        return series
