"""
sources/vang_today.py — vang.today historical price adapter.

API: GET {api_url}?type=<CODE>&days=<N>&action=summary

The endpoint returns the last N days (N <= 30) for one type code:

    {"success": true, "days": 7, "type": "SJL1L10",
     "history": [{"date": "2025-01-15",
                  "prices": {"SJL1L10": {"buy": 84500000, "sell": 86500000, ...}}}]}

Prices are VND per lượng, except XAUUSD which is USD per troy ounce. One
request covers a whole window, so responses are cached per type code for
the lifetime of the adapter and each chunk is served from the cache.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from vangdata_shared.constants import UNIT_USD_PER_OZ, UNIT_VND_PER_LUONG, WORLD_GOLD_CODES
from vangdata_shared.errors import ExternalFetchError
from vangdata_shared.time_utils import utcnow

from vangdata_pipeline.sources.base import BaseHistoricalSource, FetchResult, RawPriceUnit

MAX_HISTORY_DAYS = 30


class VangTodaySource(BaseHistoricalSource):
    api_type = "vang_today"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        # type code -> (days requested, {day: unit})
        self._windows: dict[str, tuple[int, dict[date, RawPriceUnit]]] = {}

    def reset(self) -> None:
        self._windows.clear()

    async def fetch_chunk(self, day: date, type_codes: list[str]) -> FetchResult:
        result = FetchResult()
        days_back = (utcnow().date() - day).days + 1
        if days_back > MAX_HISTORY_DAYS or days_back < 1:
            raise ExternalFetchError(
                f"{day.isoformat()} is outside the {MAX_HISTORY_DAYS}-day history window"
            )

        for code in type_codes:
            window = await self._window(code, days_back)
            unit = window.get(day)
            if unit is None:
                result.errors.append(f"No price data for type {code} on {day.isoformat()}")
                continue
            result.units.append(unit)
        return result

    async def _window(self, code: str, days_back: int) -> dict[date, RawPriceUnit]:
        cached = self._windows.get(code)
        if cached is not None and cached[0] >= days_back:
            return cached[1]

        response = await self._request(
            "GET",
            self.source.api_url,
            params={"type": code, "days": str(days_back), "action": "summary"},
        )
        payload = self._json_object(response)
        history = self._list_field(payload, "history")
        if not payload.get("success") or not history:
            raise ExternalFetchError(f"No historical data in API response for {code}")

        window = self._parse_history(code, history)
        self._windows[code] = (days_back, window)
        self._log.info("history_window_fetched", type_code=code, days=days_back, rows=len(window))
        return window

    def _parse_history(self, code: str, history: list[Any]) -> dict[date, RawPriceUnit]:
        unit_name = UNIT_USD_PER_OZ if code in WORLD_GOLD_CODES else UNIT_VND_PER_LUONG
        window: dict[date, RawPriceUnit] = {}
        for entry in history:
            if not isinstance(entry, dict):
                self._log.warning("history_bad_entry", type_code=code, raw=repr(entry)[:100])
                continue
            try:
                day = date.fromisoformat(str(entry.get("date", "")))
            except ValueError:
                self._log.warning("history_bad_date", type_code=code, raw=entry.get("date"))
                continue
            prices = entry.get("prices")
            info = prices.get(code) if isinstance(prices, dict) else None
            if not isinstance(info, dict) or not self._valid_prices(info.get("buy"), info.get("sell")):
                continue
            window[day] = RawPriceUnit(
                day=day,
                type_code=code,
                buy=float(info["buy"]),
                sell=float(info["sell"]),
                unit=unit_name,
            )
        return window
