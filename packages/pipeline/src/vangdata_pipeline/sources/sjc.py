"""
sources/sjc.py — SJC (Saigon Jewelry Company) historical price adapter.

API: form POST to {api_url} with
    method=GetGoldPriceHistory, goldPriceId=1, fromDate=DD/MM/YYYY, toDate=DD/MM/YYYY

A single response carries every product type at every branch for the
requested dates:

    {"success": true, "data": [{"TypeName": "Vàng SJC 1L, 10L, 1KG",
                                "BranchName": "Hồ Chí Minh",
                                "BuyValue": 84500000, "SellValue": 86500000}]}

TypeName is the external type code and BranchName the external zone code.
Prices are VND per lượng. Responses are cached per day, so a job with
enumerated types makes one request per day rather than one per chunk.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from vangdata_shared.constants import UNIT_VND_PER_LUONG
from vangdata_shared.time_utils import start_of_day

from vangdata_pipeline.sources.base import BaseHistoricalSource, FetchResult, RawPriceUnit


def format_sjc_date(day: date) -> str:
    return day.strftime("%d/%m/%Y")


class SJCSource(BaseHistoricalSource):
    api_type = "sjc"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._days: dict[date, list[Any]] = {}

    def reset(self) -> None:
        self._days.clear()

    async def fetch_chunk(self, day: date, type_codes: list[str]) -> FetchResult:
        result = FetchResult()
        items = await self._items_for(day)
        if not items:
            result.errors.append(f"No SJC data for {day.isoformat()}")
            return result

        wanted = set(type_codes)
        for item in items:
            if not isinstance(item, dict):
                result.errors.append(f"Malformed SJC row for {day.isoformat()}: {item!r:.100}")
                continue
            name = item.get("TypeName")
            if wanted and name not in wanted:
                continue
            if not self._valid_prices(item.get("BuyValue"), item.get("SellValue")):
                result.errors.append(
                    f"Invalid buy/sell prices for {name} in {item.get('BranchName')}"
                )
                continue
            result.units.append(
                RawPriceUnit(
                    day=day,
                    type_code=name,
                    zone_code=item.get("BranchName") or None,
                    buy=float(item["BuyValue"]),
                    sell=float(item["SellValue"]),
                    unit=UNIT_VND_PER_LUONG,
                    observed_at=start_of_day(day),
                )
            )
        for code in sorted(wanted - {u.type_code for u in result.units}):
            result.errors.append(f"No data found for type: {code}")
        return result

    async def _items_for(self, day: date) -> list[Any]:
        if day in self._days:
            return self._days[day]

        response = await self._request(
            "POST",
            self.source.api_url,
            data={
                "method": "GetGoldPriceHistory",
                "goldPriceId": "1",
                "fromDate": format_sjc_date(day),
                "toDate": format_sjc_date(day),
            },
        )
        payload = self._json_object(response)
        items = self._list_field(payload, "data") if payload.get("success") else []
        self._days[day] = items
        self._log.info("sjc_day_fetched", day=day.isoformat(), rows=len(items))
        return items
