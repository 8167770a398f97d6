"""
tests/test_sources/test_onus.py — Unit tests for OnusSource (/line time series).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from vangdata_shared.errors import ExternalFetchError
from vangdata_shared.models.prices import CrawlerSource
from vangdata_shared.time_utils import start_of_day, utcnow

from vangdata_pipeline.sources.onus import OnusSource, line_url

GOLDS_URL = "https://goonus.io/api/v1/golds"
LINE_URL = "https://goonus.io/api/v1/line"


def _ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


@pytest.fixture
def source() -> OnusSource:
    return OnusSource(
        CrawlerSource(id="src-onus", api_url=GOLDS_URL, api_type="onus", rate_limit_per_minute=600)
    )


@pytest.mark.parametrize(
    "api_url, expected",
    [
        (GOLDS_URL, LINE_URL),
        (GOLDS_URL + "/", LINE_URL),
        (LINE_URL, LINE_URL),
        ("https://goonus.io/api/v1", LINE_URL),
    ],
)
def test_line_url(api_url, expected):
    assert line_url(api_url) == expected


@pytest.mark.asyncio
async def test_last_point_of_day_wins(source, mock_http):
    day = utcnow().date() - timedelta(days=1)
    midnight = start_of_day(day)
    route = mock_http.get(url__startswith=LINE_URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "data": [
                    {"buy": 8_500_000, "sell": 8_700_000, "ts": _ms(midnight + timedelta(hours=20))},
                    {"buy": 8_400_000, "sell": 8_600_000, "ts": _ms(midnight + timedelta(hours=2))},
                ]
            },
        )
    )

    result = await source.fetch_chunk(day, ["sjc"])

    params = route.calls[0].request.url.params
    assert params["slug"] == "sjc"
    assert params["interval"] == "2d"
    unit = result.units[0]
    assert unit.buy == 8_500_000
    assert unit.unit == "VND/chi"
    assert unit.observed_at == midnight + timedelta(hours=20)


@pytest.mark.asyncio
async def test_xauusd_in_usd_per_ounce(source, mock_http):
    day = utcnow().date()
    mock_http.get(url__startswith=LINE_URL).mock(
        return_value=httpx.Response(
            200,
            json={"data": [{"buy": 2650.1, "sell": 2650.9, "ts": _ms(start_of_day(day))}]},
        )
    )

    result = await source.fetch_chunk(day, ["xauusd"])

    assert result.units[0].unit == "USD/oz"


@pytest.mark.asyncio
async def test_empty_series_raises(source, mock_http):
    mock_http.get(url__startswith=LINE_URL).mock(return_value=httpx.Response(200, json={"data": []}))
    with pytest.raises(ExternalFetchError):
        await source.fetch_chunk(utcnow().date(), ["sjc"])


@pytest.mark.asyncio
async def test_day_without_points_is_reported(source, mock_http):
    today = utcnow().date()
    mock_http.get(url__startswith=LINE_URL).mock(
        return_value=httpx.Response(
            200,
            json={"data": [{"buy": 1, "sell": 2, "ts": _ms(datetime.now(timezone.utc))}]},
        )
    )

    result = await source.fetch_chunk(today - timedelta(days=3), ["sjc"])

    assert result.units == []
    assert result.errors


@pytest.mark.asyncio
async def test_data_that_is_not_a_list_raises(source, mock_http):
    mock_http.get(url__startswith=LINE_URL).mock(
        return_value=httpx.Response(200, json={"data": {"buy": 1, "sell": 2}})
    )
    with pytest.raises(ExternalFetchError, match="not a list"):
        await source.fetch_chunk(utcnow().date(), ["sjc"])


@pytest.mark.asyncio
async def test_malformed_points_are_skipped(source, mock_http):
    day = utcnow().date()
    mock_http.get(url__startswith=LINE_URL).mock(
        return_value=httpx.Response(
            200,
            json={
                "data": [
                    "junk",
                    {"buy": 1, "sell": 2, "ts": "yesterday"},
                    {"buy": 8_500_000, "sell": 8_700_000, "ts": _ms(start_of_day(day))},
                ]
            },
        )
    )

    result = await source.fetch_chunk(day, ["sjc"])

    assert [u.buy for u in result.units] == [8_500_000]
