"""
tests/test_sources/test_source_base.py — Shared HTTP behaviour of BaseHistoricalSource.

Tests cover:
  - Auth headers built from the catalogue row
  - Transient vs permanent error classification
  - Content-type and JSON validation
  - build_source() dispatch on api_type
"""

from __future__ import annotations

from datetime import date

import httpx
import pytest

from vangdata_shared.errors import ExternalFetchError, TransientFetchError, ValidationError
from vangdata_shared.models.prices import CrawlerSource

from vangdata_pipeline.sources import SJCSource, build_source
from vangdata_pipeline.sources.base import BaseHistoricalSource, FetchResult

URL = "https://prices.example.test/history"


class EchoSource(BaseHistoricalSource):
    api_type = "echo"

    async def fetch_chunk(self, day: date, type_codes: list[str]) -> FetchResult:
        response = await self._request("GET", self.source.api_url)
        self._json(response)
        return FetchResult()


def _row(**overrides) -> CrawlerSource:
    data = {"id": "src-echo", "api_url": URL, "api_type": "echo", "rate_limit_per_minute": 600}
    data.update(overrides)
    return CrawlerSource(**data)


class TestHeaders:
    @pytest.mark.asyncio
    async def test_api_key_header(self, mock_http):
        route = mock_http.get(URL).mock(return_value=httpx.Response(200, json={}))
        source = EchoSource(
            _row(auth_type="api_key", auth_config={"header_name": "X-Key", "api_key": "s3cret"})
        )

        await source.fetch_chunk(date(2025, 1, 1), [])

        assert route.calls[0].request.headers["X-Key"] == "s3cret"

    @pytest.mark.asyncio
    async def test_bearer_and_custom_headers(self, mock_http):
        route = mock_http.get(URL).mock(return_value=httpx.Response(200, json={}))
        source = EchoSource(
            _row(auth_type="bearer", auth_config={"token": "tok"}, headers={"Referer": "https://x"})
        )

        await source.fetch_chunk(date(2025, 1, 1), [])

        headers = route.calls[0].request.headers
        assert headers["Authorization"] == "Bearer tok"
        assert headers["Referer"] == "https://x"

    @pytest.mark.asyncio
    async def test_basic_auth(self, mock_http):
        route = mock_http.get(URL).mock(return_value=httpx.Response(200, json={}))
        source = EchoSource(_row(auth_type="basic", auth_config={"username": "u", "password": "p"}))

        await source.fetch_chunk(date(2025, 1, 1), [])

        assert route.calls[0].request.headers["Authorization"].startswith("Basic ")


class TestErrorClassification:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_retryable_statuses_are_transient(self, mock_http, status):
        mock_http.get(URL).mock(return_value=httpx.Response(status))
        with pytest.raises(TransientFetchError) as exc_info:
            await EchoSource(_row()).fetch_chunk(date(2025, 1, 1), [])
        assert exc_info.value.status == status

    @pytest.mark.asyncio
    async def test_client_errors_are_permanent(self, mock_http):
        mock_http.get(URL).mock(return_value=httpx.Response(404, text="missing"))
        with pytest.raises(ExternalFetchError) as exc_info:
            await EchoSource(_row()).fetch_chunk(date(2025, 1, 1), [])
        assert not isinstance(exc_info.value, TransientFetchError)
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, mock_http):
        mock_http.get(URL).mock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(TransientFetchError, match="timeout"):
            await EchoSource(_row()).fetch_chunk(date(2025, 1, 1), [])

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, mock_http):
        mock_http.get(URL).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(TransientFetchError, match="Network error"):
            await EchoSource(_row()).fetch_chunk(date(2025, 1, 1), [])

    @pytest.mark.asyncio
    async def test_html_response_is_rejected(self, mock_http):
        mock_http.get(URL).mock(
            return_value=httpx.Response(200, text="<html>", headers={"content-type": "text/html"})
        )
        with pytest.raises(ExternalFetchError, match="Invalid content type"):
            await EchoSource(_row()).fetch_chunk(date(2025, 1, 1), [])


class TestBuildSource:
    def test_dispatches_on_api_type(self):
        source = build_source(_row(api_type="sjc"))
        assert isinstance(source, SJCSource)

    def test_unsupported_api_type(self):
        with pytest.raises(ValidationError, match="not supported"):
            build_source(_row(api_type="ftp"))
