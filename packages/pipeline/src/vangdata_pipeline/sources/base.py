"""
sources/base.py — Abstract base class for historical price source adapters.

Each concrete source must implement:
  fetch_chunk() — fetch raw prices for one calendar day, return FetchResult

The base class owns everything that is the same for every upstream API:
  - headers and authentication built from the crawler_sources row
  - the per-source rate limiter, applied before every HTTP request
  - the per-call timeout (crawler_sources.timeout_seconds)
  - classification of failures into transient (retried by the executor)
    and permanent ExternalFetchError

Sources never retry on their own; the executor decides how many times a
chunk is attempted.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import httpx
import structlog

from vangdata_shared.config import settings
from vangdata_shared.errors import ExternalFetchError, TransientFetchError
from vangdata_shared.models.prices import CrawlerSource

from vangdata_pipeline.backfill.rate_limiter import SlidingWindowRateLimiter, get_rate_limiter

log = structlog.get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; vangdata/0.1)"


@dataclass
class RawPriceUnit:
    """One upstream price observation before normalization."""

    day: date
    type_code: str
    buy: float
    sell: float
    unit: str
    zone_code: str | None = None
    observed_at: datetime | None = None


@dataclass
class FetchResult:
    """Units fetched for a chunk plus per-unit parse problems (non-fatal)."""

    units: list[RawPriceUnit] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class BaseHistoricalSource(ABC):
    """Abstract base for all historical price source adapters."""

    # Matches crawler_sources.api_type
    api_type: str = "unknown"

    def __init__(
        self,
        source: CrawlerSource,
        *,
        rate_limiter: SlidingWindowRateLimiter | None = None,
    ) -> None:
        self.source = source
        self.timeout = source.timeout_seconds or settings.backfill_default_timeout_seconds
        self.rate_limiter = rate_limiter or get_rate_limiter(
            source.id,
            source.rate_limit_per_minute or settings.backfill_default_rate_limit,
        )
        self._log = log.bind(source_id=source.id, api_type=self.api_type)

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    async def fetch_chunk(self, day: date, type_codes: list[str]) -> FetchResult:
        """
        Fetch raw prices for one calendar day.

        Args:
            day:        The chunk's calendar day (UTC).
            type_codes: External type codes wanted for this chunk.

        Returns:
            FetchResult with units for `day` only.

        Raises:
            TransientFetchError: timeout, network error, HTTP 5xx or 429.
            ExternalFetchError:  any other upstream failure.
        """
        ...

    def reset(self) -> None:
        """Drop any per-run response cache. Default: nothing cached."""

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        headers.update(self.source.headers or {})
        cfg = self.source.auth_config or {}
        if self.source.auth_type == "api_key":
            headers[cfg.get("header_name", "X-API-Key")] = str(cfg.get("api_key", ""))
        elif self.source.auth_type == "bearer":
            headers["Authorization"] = f"Bearer {cfg.get('token', '')}"
        return headers

    def _auth(self) -> httpx.Auth | None:
        if self.source.auth_type == "basic":
            cfg = self.source.auth_config or {}
            return httpx.BasicAuth(cfg.get("username", ""), cfg.get("password", ""))
        return None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """One rate-limited HTTP request with the source's timeout."""
        await self.rate_limiter.acquire()
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._headers(),
                auth=self._auth(),
                follow_redirects=True,
            ) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientFetchError(f"Request timeout after {self.timeout}s: {url}") from exc
        except httpx.TransportError as exc:
            raise TransientFetchError(f"Network error: {exc}") from exc

        duration_ms = int((time.monotonic() - t0) * 1000)
        status = response.status_code
        if status == 429 or status >= 500:
            self._log.warning("upstream_transient_error", status=status, duration_ms=duration_ms)
            raise TransientFetchError(f"HTTP {status} from {url}", status=status)
        if status >= 400:
            raise ExternalFetchError(
                f"HTTP {status}: {response.text[:200]}",
                status=status,
            )
        self._log.debug("upstream_request_ok", status=status, duration_ms=duration_ms)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        content_type = response.headers.get("content-type", "")
        if "json" not in content_type:
            raise ExternalFetchError(
                f"Invalid content type: {content_type or 'missing'}. "
                f"Response: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalFetchError(f"Malformed JSON: {exc}") from exc

    @classmethod
    def _json_object(cls, response: httpx.Response) -> dict[str, Any]:
        payload = cls._json(response)
        if not isinstance(payload, dict):
            raise ExternalFetchError(
                f"Unexpected response shape: expected an object, got {type(payload).__name__}"
            )
        return payload

    @staticmethod
    def _list_field(payload: dict[str, Any], key: str) -> list[Any]:
        value = payload.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            raise ExternalFetchError(
                f"Unexpected response shape: '{key}' is {type(value).__name__}, not a list"
            )
        return value

    @staticmethod
    def _valid_prices(buy: Any, sell: Any) -> bool:
        return (
            isinstance(buy, (int, float))
            and isinstance(sell, (int, float))
            and not isinstance(buy, bool)
            and not isinstance(sell, bool)
            and buy > 0
            and sell > 0
        )
