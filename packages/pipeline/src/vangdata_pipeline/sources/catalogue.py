"""
sources/catalogue.py — Read-only access to the crawler_sources catalogue.

The backfill system never writes to crawler_sources; administrators manage
it elsewhere. Rows are re-read on every call so a disabled source takes
effect on the next executor start.
"""

from __future__ import annotations

import structlog

from vangdata_shared.constants import TABLE_CRAWLER_SOURCES
from vangdata_shared.db import get_supabase_client
from vangdata_shared.models.prices import CrawlerSource

log = structlog.get_logger(__name__)


class SourceCatalogue:
    def __init__(self) -> None:
        self._client = get_supabase_client(service_role=True)

    def get(self, source_id: str) -> CrawlerSource | None:
        result = (
            self._client.table(TABLE_CRAWLER_SOURCES)
            .select("*")
            .eq("id", source_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return CrawlerSource.from_db_row(result.data[0])

    def list_enabled(self) -> list[CrawlerSource]:
        result = (
            self._client.table(TABLE_CRAWLER_SOURCES)
            .select("*")
            .eq("is_enabled", True)
            .order("priority")
            .execute()
        )
        sources = [CrawlerSource.from_db_row(row) for row in (result.data or [])]
        log.debug("enabled_sources_loaded", count=len(sources))
        return sources
