"""Limit/offset pagination helpers."""

from __future__ import annotations

from typing import Any

from fastapi import Query


class PaginationParams:
    """Dependency for extracting pagination query params."""

    def __init__(
        self,
        limit: int = Query(50, ge=1, le=500, description="Number of results per page"),
        offset: int = Query(0, ge=0, description="Number of results to skip"),
    ) -> None:
        self.limit = limit
        self.offset = offset


def page_meta(pagination: PaginationParams, items: list[Any]) -> dict[str, Any]:
    """Echo the page window and whether a further page may exist."""
    return {
        "limit": pagination.limit,
        "offset": pagination.offset,
        "has_more": len(items) >= pagination.limit,
    }
