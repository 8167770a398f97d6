"""Standardized API response and error bodies."""

from __future__ import annotations

from typing import Any

# HTTP status → machine-readable error code for errors raised as HTTPException
STATUS_CODES: dict[int, str] = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    500: "unexpected_error",
}


def error_response(
    code: str,
    message: str,
    *,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a standardized error response dict."""
    err: dict[str, Any] = {"code": code, "message": message}
    if details:
        err["details"] = details
    return {"error": err}


def message_response(message: str, **extra: Any) -> dict[str, Any]:
    return {"message": message, **extra}
