"""
errors.py — Domain exception taxonomy shared by the pipeline and API.

Each error carries an HTTP status code and a short machine-readable code so
the API can map it to an error body without knowing where it was raised.

    ValidationError     400  malformed request, never retried
    NotFoundError       404  missing source or job
    ConflictError       409  illegal state transition / lost conditional update
    ExternalFetchError  502  upstream source failed (background only)
    UnexpectedError     500  anything else
"""

from __future__ import annotations

from typing import Any


class VangdataError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(VangdataError):
    status_code = 400
    code = "validation_error"


class NotFoundError(VangdataError):
    status_code = 404
    code = "not_found"


class ConflictError(VangdataError):
    status_code = 409
    code = "conflict"


class ExternalFetchError(VangdataError):
    """An upstream price source failed. Not retried unless transient."""

    status_code = 502
    code = "external_fetch_error"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.status = status


class TransientFetchError(ExternalFetchError):
    """Timeout, network error, HTTP 5xx or 429. Retried with backoff."""


class UnexpectedError(VangdataError):
    status_code = 500
    code = "unexpected_error"
