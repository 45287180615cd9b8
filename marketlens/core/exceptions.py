"""Typed analytics exceptions.

Insufficient or degenerate data is normally reported through neutral values
or ``{"error": ...}`` records. Exceptions are reserved for programming
errors such as mismatched array lengths passed to a pairwise function.
"""

from __future__ import annotations

from typing import Any


class AnalyticsError(Exception):
    """Base analytics exception with a structured error payload."""

    error_code: str = "ANALYTICS_ERROR"
    message: str = "Analytics computation failed"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "code": self.error_code,
            **({"details": self.details} if self.details else {}),
        }


class PreconditionError(AnalyticsError):
    """A pairwise function received inputs it cannot reconcile."""

    error_code = "PRECONDITION_FAILED"
    message = "Input arrays violate a precondition"


class InvalidParameterError(PreconditionError):
    """A configuration parameter is out of range."""

    error_code = "INVALID_PARAMETER"
    message = "Invalid parameter"


class InsufficientDataError(AnalyticsError):
    """Fewer points than a window or lookback requires."""

    error_code = "INSUFFICIENT_DATA"
    message = "Not enough data"


def error_record(exc: AnalyticsError) -> dict[str, Any]:
    """Sentinel record returned by entry points instead of raising."""
    return {"error": exc.message}
