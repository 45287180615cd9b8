"""Core infrastructure: settings, logging, exceptions."""

from .config import settings
from .exceptions import (
    AnalyticsError,
    InsufficientDataError,
    InvalidParameterError,
    PreconditionError,
)
from .logging import analysis_context, get_logger, setup_logging


__all__ = [
    "AnalyticsError",
    "InsufficientDataError",
    "InvalidParameterError",
    "PreconditionError",
    "analysis_context",
    "get_logger",
    "settings",
    "setup_logging",
]
