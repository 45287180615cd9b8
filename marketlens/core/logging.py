"""Structured logging configuration with analysis ID tracking."""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from .config import settings


# Set by the host around one analysis call so every log line can be traced
analysis_id_var: ContextVar[Optional[str]] = ContextVar("analysis_id", default=None)


def _created(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, tagged with the current analysis ID."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _created(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        analysis_id = analysis_id_var.get()
        if analysis_id:
            payload["analysis_id"] = analysis_id
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            payload["location"] = f"{record.filename}:{record.lineno} in {record.funcName}"
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Single-line text with a short analysis ID prefix."""

    def format(self, record: logging.LogRecord) -> str:
        analysis_id = analysis_id_var.get()
        prefix = f"[{analysis_id[:8]}] " if analysis_id else ""
        line = (
            f"{_created(record):%Y-%m-%d %H:%M:%S} {record.levelname:8} "
            f"{prefix}{record.name}: {record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: str | None = None) -> None:
    """Configure the ``marketlens`` logger hierarchy.

    Only the library's own logger is touched so a host application keeps
    control of the root logger.
    """
    log_level = getattr(logging, (level or settings.log_level).upper())
    lib_logger = logging.getLogger("marketlens")
    lib_logger.setLevel(log_level)

    for handler in lib_logger.handlers[:]:
        lib_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if settings.log_format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(TextFormatter())

    lib_logger.addHandler(handler)
    lib_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the marketlens prefix."""
    return logging.getLogger(f"marketlens.{name}")


@contextmanager
def analysis_context(analysis_id: str | None = None) -> Iterator[str]:
    """Bind an analysis ID to log records emitted inside the block."""
    aid = analysis_id or uuid.uuid4().hex
    token = analysis_id_var.set(aid)
    try:
        yield aid
    finally:
        analysis_id_var.reset(token)
