"""
Structured logging for the data-access layer.

Repositories log through module loggers (``logging.getLogger(__name__)``)
and attach identifiers with ``extra={...}``. This module decides how those
records are rendered:

- ``json``: one JSON object per line, for log shippers
- ``text``: a pipe-separated line, for local development

Every record logged while a correlation id is set carries it, so the
writes of one unit of work can be followed across repositories.

Log Structure (JSON):
{
    "timestamp": "2024-01-15T10:30:00.123Z",
    "level": "INFO",
    "logger": "repositories.patient_repository",
    "message": "Patient add committed",
    "correlation_id": "intake-42",
    "extra": {"patient_id": "...", "row_version": 1}
}

Usage:
    from core.logging_config import correlation_scope, setup_logging

    setup_logging()

    with correlation_scope("intake-42"):
        await patients.add(patient)
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import IO, Any, Dict, Iterator, Mapping, Optional

from core.config import settings

# Package loggers routed through the root handler
PACKAGE_LOGGERS = ("core", "models", "storage", "repositories")

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(correlation)s%(message)s"

# =============================================================================
# CORRELATION ID
# =============================================================================

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current task and its children."""
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """
    Tag every record logged inside the block with ``correlation_id``.

    The previous id (if any) is restored on exit, so scopes nest.
    """
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


# =============================================================================
# FORMATTERS
# =============================================================================

# Attributes present on every LogRecord; anything else came from extra={...}
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", (), None).__dict__
) | {"message", "asctime", "correlation"}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """
    Single-line JSON log formatter.

    Args:
        static_fields: Fields added to every entry, e.g. ``{"service": "clinical"}``.

    The timestamp is the record's creation time in UTC, with millisecond
    precision. Fields passed via ``extra={...}`` are nested under ``extra``.
    """

    def __init__(self, static_fields: Optional[Mapping[str, Any]] = None):
        super().__init__()
        self.static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.") + f"{created.microsecond // 1000:03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(self.static_fields)

        correlation_id = get_correlation_id()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = _extra_fields(record)
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable format; prefixes the message with ``[correlation_id]`` when set."""

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id()
        record.correlation = f"[{correlation_id}] " if correlation_id else ""
        return super().format(record)


# =============================================================================
# SETUP
# =============================================================================

def setup_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    stream: Optional[IO[str]] = None,
    static_fields: Optional[Mapping[str, Any]] = None,
) -> logging.Handler:
    """
    Install a single stream handler on the root logger.

    Args:
        level: Log level name. Defaults to settings.log_level.
        json_format: JSON (True) or text (False). Defaults to settings.log_format.
        stream: Destination stream. Defaults to stdout.
        static_fields: Extra fields for every JSON entry.

    Returns:
        The installed handler.
    """
    level = (level or settings.log_level).upper()
    if json_format is None:
        json_format = settings.log_format == "json"

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter(static_fields) if json_format else TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for name in PACKAGE_LOGGERS:
        package_logger = logging.getLogger(name)
        package_logger.setLevel(level)
        package_logger.handlers = []
        package_logger.propagate = True

    logging.getLogger(__name__).debug(
        "Logging configured",
        extra={"level": level, "format": "json" if json_format else "text"},
    )
    return handler
