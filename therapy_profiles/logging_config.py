"""Structured logging configuration.

Every record carries the correlation ID of the profile operation that
emitted it, so the log lines of one load (validation, basal sync,
commit) can be grouped even when several loads overlap on the loop.
"""

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

# Correlation ID of the profile operation currently running
correlation_id_ctx: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_DEFAULT_SERVICE_NAME = "therapy-profiles"


def new_correlation_id() -> str:
    """Return a short random identifier for one profile operation."""
    return uuid.uuid4().hex[:12]


@contextmanager
def correlation_scope(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of the block.

    Args:
        correlation_id: ID to bind; a new one is generated when omitted.

    Yields:
        The bound correlation ID.
    """
    value = correlation_id or new_correlation_id()
    token = correlation_id_ctx.set(value)
    try:
        yield value
    finally:
        correlation_id_ctx.reset(token)


class JsonFormatter(logging.Formatter):
    """Formatter that outputs log records as single-line JSON.

    Format includes:
    - timestamp: ISO 8601 format with timezone
    - level: Log level (INFO, ERROR, etc.)
    - service: Service name
    - message: Log message
    - correlation_id: Profile operation ID, when one is bound
    - logger: Logger name
    - Additional fields passed to StructuredLogger
    """

    def __init__(self, service_name: str = _DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "message": record.getMessage(),
            "logger": record.name,
        }

        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.levelno >= logging.ERROR:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter for development.

    Format: timestamp - service - level - [correlation_id] - message key=value
    """

    def __init__(self, service_name: str = _DEFAULT_SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as readable text."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        correlation_id = correlation_id_ctx.get() or "-"

        base_msg = (
            f"{timestamp} - {self.service_name} - {record.levelname} - "
            f"[{correlation_id}] - {record.getMessage()}"
        )

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            base_msg += " " + " ".join(f"{k}={v}" for k, v in extra_fields.items())

        if record.exc_info:
            base_msg += f"\n{self.formatException(record.exc_info)}"

        return base_msg


def setup_logging(
    log_format: str = "json",
    log_level: str = "INFO",
    service_name: str = _DEFAULT_SERVICE_NAME,
) -> None:
    """Configure structured logging for the host application.

    Args:
        log_format: 'json' for structured logging, 'text' for human-readable
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name to include in logs
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if log_format.lower() == "json":
        formatter = JsonFormatter(service_name=service_name)
    else:
        formatter = TextFormatter(service_name=service_name)

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # asyncio logs every slow callback at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def setup_logging_from_settings() -> None:
    """Configure logging from the library settings."""
    from therapy_profiles.config import settings

    setup_logging(
        log_format=settings.log_format,
        log_level=settings.log_level,
        service_name=settings.service_name,
    )


class StructuredLogger:
    """Logger wrapper that supports structured extra fields."""

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, extra_fields: dict[str, Any] | None = None):
        record_extra = {"extra_fields": extra_fields} if extra_fields else {}
        self._logger.log(level, msg, extra=record_extra)

    def debug(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.DEBUG, msg, extra_fields or None)

    def info(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.INFO, msg, extra_fields or None)

    def warning(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.WARNING, msg, extra_fields or None)

    def error(self, msg: str, **extra_fields: Any) -> None:
        self._log(logging.ERROR, msg, extra_fields or None)

    def exception(self, msg: str, **extra_fields: Any) -> None:
        """Log exception with traceback and optional extra fields."""
        record_extra = {"extra_fields": extra_fields} if extra_fields else {}
        self._logger.exception(msg, extra=record_extra)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(name)
