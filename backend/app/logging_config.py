"""
Logging configuration

Structured (JSON) or plain-text logging on top of the standard library.
Call setup_logging() once at startup; modules use get_logger(__name__) and
pass context through ``extra={...}``.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from app.core.settings import get_settings

# Attributes present on every LogRecord; anything else came in through extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Human readable format for local development."""

    def __init__(self):
        super().__init__(fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s")


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name (defaults to settings.LOG_LEVEL)
        log_format: 'json' or 'text' (defaults to settings.LOG_FORMAT)
    """
    settings = get_settings()
    level = (level or settings.LOG_LEVEL).upper()
    log_format = (log_format or settings.LOG_FORMAT).lower()

    formatter: logging.Formatter = JSONFormatter() if log_format == "json" else TextFormatter()

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    # SQLAlchemy engine logging is controlled by echo=, keep it quiet here
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a module-level logger."""
    return logging.getLogger(name)
