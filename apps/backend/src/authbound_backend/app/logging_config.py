"""Logging setup for the Authbound backend service."""

from __future__ import annotations
import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import Any


_MANAGED_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "fastapi",
    "authbound",
    "authbound_backend",
)

_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_HANDLER_NAME = "authbound-backend"


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line, including extras."""

    def format(self, record: logging.LogRecord) -> str:
        """Serialize ``record`` with its ``extra`` attributes."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Human readable formatter appending extras as ``key=value`` pairs."""

    def __init__(self) -> None:
        """Use a compact timestamped layout."""
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        """Render the base line followed by any extra fields."""
        line = super().format(record)
        extras = [
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        ]
        return f"{line} {' '.join(extras)}" if extras else line


def _resolve_level(raw: str | None) -> int:
    level = logging.getLevelName((raw or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> None:
    """Apply ``LOG_LEVEL`` and ``LOG_FORMAT`` to the managed loggers."""
    level = _resolve_level(os.getenv("LOG_LEVEL"))
    log_format = (os.getenv("LOG_FORMAT") or "text").lower()
    formatter: logging.Formatter = (
        JsonFormatter() if log_format == "json" else TextFormatter()
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _MANAGED_LOGGERS:
        logging.getLogger(name).setLevel(level)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger, defaulting to the backend application logger."""
    return logging.getLogger(name or "authbound_backend.app")


configure_logging()


__all__ = ["JsonFormatter", "TextFormatter", "configure_logging", "get_logger"]
