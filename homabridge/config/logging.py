"""Logging helpers for the Homa host.

Native messaging owns stdout, so log records go to a file (or stderr when
``HOMA_LOG_STREAM`` is set) and never to stdout.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from logging import Handler
from logging.config import dictConfig
from pathlib import Path
from typing import Any

import msgspec

from ..const import LOG_STREAM_ENV
from .settings import RuntimeConfig

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_STANDARD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class StructuredLogFormatter(logging.Formatter):
    """One JSON object per line.

    ``extra=`` fields are nested under ``"extra"``; values JSON cannot hold
    natively are written with ``str()``.
    """

    def __init__(self, *args: Any, prefix: str = "homabridge.", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.prefix = prefix

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name.removeprefix(self.prefix),
            "message": record.getMessage(),
        }
        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)
        return msgspec.json.encode(entry, enc_hook=str).decode("utf-8")


def _build_handler(log_file: str) -> Handler:
    if os.environ.get(LOG_STREAM_ENV):
        return logging.StreamHandler(sys.stderr)
    path = Path(log_file)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, encoding="utf-8")
    except OSError:
        return logging.StreamHandler(sys.stderr)


def configure_logging(config: RuntimeConfig) -> None:
    """Configure root logging based on runtime settings."""

    level_name = "DEBUG" if config.debug_logging else "INFO"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": "homabridge.config.logging.StructuredLogFormatter",
                }
            },
            "handlers": {
                "homabridge": {
                    "()": _build_handler,
                    "log_file": config.host_log_file,
                    "level": level_name,
                    "formatter": "structured",
                }
            },
            "root": {
                "level": level_name,
                "handlers": ["homabridge"],
            },
        }
    )

    logging.getLogger("homabridge").info("Logging configured at level %s", level_name)


__all__ = ["StructuredLogFormatter", "configure_logging"]
