"""Structured logging configuration (JSON or text format)."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import LoggingConfig

# Attributes every LogRecord carries; anything else on a record came from ``extra=``
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

_NOISY_LOGGERS = ("aliyunsdkcore", "urllib3")


def structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra=`` fields attached to a record, in the order they were set."""
    return {
        key: value for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with structured fields merged in at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in structured_fields(record).items():
            payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """``2019-06-01 10:00:00 INFO [logger] message key=value ...``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = structured_fields(record)
        if not fields:
            return line
        head, sep, tail = line.partition("\n")  # keep tracebacks below the fields
        suffix = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{head} {suffix}{sep}{tail}"


def _build_handler(config: LoggingConfig) -> logging.Handler:
    """Append to the configured log file, or fall back to stderr if it cannot be opened."""
    if not config.file:
        return logging.StreamHandler(sys.stderr)
    try:
        return logging.FileHandler(config.file, mode="a", encoding="utf-8")
    except OSError as exc:
        print(f"Unable to log to file {config.file}: {exc}; using stderr", file=sys.stderr)
        return logging.StreamHandler(sys.stderr)


def configure_logging(config: LoggingConfig) -> None:
    """Install a single root handler according to the logging config."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = _build_handler(config)
    handler.setFormatter(JSONFormatter() if config.format == "json" else TextFormatter())
    root.addHandler(handler)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
