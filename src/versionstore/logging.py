"""Logging setup for versionstore.

Modules log through the standard library (``logging.getLogger(__name__)``).
``configure_logging`` attaches one handler to the ``versionstore`` logger
with a console, JSON or logfmt formatter.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, TextIO

ROOT_LOGGER = "versionstore"

# Attributes every LogRecord carries; anything else came from ``extra=``
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class LogLevel(IntEnum):
    """Log severity levels."""

    TRACE = 5
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def from_string(cls, level: str) -> "LogLevel":
        """Convert string to LogLevel."""
        mapping = {
            "trace": cls.TRACE,
            "debug": cls.DEBUG,
            "info": cls.INFO,
            "warning": cls.WARNING,
            "warn": cls.WARNING,
            "error": cls.ERROR,
            "critical": cls.CRITICAL,
            "fatal": cls.CRITICAL,
        }
        return mapping.get(level.lower(), cls.INFO)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JSONFormatter(logging.Formatter):
    """JSON log formatter, one object per line.

    Example output:
        {"timestamp":"2024-01-15T10:30:00+00:00","level":"info","logger":"versionstore.store",...}
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update(_extra_fields(record))
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class LogfmtFormatter(logging.Formatter):
    """Logfmt formatter.

    Example output:
        ts=2024-01-15T10:30:00+00:00 level=info msg="Initialized store" logger=versionstore.store
    """

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            f"ts={_timestamp(record).isoformat()}",
            f"level={record.levelname.lower()}",
            f'msg="{self._escape(record.getMessage())}"',
            f"logger={record.name}",
        ]
        for key, value in _extra_fields(record).items():
            parts.append(f"{key}={self._format_value(value)}")
        if record.exc_info:
            parts.append(f'error="{self._escape(str(record.exc_info[1]))}"')
        return " ".join(parts)

    def _escape(self, value: str) -> str:
        return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")

    def _format_value(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        text = str(value)
        if " " in text or '"' in text or "=" in text:
            return f'"{self._escape(text)}"'
        return text


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter.

    Example output:
        2024-01-15 10:30:00 INFO  [versionstore.store] Initialized store at version 4
    """

    COLORS = {
        LogLevel.TRACE: "\033[90m",
        LogLevel.DEBUG: "\033[36m",
        LogLevel.INFO: "\033[32m",
        LogLevel.WARNING: "\033[33m",
        LogLevel.ERROR: "\033[31m",
        LogLevel.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        *,
        color: bool = True,
        timestamp_format: str = "%Y-%m-%d %H:%M:%S",
        stream: TextIO | None = None,
    ) -> None:
        super().__init__()
        stream = stream or sys.stderr
        self._color = color and hasattr(stream, "isatty") and stream.isatty()
        self._timestamp_format = timestamp_format

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime(self._timestamp_format)
        level = record.levelname.ljust(5)
        if self._color:
            color = self.COLORS.get(record.levelno, "")
            level = f"{color}{level}{self.RESET}"

        parts = [ts, level, f"[{record.name}]", record.getMessage()]
        fields = _extra_fields(record)
        if fields:
            parts.append(" ".join(f"{k}={v}" for k, v in fields.items()))

        result = " ".join(parts)
        if record.exc_info:
            result = f"{result}\n{self.formatException(record.exc_info)}"
        return result


class ConsoleHandler(logging.Handler):
    """Handler that writes to a stream, or to stderr when none is given.

    Without an explicit stream, ``sys.stderr`` is looked up on every record.
    """

    def __init__(self, *, stream: TextIO | None = None) -> None:
        """Initialize console handler.

        Args:
            stream: Output stream (None for stderr).
        """
        super().__init__()
        self._stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        """Write log to the stream."""
        stream = self._stream or sys.stderr
        try:
            stream.write(self.format(record) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)


_FORMATTERS = {
    "console": ConsoleFormatter,
    "json": JSONFormatter,
    "logfmt": LogfmtFormatter,
}


def configure_logging(
    *,
    level: LogLevel | int | str = LogLevel.INFO,
    format: str = "console",
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure the ``versionstore`` logger.

    Replaces any handler installed by a previous call.

    Args:
        level: Log level.
        format: Output format ("console", "json", "logfmt").
        stream: Output stream (stderr by default).

    Returns:
        The configured logger.
    """
    if isinstance(level, str):
        level = LogLevel.from_string(level)
    if format not in _FORMATTERS:
        raise ValueError(
            f"Unknown log format {format!r} (expected one of: {', '.join(_FORMATTERS)})"
        )

    logging.addLevelName(LogLevel.TRACE, "TRACE")
    logger = logging.getLogger(ROOT_LOGGER)

    for handler in list(logger.handlers):
        if getattr(handler, "_versionstore_handler", False):
            logger.removeHandler(handler)

    handler = ConsoleHandler(stream=stream)
    if format == "console":
        handler.setFormatter(ConsoleFormatter(stream=stream or sys.stderr))
    else:
        handler.setFormatter(_FORMATTERS[format]())
    handler._versionstore_handler = True  # type: ignore[attr-defined]

    logger.addHandler(handler)
    logger.setLevel(int(level))
    return logger
