"""Logging setup.

Modules log through ``logging.getLogger(__name__)``; this module only decides
how records are rendered for the running process.

Example:
    >>> import logging
    >>> from scrubjay.core.logging import configure_logging
    >>> configure_logging("WARNING", "console")
    >>> logging.getLogger("scrubjay").level
    30
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

import orjson

_CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Attributes present on every LogRecord; anything else came in via ``extra=``.
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON.

    Example:
        >>> import logging
        >>> from scrubjay.core.logging import JsonFormatter
        >>> record = logging.makeLogRecord({"msg": "hello", "levelname": "INFO", "name": "t"})
        >>> '"message":"hello"' in JsonFormatter().format(record)
        True
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode()


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    stream: TextIO | None = None,
) -> None:
    """Configure the ``scrubjay`` logger hierarchy.

    Args:
        level: Level name, e.g. ``"DEBUG"``.
        fmt: ``"console"`` or ``"json"``.
        stream: Output stream (default stderr).
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))

    root = logging.getLogger("scrubjay")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())
    root.propagate = False
