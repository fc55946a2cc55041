"""Logging setup: plain or JSON-line output with run-scoped context fields."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from typing import Any

__all__ = [
    "StructuredFormatter",
    "bind_log_context",
    "configure_logging",
    "current_log_context",
]

ROOT_LOGGER_NAME = "moniteye"
PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_log_context: ContextVar[dict[str, str]] = ContextVar("moniteye_log_context", default={})


def current_log_context() -> dict[str, str]:
    """Return the fields bound for the current run (copy)."""
    return dict(_log_context.get())


@contextmanager
def bind_log_context(**fields: object) -> Iterator[dict[str, str]]:
    """Bind fields to every log record emitted inside the block.

    ``None`` values are skipped. The previous context is restored on exit,
    so nested bindings behave like a stack.
    """
    merged = current_log_context()
    merged.update({key: str(value) for key, value in fields.items() if value is not None})
    token = _log_context.set(merged)
    try:
        yield merged
    finally:
        _log_context.reset(token)


_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    """Dates as ISO strings; UUID, Decimal and anything else via str()."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(current_log_context())

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder)


def configure_logging(level: str = "INFO", *, json_format: bool = False) -> logging.Logger:
    """Install a single stream handler on the package logger.

    Safe to call repeatedly (each app instance in the test-suite calls it);
    existing handlers are replaced rather than stacked.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = True
    return logger
