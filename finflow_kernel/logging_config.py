"""
Structured JSON logging for the financial event pipeline.

Every logger lives under the ``finflow`` namespace and emits one JSON object
per line. Per-event identifiers (event id, source, channel, fingerprint, ...)
are carried in a context variable by ``LogContext`` so concurrent pipeline
runs on worker threads never mix their fields.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping
from uuid import UUID

ROOT_LOGGER = "finflow"

CONTEXT_FIELDS = (
    "correlation_id",
    "event_id",
    "source_id",
    "channel",
    "fingerprint",
    "trace_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("finflow_log_context", default=_EMPTY)


def _merged(fields: dict[str, str | None]) -> Mapping[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
    current = dict(_context.get())
    current.update({k: v for k, v in fields.items() if v is not None})
    return MappingProxyType(current)


class LogContext:
    """Per-event log fields held in a ContextVar (thread- and task-local)."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set fields for the rest of the current context. None values are skipped."""
        _context.set(_merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block, then restore the previous ones."""
        token = _context.set(_merged(fields))
        try:
            yield
        finally:
            _context.reset(token)


# Attributes every LogRecord carries; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # FinflowError subclasses keep their data in public attributes
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, bound context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS and name not in entry:
                entry[name] = value

        if record.exc_info and record.exc_info[1] is not None:
            entry.update(_exception_fields(record.exc_info[1]))
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger ``finflow.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``finflow`` logger. Only the first call has effect.

    Args:
        level: Logging level, as a number or a name such as ``"DEBUG"``.
        stream: Stream for the default handler. Defaults to stderr.
        handler: Use this handler instead of a stream handler.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.propagate = False

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` to run again. Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
