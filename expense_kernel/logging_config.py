"""
Structured JSON logging for the recurring expense engine.

Every record under the ``expense_kernel`` logger namespace is written as one
JSON object per line.  The generation run binds its scope once through
``LogContext``; the formatter then stamps the bound fields onto every record
emitted inside that scope, so call sites pass only event-specific ``extra``.

Bound fields:
    run_id            one generation run
    run_date          the date the run generates for
    definition_id     the definition being processed
    definition_name   its human-readable name
    generation_date   the occurrence being generated
"""

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

_LOGGER_PREFIX = "expense_kernel"


class LogContext:
    """Run-scoped log fields, isolated per thread and per task."""

    FIELDS = frozenset({
        "run_id",
        "run_date",
        "definition_id",
        "definition_name",
        "generation_date",
    })

    _bound: ContextVar[Mapping[str, Any]] = ContextVar(
        "expense_log_context", default=MappingProxyType({}),
    )

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Bind ``fields`` for the duration of the block.

        None values are ignored.  Nested binds layer over the outer ones and
        the outer values come back on exit.
        """
        unknown = set(fields) - cls.FIELDS
        if unknown:
            raise ValueError(f"unknown log context field(s): {sorted(unknown)}")
        merged = dict(cls._bound.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        token = cls._bound.set(MappingProxyType(merged))
        try:
            yield
        finally:
            cls._bound.reset(token)

    @classmethod
    def get_all(cls) -> dict[str, Any]:
        return dict(cls._bound.get())

    @classmethod
    def clear(cls) -> None:
        cls._bound.set(MappingProxyType({}))


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return repr(obj)


# Attributes every LogRecord carries; anything else on a record came from extra=.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: base fields, context, extra, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # RecurringKernelError subclasses keep their details as attributes.
        fields.update(
            (f"exc_{name}", value)
            for name, value in vars(exc).items()
            if not name.startswith("_") and name != "code"
        )
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``expense_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``expense_kernel`` hierarchy.

    Idempotent: once a structured handler is attached, later calls change
    nothing.
    """
    root = logging.getLogger(_LOGGER_PREFIX)
    if any(isinstance(h.formatter, StructuredFormatter) for h in root.handlers):
        return

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Detach every handler and restore defaults. Tests only."""
    root = logging.getLogger(_LOGGER_PREFIX)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(logging.WARNING)
    root.propagate = True
