"""
Module: excise_kernel.logging_config
Responsibility: One-JSON-object-per-line logging for every excise package.
Architecture position: Kernel.  Imported by engines, services, config and
    db; imports nothing from the project.

Each line carries the envelope (ts, level, logger, message), then the
register context bound by the services, then the ``extra`` fields of the
call.  The context fields are:

    correlation_id  request or batch-run identifier supplied by the caller
    actor_id        user recording or approving the entry
    entry_id        register entry being processed
    register        register name ("Reg-76", "Reg-A", "Production Fees", ...)
    trace_id        engine trace identifier

Invariants enforced:
    - Context fields win over ``extra`` keys of the same name.
    - Decimals are written as strings so figures keep their scale
      ("3937.20", not 3937.2); dates as ISO strings; enums by value.
    - Attributes of an ExciseKernelError (code, errors, register, ...) are
      flattened into ``exc_*`` keys.
    - Every logger lives under the ``excise_kernel`` namespace, so the
      audit trail ("services.audit") and engine traces ("engines.tracer")
      share one handler.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextvars import ContextVar, Token
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Register context
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "actor_id", "entry_id", "register", "trace_id")

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"excise_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """Context-local fields stamped on every log line (thread and task safe)."""

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        actor_id: str | None = None,
        entry_id: str | None = None,
        register: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        """Set the given fields; None leaves a field as it is."""
        values = {
            "correlation_id": correlation_id,
            "actor_id": actor_id,
            "entry_id": entry_id,
            "register": register,
            "trace_id": trace_id,
        }
        for name, value in values.items():
            if value is not None:
                _CONTEXT_VARS[name].set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Fields currently set, in declaration order."""
        ctx: dict[str, str] = {}
        for name in _CONTEXT_FIELDS:
            value = _CONTEXT_VARS[name].get()
            if value is not None:
                ctx[name] = value
        return ctx

    @classmethod
    def clear(cls) -> None:
        for var in _CONTEXT_VARS.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: str | None) -> "_BoundContext":
        """
        Set fields for the duration of a ``with`` block.

        None values and names that are not context fields are ignored, so
        services can pass optional ids straight through.
        """
        return _BoundContext(fields)


class _BoundContext:

    def __init__(self, fields: dict[str, str | None]):
        self._fields = {
            name: value
            for name, value in fields.items()
            if value is not None and name in _CONTEXT_VARS
        }
        self._tokens: list[tuple[str, Token]] = []

    def __enter__(self) -> type[LogContext]:
        self._tokens = [
            (name, _CONTEXT_VARS[name].set(value)) for name, value in self._fields.items()
        ]
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        for name, token in reversed(self._tokens):
            _CONTEXT_VARS[name].reset(token)
        self._tokens = []


# ---------------------------------------------------------------------------
# JSON formatting
# ---------------------------------------------------------------------------

_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _encode(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Renders a record as one JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES and key not in line:
                line[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            line.update(self._exception_fields(record))

        return json.dumps(line, default=_encode)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        if hasattr(exc, "code"):
            fields["exc_code"] = exc.code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name not in ("args", "code"):
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


# ---------------------------------------------------------------------------
# Loggers
# ---------------------------------------------------------------------------

_NAMESPACE = "excise_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger ``excise_kernel.<name>``, e.g. get_logger("services.receipt")."""
    return logging.getLogger(f"{_NAMESPACE}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the ``excise_kernel`` logger.

    Only the first call has an effect until ``reset_logging``.  The
    namespace stops propagating so the host application's root handlers
    do not print the lines a second time.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    namespace_logger = logging.getLogger(_NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    namespace_logger.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``.  Used by the test suite."""
    global _configured
    with _lock:
        _configured = False
    namespace_logger = logging.getLogger(_NAMESPACE)
    namespace_logger.handlers.clear()
    namespace_logger.setLevel(logging.WARNING)
    namespace_logger.propagate = True
