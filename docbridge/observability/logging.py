"""
Structured logging for DOCBRIDGE.

Facade operations run inside an ``operation_scope``. The scope carries a
correlation id and the data-access context (backend, operation, collection)
which loggers from ``get_logger`` attach to every record until it exits.

Nested scopes reuse the enclosing correlation id, so a caller can tag a whole
request:

    with operation_scope(correlation_id=request_id):
        await service.create_document("products", data)
        await service.query_documents("products", spec)
"""

import contextvars
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Replaced, never mutated: a reset() must restore the enclosing scope's dict
_data_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "data_context", default=None
)


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:16]


def get_correlation_id() -> str | None:
    """Correlation id of the innermost active scope, if any."""
    return _correlation_id.get()


@contextmanager
def operation_scope(
    operation: str | None = None,
    correlation_id: str | None = None,
    **context: Any,
) -> Iterator[str]:
    """
    Run a block with a correlation id and data-access context bound.

    Args:
        operation: Operation name (e.g. "document.create")
        correlation_id: Id to use; defaults to the enclosing scope's id, or a
            fresh one outside any scope
        **context: Extra context such as backend or collection_id; None
            values are skipped

    Yields:
        The correlation id in effect inside the block
    """
    correlation_id = correlation_id or get_correlation_id() or new_correlation_id()
    bound = dict(_data_context.get() or {})
    bound.update((key, value) for key, value in context.items() if value is not None)
    if operation:
        bound["operation"] = operation

    id_token = _correlation_id.set(correlation_id)
    context_token = _data_context.set(bound)
    try:
        yield correlation_id
    finally:
        _data_context.reset(context_token)
        _correlation_id.reset(id_token)


def bind_data_context(**context: Any) -> None:
    """Add keys to the current scope's context; they go away when it exits."""
    _data_context.set({**(_data_context.get() or {}), **context})


def get_logging_context() -> dict[str, Any]:
    context = dict(_data_context.get() or {})
    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id
    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds the active scope's context to each record."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**get_logging_context(), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger,
    operation: str,
    level: int = logging.INFO,
    success: bool = True,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """
    Log the outcome of one operation with the active scope's context.

    Args:
        logger: Logger to write to
        operation: Operation name
        level: Log level
        success: Whether the operation succeeded
        duration_ms: Operation duration in milliseconds
        **context: Additional record attributes
    """
    extra = get_logging_context()
    extra.update(context)
    extra["operation"] = operation
    extra["success"] = success

    message = f"Operation: {operation}" if success else f"Operation failed: {operation}"
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)
        message += f" (duration: {duration_ms:.2f}ms)"

    logger.log(level, message, extra=extra)
