# backend/fxrates/utils/context.py
"""
Correlation ID storage.

Backed by contextvars, so each request (and each rate source worker, which
runs in a copy of the caller's context) sees its own value.

Usage:
    from fxrates.utils.context import get_correlation_id, set_correlation_id

    set_correlation_id("abc-123")     # middleware / scheduler job
    get_correlation_id()              # "abc-123", anywhere downstream
"""

from contextvars import ContextVar

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Correlation ID of the current request or job, if any."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id_var.set(None)
