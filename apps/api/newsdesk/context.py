from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# Audit rows store the correlation id in a String(128) column.
MAX_CORRELATION_ID_LENGTH = 128

correlation_id_var: ContextVar[str | None] = ContextVar("newsdesk_correlation_id", default=None)


def normalize_correlation_id(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value[:MAX_CORRELATION_ID_LENGTH] or None


@contextmanager
def correlation_scope(correlation_id: str | None) -> Iterator[str | None]:
    """Bind ``correlation_id`` to the current context until the block exits."""

    token = correlation_id_var.set(normalize_correlation_id(correlation_id))
    try:
        yield correlation_id_var.get()
    finally:
        correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()
