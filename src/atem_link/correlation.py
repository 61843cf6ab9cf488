"""
Correlation ID tracking for log lines belonging to one connection attempt.

Every connect() runs inside a fresh correlation context. asyncio copies the
current context into handles created by call_later/call_soon and into the
datagram endpoint's reader callback, so timer and receive callbacks of that
attempt log with the same ID.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        New UUID-based correlation ID (format: UUID4 hex without dashes)
    """
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set correlation ID in current context (None clears it)."""
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    auto_generate: bool = True,
) -> Generator[str | None]:
    """
    Context manager for correlation ID scope.

    Automatically generates correlation ID if not provided and auto_generate=True.
    Restores previous correlation ID on exit.

    Args:
        correlation_id: Specific correlation ID to use (None to auto-generate)
        auto_generate: Generate new ID if correlation_id is None

    Yields:
        The correlation ID used in this context

    Example:
        with correlation_context() as corr_id:
            logger.info("Sending connect packet")  # Includes corr_id
    """
    previous_id = get_correlation_id()

    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()

    set_correlation_id(correlation_id)

    try:
        yield correlation_id
    finally:
        set_correlation_id(previous_id)


def ensure_correlation_id() -> str:
    """
    Ensure a correlation ID exists in current context.

    If no correlation ID is set, generates and sets a new one.

    Returns:
        Current or newly generated correlation ID
    """
    current_id = get_correlation_id()
    if current_id is None:
        current_id = generate_correlation_id()
        set_correlation_id(current_id)
    return current_id
