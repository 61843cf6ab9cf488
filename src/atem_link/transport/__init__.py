"""Reliable session layer on top of a datagram transport.

Import ``ConnectionManager`` from ``atem_link`` or
``atem_link.transport.connection_manager``; this package only re-exports the
leaf types so that ``atem_link.events`` can depend on them.
"""

from atem_link.transport.exceptions import (
    AtemConfigurationError,
    AtemConnectionError,
    MessageTimeoutError,
)
from atem_link.transport.timeout_config import TimeoutConfig
from atem_link.transport.types import ConnectionState

__all__ = [
    "AtemConfigurationError",
    "AtemConnectionError",
    "ConnectionState",
    "MessageTimeoutError",
    "TimeoutConfig",
]
