"""Session notifications and the bus that delivers them.

Notifications are a closed set of frozen dataclasses. Observers subscribe by
notification type, to every notification, or to one command name; the last
receives the unparsed payload of each command with that name.
"""

from __future__ import annotations

import contextlib
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from atem_link.logging_abstraction import get_logger
from atem_link.protocol.packet_types import RawCommand
from atem_link.transport.exceptions import MessageTimeoutError
from atem_link.transport.types import ConnectionState

__all__ = [
    "AddressChanged",
    "Connected",
    "ConnectionLost",
    "ConnectionStateChanged",
    "ErrorRaised",
    "EventBus",
    "MessageTimeout",
    "Notification",
    "RawCommandReceived",
]

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConnectionStateChanged:
    state: ConnectionState


@dataclass(frozen=True)
class Connected:
    """The session reached Open."""


@dataclass(frozen=True)
class AddressChanged:
    address: str


@dataclass(frozen=True)
class ErrorRaised:
    """A recoverable error: bad configuration, undecodable datagram, send failure."""

    error: Exception


@dataclass(frozen=True)
class MessageTimeout:
    """A sync/connect packet went unacknowledged past the message timeout.

    Non-fatal: the packet keeps being retransmitted until confirmed.
    """

    local_seq: int
    timeout_seconds: float

    @property
    def error(self) -> MessageTimeoutError:
        return MessageTimeoutError(self.local_seq, self.timeout_seconds)


@dataclass(frozen=True)
class ConnectionLost:
    """No packet arrived from the switcher within the liveness timeout."""


@dataclass(frozen=True)
class RawCommandReceived:
    command: RawCommand


Notification = (
    ConnectionStateChanged
    | Connected
    | AddressChanged
    | ErrorRaised
    | MessageTimeout
    | ConnectionLost
    | RawCommandReceived
)

N = TypeVar("N", bound=Notification)
Unsubscribe = Callable[[], None]


class EventBus:
    """Synchronous, in-order notification delivery.

    Handlers run on the caller's stack (the event loop callback that raised
    the notification). A handler that raises is logged with its traceback and
    the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._by_type: defaultdict[type, list[Callable[[Notification], None]]] = defaultdict(list)
        self._catch_all: list[Callable[[Notification], None]] = []
        self._by_command: defaultdict[str, list[Callable[[bytes], None]]] = defaultdict(list)

    def subscribe(self, notification_type: type[N], handler: Callable[[N], None]) -> Unsubscribe:
        """Call ``handler`` for every notification of ``notification_type``.

        Returns:
            Callable that removes the subscription

        """
        handlers = self._by_type[notification_type]
        handlers.append(handler)  # type: ignore[arg-type]
        return lambda: _discard(handlers, handler)

    def subscribe_all(self, handler: Callable[[Notification], None]) -> Unsubscribe:
        self._catch_all.append(handler)
        return lambda: _discard(self._catch_all, handler)

    def subscribe_command(self, name: str, handler: Callable[[bytes], None]) -> Unsubscribe:
        """Call ``handler`` with the payload of every received command named ``name``."""
        handlers = self._by_command[name]
        handlers.append(handler)
        return lambda: _discard(handlers, handler)

    def emit(self, notification: Notification) -> None:
        for handler in (*self._by_type.get(type(notification), ()), *self._catch_all):
            self._deliver(handler, notification)

        if isinstance(notification, RawCommandReceived):
            command = notification.command
            for command_handler in tuple(self._by_command.get(command.name, ())):
                self._deliver(command_handler, command.payload)

    @staticmethod
    def _deliver(handler: Callable[[N], None] | Callable[[bytes], None], value: object) -> None:
        try:
            handler(value)  # type: ignore[arg-type]
        except Exception as e:
            # Log and continue with the remaining handlers
            logger.exception(
                "Notification handler failed",
                extra={
                    "handler": getattr(handler, "__qualname__", repr(handler)),
                    "notification": type(value).__name__,
                    "error_type": type(e).__name__,
                },
            )


def _discard(handlers: list, handler: object) -> None:
    with contextlib.suppress(ValueError):
        handlers.remove(handler)
