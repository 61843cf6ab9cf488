"""atem-link: reliable UDP control client for video production switchers.

The package is split the same way the wire protocol is layered:

- ``atem_link.protocol``: stateless packet and command codec
- ``atem_link.transport``: session state machine, sequencing, retransmission,
  batching and liveness on top of a datagram transport
- ``atem_link.events``: notifications delivered to the command interpreter
"""

__version__ = "0.3.0"

from atem_link.events import (
    AddressChanged,
    Connected,
    ConnectionLost,
    ConnectionStateChanged,
    ErrorRaised,
    EventBus,
    MessageTimeout,
    RawCommandReceived,
)
from atem_link.protocol.packet_types import RawCommand
from atem_link.transport.connection_manager import ConnectionManager
from atem_link.transport.types import ConnectionState

__all__ = [
    "AddressChanged",
    "Connected",
    "ConnectionLost",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStateChanged",
    "ErrorRaised",
    "EventBus",
    "MessageTimeout",
    "RawCommand",
    "RawCommandReceived",
    "__version__",
]
