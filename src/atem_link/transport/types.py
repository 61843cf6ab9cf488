"""Core state and bookkeeping dataclasses for the reliable transport layer.

All mutable session state lives in one ``SessionContext`` that the
connection manager owns and hands to each subcomponent.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import override

from atem_link.const import ATEM_PORT
from atem_link.protocol.packet_types import Packet, RawCommand
from atem_link.transport.socket_abstraction import DatagramTransport
from atem_link.transport.timeout_config import TimeoutConfig
from atem_link.transport.timers import Timer

_STATE_DESCRIPTIONS = {
    "closed": "Not connected",
    "attempting": "Attempting to connect",
    "establishing": "Establishing connection",
    "open": "Connected",
}


class ConnectionState(Enum):
    """Connection state enumeration."""

    CLOSED = "closed"
    ATTEMPTING = "attempting"
    ESTABLISHING = "establishing"
    OPEN = "open"

    @property
    def description(self) -> str:
        return _STATE_DESCRIPTIONS[self.value]

    @override
    def __str__(self) -> str:
        return self.description


@dataclass
class OutboundPacket:
    """Packet we sent, with the bytes of its first transmission.

    Attributes:
        packet: Packet as built for the first transmission
        data: Wire bytes of the first transmission (empty until sent)
        sent_at: Loop time of the first transmission
        retransmissions: Number of REPEAT resends so far
    """

    packet: Packet
    data: bytes = b""
    sent_at: float = 0.0
    retransmissions: int = 0


@dataclass
class PendingConfirmation:
    """Tracks a sync/connect packet awaiting cumulative acknowledgment.

    Attributes:
        outbound: The packet and its cached wire bytes
        local_seq: Sequence number the peer must acknowledge
        repeat_timer: Repeating retransmission timer
        timeout_timer: One-shot message timeout timer
    """

    outbound: OutboundPacket
    local_seq: int
    repeat_timer: Timer
    timeout_timer: Timer

    def cancel(self) -> None:
        """Stop retransmitting and drop the pending timeout."""
        self.repeat_timer.cancel()
        self.timeout_timer.cancel()


@dataclass(eq=False)
class UnackedInbound:
    """Inbound packet we still owe the peer an acknowledgment for.

    Compared by identity: two entries with the same sequence number (a
    retransmitted packet) are acknowledged independently.
    """

    local_seq: int


@dataclass
class SessionContext:
    """Explicit mutable state of one switcher session.

    Reused across connect/disconnect cycles. Identity and counter are reset
    on every new attempt; every queue is emptied when the session closes.

    Attributes:
        state: Current connection state
        session_id: Session identity (client-drawn, then the peer's)
        local_seq: Sequence number for the next sync packet
        pending: Unconfirmed outbound packets, ordered by local_seq
        unacked: Inbound packets not yet acknowledged, oldest first
        command_queue: Commands awaiting the next eligible sync
        address: Switcher IPv4 address
        port: Switcher UDP port
        transport: Open datagram transport (None while closed)
        timeouts: Protocol timings
    """

    state: ConnectionState = ConnectionState.CLOSED
    session_id: int = 0
    local_seq: int = 0
    pending: list[PendingConfirmation] = field(default_factory=list)
    unacked: deque[UnackedInbound] = field(default_factory=deque)
    command_queue: deque[RawCommand] = field(default_factory=deque)
    address: str | None = None
    port: int = ATEM_PORT
    transport: DatagramTransport | None = None
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)

    @property
    def label(self) -> str:
        """Metrics/log label for this session's switcher."""
        return self.address or "unset"
