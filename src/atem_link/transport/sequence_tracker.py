"""Sequence numbering and acknowledgment bookkeeping.

Outbound: sync and connect packets carry the local sequence counter and stay
pending until the peer acknowledges them cumulatively. Inbound: every sync
(or connect) packet from the peer is remembered until we acknowledge it,
either piggybacked on our next packet or with a bare ACK.
"""

from __future__ import annotations

from collections.abc import Callable

from atem_link.logging_abstraction import get_logger
from atem_link.protocol.packet_types import (
    HEADER_LENGTH,
    MAX_BODY_LENGTH,
    SEQUENCE_MODULO,
    Packet,
    PacketFlag,
    RawCommand,
)
from atem_link.transport.types import (
    ConnectionState,
    PendingConfirmation,
    SessionContext,
    UnackedInbound,
)

_HALF_SEQUENCE_SPACE = SEQUENCE_MODULO // 2

logger = get_logger(__name__)


def sequence_at_or_before(seq: int, watermark: int) -> bool:
    """Whether ``seq`` is at or before ``watermark`` in 16-bit serial order.

    Equivalent to ``seq <= watermark`` while neither value has wrapped, and
    keeps ordering packets correctly once the counter wraps past 0xFFFF.

    Example:
        >>> sequence_at_or_before(4, 4), sequence_at_or_before(5, 4)
        (True, False)
        >>> sequence_at_or_before(0xFFFF, 1)
        True

    """
    return (watermark - seq) % SEQUENCE_MODULO < _HALF_SEQUENCE_SPACE


class SequenceTracker:
    """Assigns sequence fields and reconciles acknowledgments."""

    def __init__(self, context: SessionContext) -> None:
        self.ctx: SessionContext = context

    def prepare(self, packet: Packet) -> list[RawCommand]:
        """Fill in session and sequence fields before a first transmission.

        Piggybacks the oldest outstanding inbound acknowledgment (one per
        packet) and, for a non-initial sync while open, moves queued commands
        into the packet body.

        Returns:
            Commands taken from the queue (empty when none were attached)

        """
        ctx = self.ctx
        packet.session_id = ctx.session_id

        if not packet.is_ack_only:
            if ctx.unacked:
                packet.flags |= PacketFlag.ACK
                packet.foreign_seq = ctx.unacked.popleft().local_seq
            else:
                packet.flags &= ~PacketFlag.ACK
                packet.foreign_seq = 0

        if packet.is_sync or packet.is_connect:
            packet.local_seq = ctx.local_seq

        attached: list[RawCommand] = []
        if ctx.state is ConnectionState.OPEN and packet.is_sync and packet.local_seq > 0 and ctx.command_queue:
            attached = self._take_queued(MAX_BODY_LENGTH - (packet.length - HEADER_LENGTH))
            packet.commands.extend(attached)
        return attached

    def _take_queued(self, budget: int) -> list[RawCommand]:
        """Pop queued commands, oldest first, while they fit in ``budget`` bytes."""
        taken: list[RawCommand] = []
        queue = self.ctx.command_queue
        while queue and queue[0].length <= budget:
            command = queue.popleft()
            budget -= command.length
            taken.append(command)
        if queue:
            logger.debug(
                "Packet body full, %d command(s) left for the next sync",
                len(queue),
                extra={"queued": len(queue), "attached": len(taken)},
            )
        return taken

    def advance(self, packet: Packet) -> None:
        """Advance the local counter after a sync was transmitted (not while attempting)."""
        if packet.is_sync and self.ctx.state is not ConnectionState.ATTEMPTING:
            self.ctx.local_seq = (self.ctx.local_seq + 1) % SEQUENCE_MODULO

    def record_inbound(self, packet: Packet) -> UnackedInbound:
        """Remember an inbound packet that must be acknowledged."""
        entry = UnackedInbound(local_seq=packet.local_seq)
        self.ctx.unacked.append(entry)
        return entry

    def claim(self, entry: UnackedInbound) -> bool:
        """Remove ``entry`` if no piggyback has consumed it yet.

        Returns:
            True if the caller must still send a bare acknowledgment

        """
        try:
            self.ctx.unacked.remove(entry)
        except ValueError:
            return False
        return True

    def confirm(self, foreign_seq: int) -> list[PendingConfirmation]:
        """Settle every pending packet at or before ``foreign_seq``.

        Returns:
            The confirmations removed, in sequence order

        """
        return self._settle(foreign_seq, lambda local_seq: sequence_at_or_before(local_seq, foreign_seq))

    def confirm_connect(self) -> list[PendingConfirmation]:
        """Settle what a CONNECT without ACK confirms: only packet 0."""
        return self._settle(0, lambda local_seq: local_seq == 0)

    def _settle(self, foreign_seq: int, confirmed: Callable[[int], bool]) -> list[PendingConfirmation]:
        settled: list[PendingConfirmation] = []
        remaining: list[PendingConfirmation] = []
        for pending in self.ctx.pending:
            if confirmed(pending.local_seq):
                pending.cancel()
                settled.append(pending)
            else:
                remaining.append(pending)
        self.ctx.pending = remaining

        if settled:
            logger.debug(
                "Acknowledged %d packet(s) up to %d",
                len(settled),
                foreign_seq,
                extra={"foreign_seq": foreign_seq, "settled": [p.local_seq for p in settled]},
            )
        return settled

    def reset_identity(self, session_id: int) -> None:
        """Start a fresh attempt: new identity, counter back to zero."""
        self.ctx.session_id = session_id
        self.ctx.local_seq = 0

    def clear(self) -> None:
        """Drop every pending confirmation and outstanding acknowledgment."""
        for pending in self.ctx.pending:
            pending.cancel()
        self.ctx.pending.clear()
        self.ctx.unacked.clear()
