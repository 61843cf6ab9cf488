"""Retransmission, message timeout and heartbeat timers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from atem_link.logging_abstraction import get_logger
from atem_link.metrics import registry
from atem_link.protocol.atem_protocol import AtemProtocol
from atem_link.transport.timers import Timer
from atem_link.transport.types import OutboundPacket, PendingConfirmation, SessionContext

logger = get_logger(__name__)


class RetransmissionScheduler:
    """Owns the per-packet loss timers and the session heartbeat.

    Each tracked packet gets a repeating timer that resends its cached bytes
    with the REPEAT flag, plus a one-shot timer that reports a message timeout
    without stopping retransmission. The heartbeat sends an empty sync after
    a quiet interval while the session is open.
    """

    def __init__(
        self,
        context: SessionContext,
        send_raw: Callable[[bytes], None],
        on_timeout: Callable[[int], None],
        on_heartbeat: Callable[[], None],
    ) -> None:
        """Initialize the scheduler.

        Args:
            context: Session state shared with the other components
            send_raw: Sends already-encoded bytes on the current transport
            on_timeout: Called with the local sequence of a timed-out packet
            on_heartbeat: Called when the heartbeat interval elapses

        """
        self.ctx: SessionContext = context
        self._send_raw = send_raw
        self._on_timeout = on_timeout
        self._on_heartbeat = on_heartbeat
        self.heartbeat_timer: Timer = Timer("heartbeat")

    def track(self, outbound: OutboundPacket) -> PendingConfirmation:
        """Register a transmitted sync/connect packet and arm its timers."""
        timeouts = self.ctx.timeouts
        pending = PendingConfirmation(
            outbound=outbound,
            local_seq=outbound.packet.local_seq,
            repeat_timer=Timer(f"repeat-{outbound.packet.local_seq}"),
            timeout_timer=Timer(f"timeout-{outbound.packet.local_seq}"),
        )
        pending.repeat_timer.arm(
            timeouts.repeat_interval_seconds,
            lambda: self._retransmit(pending),
            repeat=True,
        )
        pending.timeout_timer.arm(timeouts.ack_timeout_seconds, lambda: self._expire(pending))
        self.ctx.pending.append(pending)
        registry.record_pending_confirmations(self.ctx.label, len(self.ctx.pending))
        return pending

    def _retransmit(self, pending: PendingConfirmation) -> None:
        outbound = pending.outbound
        outbound.retransmissions += 1
        logger.debug(
            "Retransmitting packet %d (attempt %d)",
            pending.local_seq,
            outbound.retransmissions + 1,
            extra={"local_seq": pending.local_seq, "retransmissions": outbound.retransmissions},
        )
        registry.record_retransmit(self.ctx.label)
        self._send_raw(AtemProtocol.set_repeat_flag(outbound.data))

    def _expire(self, pending: PendingConfirmation) -> None:
        logger.warning(
            "No acknowledgment for packet %d after %.1fs",
            pending.local_seq,
            self.ctx.timeouts.ack_timeout_seconds,
            extra={"local_seq": pending.local_seq, "retransmissions": pending.outbound.retransmissions},
        )
        registry.record_message_timeout(self.ctx.label)
        self._on_timeout(pending.local_seq)

    def settled(self, confirmations: list[PendingConfirmation]) -> None:
        """Record metrics for confirmations the tracker just removed."""
        if not confirmations:
            return
        now = asyncio.get_running_loop().time()
        for pending in confirmations:
            registry.record_ack_latency(self.ctx.label, now - pending.outbound.sent_at)
        registry.record_pending_confirmations(self.ctx.label, len(self.ctx.pending))

    def arm_heartbeat(self) -> None:
        """(Re)start the heartbeat interval; never schedules a second timer."""
        self.heartbeat_timer.arm(
            self.ctx.timeouts.heartbeat_interval_seconds,
            self._on_heartbeat,
            repeat=True,
        )

    def cancel_heartbeat(self) -> None:
        self.heartbeat_timer.cancel()

    def cancel_all(self) -> None:
        """Cancel the heartbeat and every per-packet timer."""
        self.heartbeat_timer.cancel()
        for pending in self.ctx.pending:
            pending.cancel()
        registry.record_pending_confirmations(self.ctx.label, 0)
