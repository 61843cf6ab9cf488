"""Command queue and short-window batching.

Commands submitted within one batching window leave together in a single
sync packet. Commands submitted before the session is open wait in the
queue and ride the first sync that may carry data.
"""

from __future__ import annotations

from collections.abc import Callable

from atem_link.logging_abstraction import get_logger
from atem_link.protocol.exceptions import CommandTooLargeError
from atem_link.protocol.packet_types import MAX_BODY_LENGTH, RawCommand
from atem_link.transport.timers import Timer
from atem_link.transport.types import ConnectionState, SessionContext

logger = get_logger(__name__)


class CommandBatcher:
    """FIFO of outgoing commands plus the batching timer."""

    def __init__(self, context: SessionContext, flush: Callable[[], None]) -> None:
        """Initialize the batcher.

        Args:
            context: Session state shared with the other components
            flush: Sends a new sync packet, which picks up the queued commands

        """
        self.ctx: SessionContext = context
        self._flush = flush
        self.batch_timer: Timer = Timer("batch")

    def submit(self, command: RawCommand) -> None:
        """Queue a command and open a batching window when one may be sent.

        Raises:
            CommandTooLargeError: If the command can never fit in a packet

        """
        if command.length > MAX_BODY_LENGTH:
            raise CommandTooLargeError(command.name, command.length, MAX_BODY_LENGTH)

        self.ctx.command_queue.append(command)
        logger.debug(
            "Queued command %s (%d bytes)",
            command.name,
            len(command.payload),
            extra={"command": command.name, "queued": len(self.ctx.command_queue)},
        )

        if self.ctx.state is ConnectionState.OPEN and self.ctx.local_seq != 0 and not self.batch_timer.armed:
            self.batch_timer.arm(self.ctx.timeouts.batch_window_seconds, self._on_window_closed)

    def _on_window_closed(self) -> None:
        queue = self.ctx.command_queue
        while queue:
            before = len(queue)
            self._flush()
            if len(queue) >= before:
                break

    @property
    def pending_count(self) -> int:
        return len(self.ctx.command_queue)

    def cancel(self) -> None:
        self.batch_timer.cancel()

    def clear(self) -> None:
        """Cancel the window and drop every queued command."""
        self.batch_timer.cancel()
        self.ctx.command_queue.clear()
