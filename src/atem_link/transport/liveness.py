"""Inbound silence detection."""

from __future__ import annotations

from collections.abc import Callable

from atem_link.transport.timers import Timer
from atem_link.transport.types import SessionContext


class LivenessMonitor:
    """Reports a lost connection when the peer stays silent too long.

    Every accepted inbound packet calls ``reset()``; if no packet arrives
    within the liveness timeout, ``on_expired`` runs once.
    """

    def __init__(self, context: SessionContext, on_expired: Callable[[], None]) -> None:
        self.ctx: SessionContext = context
        self._on_expired = on_expired
        self.timer: Timer = Timer("liveness")

    def reset(self) -> None:
        self.timer.arm(self.ctx.timeouts.liveness_timeout_seconds, self._on_expired)

    def stop(self) -> None:
        self.timer.cancel()

    @property
    def running(self) -> bool:
        return self.timer.armed
