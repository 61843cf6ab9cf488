"""Idempotent one-shot and repeating timers on the running event loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable


class Timer:
    """A named, rearmable wrapper around ``loop.call_later``.

    ``arm()`` always cancels the previous handle first, so a timer can never
    be scheduled twice. A repeating timer reschedules itself before running
    its callback; a one-shot timer is disarmed before its callback runs, so
    the callback may safely arm it again.
    """

    def __init__(self, name: str, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self.name: str = name
        self._loop: asyncio.AbstractEventLoop | None = loop
        self._handle: asyncio.TimerHandle | None = None
        self._delay: float = 0.0
        self._callback: Callable[[], None] | None = None
        self._repeat: bool = False

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay: float, callback: Callable[[], None], *, repeat: bool = False) -> None:
        """(Re)schedule ``callback`` to run after ``delay`` seconds.

        Args:
            delay: Delay (and, when repeating, interval) in seconds
            callback: Zero-argument callable run on the event loop
            repeat: Keep firing every ``delay`` seconds until cancelled

        """
        self.cancel()
        self._delay = delay
        self._callback = callback
        self._repeat = repeat
        self._schedule()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        callback = self._callback
        if self._repeat:
            self._schedule()
        else:
            self._handle = None

        if callback is not None:
            callback()

    def __repr__(self) -> str:
        mode = "repeating" if self._repeat else "one-shot"
        state = "armed" if self.armed else "idle"
        return f"Timer({self.name!r}, {mode}, {state}, delay={self._delay:.3f}s)"
