"""Unit tests for the rearmable Timer."""

from __future__ import annotations

import asyncio

import pytest

from atem_link.transport.timers import Timer

# Test constants
SHORT_DELAY = 0.02
SETTLE = 0.06  # Comfortably longer than SHORT_DELAY


class TestTimer:
    """Tests for Timer arm/cancel semantics."""

    @pytest.mark.asyncio
    async def test_one_shot_fires_once(self):
        """Test a one-shot timer fires once and disarms itself."""
        calls: list[int] = []
        timer = Timer("one-shot")

        timer.arm(SHORT_DELAY, lambda: calls.append(1))
        assert timer.armed
        await asyncio.sleep(SETTLE)

        assert calls == [1]
        assert not timer.armed

    @pytest.mark.asyncio
    async def test_rearm_replaces_previous(self):
        """Test arming twice never schedules two callbacks."""
        calls: list[str] = []
        timer = Timer("rearm")

        timer.arm(SHORT_DELAY, lambda: calls.append("first"))
        timer.arm(SHORT_DELAY, lambda: calls.append("second"))
        await asyncio.sleep(SETTLE)

        assert calls == ["second"]

    @pytest.mark.asyncio
    async def test_cancel(self):
        """Test a cancelled timer never fires."""
        calls: list[int] = []
        timer = Timer("cancel")

        timer.arm(SHORT_DELAY, lambda: calls.append(1))
        timer.cancel()
        await asyncio.sleep(SETTLE)

        assert calls == []
        assert not timer.armed

    @pytest.mark.asyncio
    async def test_repeat_until_cancelled(self):
        """Test a repeating timer keeps firing until cancelled."""
        calls: list[int] = []
        timer = Timer("repeat")

        timer.arm(0.01, lambda: calls.append(1), repeat=True)
        await asyncio.sleep(0.055)
        timer.cancel()
        fired = len(calls)
        await asyncio.sleep(0.03)

        assert fired >= 2
        assert len(calls) == fired

    @pytest.mark.asyncio
    async def test_callback_may_rearm(self):
        """Test a one-shot callback can arm its own timer again."""
        calls: list[int] = []
        timer = Timer("self-rearm")

        def callback() -> None:
            calls.append(1)
            if len(calls) < 2:
                timer.arm(0.01, callback)

        timer.arm(0.01, callback)
        await asyncio.sleep(SETTLE)

        assert calls == [1, 1]

    def test_cancel_unarmed_is_noop(self):
        """Test cancelling a timer that was never armed."""
        timer = Timer("idle")

        timer.cancel()

        assert not timer.armed
        assert "idle" in repr(timer)
