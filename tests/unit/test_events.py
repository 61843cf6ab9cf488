"""Unit tests for the notification bus."""

from __future__ import annotations

import dataclasses
import logging

import pytest

from atem_link.events import (
    AddressChanged,
    Connected,
    ConnectionLost,
    ConnectionStateChanged,
    EventBus,
    MessageTimeout,
    Notification,
    RawCommandReceived,
)
from atem_link.protocol.packet_types import RawCommand
from atem_link.transport.exceptions import MessageTimeoutError
from atem_link.transport.types import ConnectionState


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


class TestSubscribe:
    """Tests for typed subscriptions."""

    def test_delivers_matching_type_only(self, bus: EventBus):
        """Test handlers only see their notification type."""
        received: list[ConnectionStateChanged] = []
        _ = bus.subscribe(ConnectionStateChanged, received.append)

        bus.emit(ConnectionStateChanged(ConnectionState.OPEN))
        bus.emit(Connected())

        assert received == [ConnectionStateChanged(ConnectionState.OPEN)]

    def test_handlers_run_in_subscription_order(self, bus: EventBus):
        """Test multiple handlers run in the order they subscribed."""
        calls: list[str] = []
        _ = bus.subscribe(Connected, lambda _n: calls.append("first"))
        _ = bus.subscribe(Connected, lambda _n: calls.append("second"))

        bus.emit(Connected())

        assert calls == ["first", "second"]

    def test_unsubscribe(self, bus: EventBus):
        """Test the returned callable removes the handler."""
        received: list[Connected] = []
        unsubscribe = bus.subscribe(Connected, received.append)

        unsubscribe()
        unsubscribe()
        bus.emit(Connected())

        assert received == []

    def test_subscribe_all(self, bus: EventBus):
        """Test catch-all handlers see every notification in order."""
        received: list[Notification] = []
        _ = bus.subscribe_all(received.append)

        bus.emit(AddressChanged("10.0.0.5"))
        bus.emit(ConnectionLost())

        assert received == [AddressChanged("10.0.0.5"), ConnectionLost()]


class TestCommandSubscriptions:
    """Tests for per-command-name subscriptions."""

    def test_payload_by_name(self, bus: EventBus):
        """Test command handlers receive the payload of matching commands only."""
        payloads: list[bytes] = []
        _ = bus.subscribe_command("PrgI", payloads.append)

        bus.emit(RawCommandReceived(RawCommand("PrgI", bytes.fromhex("00000002"))))
        bus.emit(RawCommandReceived(RawCommand("PrvI", bytes.fromhex("00000003"))))

        assert payloads == [bytes.fromhex("00000002")]

    def test_typed_and_named_both_fire(self, bus: EventBus):
        """Test a command reaches both typed and named subscribers."""
        typed: list[RawCommandReceived] = []
        named: list[bytes] = []
        _ = bus.subscribe(RawCommandReceived, typed.append)
        _ = bus.subscribe_command("_pin", named.append)

        bus.emit(RawCommandReceived(RawCommand("_pin", b"ATEM Mini\x00")))

        assert len(typed) == 1
        assert named == [b"ATEM Mini\x00"]


class TestHandlerFailures:
    """Tests for handler error isolation."""

    def test_failing_handler_does_not_stop_delivery(self, bus: EventBus, caplog: pytest.LogCaptureFixture):
        """Test a raising handler is logged and later handlers still run."""
        received: list[Connected] = []

        def broken(_notification: Connected) -> None:
            msg = "observer bug"
            raise RuntimeError(msg)

        _ = bus.subscribe(Connected, broken)
        _ = bus.subscribe(Connected, received.append)

        with caplog.at_level(logging.ERROR):
            bus.emit(Connected())

        assert received == [Connected()]
        assert "Notification handler failed" in caplog.text
        assert "observer bug" in caplog.text


class TestNotifications:
    """Tests for notification value types."""

    def test_frozen(self):
        """Test notifications are immutable."""
        notification = AddressChanged("10.0.0.5")

        with pytest.raises(dataclasses.FrozenInstanceError):
            notification.address = "10.0.0.6"  # type: ignore[misc]

    def test_message_timeout_error(self):
        """Test MessageTimeout exposes an equivalent exception."""
        notification = MessageTimeout(local_seq=4, timeout_seconds=1.0)

        error = notification.error

        assert isinstance(error, MessageTimeoutError)
        assert error.local_seq == 4
