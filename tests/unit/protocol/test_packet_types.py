"""Unit tests for packet value types."""

from __future__ import annotations

import dataclasses

import pytest

from atem_link.protocol.exceptions import ReadOnlyFieldError
from atem_link.protocol.packet_types import (
    CONNECT_PAYLOAD,
    HEADER_LENGTH,
    Packet,
    PacketFlag,
    RawCommand,
)
from tests.helpers.expectations import expect_exception

# Test constants
CUT_COMMAND_LENGTH = 12


class TestPacketFlag:
    """Tests for PacketFlag values."""

    def test_flag_values(self):
        """Test wire values of every flag."""
        assert PacketFlag.SYNC == 1
        assert PacketFlag.CONNECT == 2
        assert PacketFlag.REPEAT == 4
        assert PacketFlag.UNKNOWN == 8
        assert PacketFlag.ACK == 16


class TestRawCommand:
    """Tests for RawCommand."""

    def test_length_includes_head(self):
        """Test length is 8 plus payload length."""
        assert RawCommand("DCut", bytes(4)).length == CUT_COMMAND_LENGTH
        assert RawCommand("_TlC").length == 8

    @pytest.mark.parametrize("name", ["Cut", "DCuts", "", "Dçut"])
    def test_invalid_name(self, name: str):
        """Test names must be exactly 4 ASCII characters."""
        error = expect_exception(RawCommand, ValueError, name)

        assert "4 ASCII characters" in str(error)

    def test_payload_coerced_to_bytes(self):
        """Test bytearray payloads are stored as bytes."""
        command = RawCommand("CPgI", bytearray(b"\x00\x01"))

        assert isinstance(command.payload, bytes)

    def test_frozen(self):
        """Test commands are immutable."""
        command = RawCommand("DCut")

        with pytest.raises(dataclasses.FrozenInstanceError):
            command.name = "DAut"  # type: ignore[misc]


class TestPacket:
    """Tests for Packet."""

    def test_empty_packet_length(self):
        """Test a packet without body is header-only."""
        assert Packet(flags=PacketFlag.SYNC).length == HEADER_LENGTH

    def test_length_tracks_commands(self):
        """Test length follows the command list."""
        packet = Packet(flags=PacketFlag.SYNC)
        packet.commands.append(RawCommand("DCut", bytes(4)))

        assert packet.length == HEADER_LENGTH + CUT_COMMAND_LENGTH

    def test_connect_payload_counts(self):
        """Test the connect capability payload counts toward the length."""
        packet = Packet(flags=PacketFlag.CONNECT, connect_payload=CONNECT_PAYLOAD)

        assert packet.length == HEADER_LENGTH + len(CONNECT_PAYLOAD)

    def test_length_read_only(self):
        """Test assigning length is a hard failure."""
        packet = Packet(flags=PacketFlag.SYNC)

        with pytest.raises(ReadOnlyFieldError) as exc_info:
            packet.length = 40

        assert exc_info.value.field == "length"
        assert isinstance(exc_info.value, AttributeError)
        assert packet.length == HEADER_LENGTH

    def test_predicates(self):
        """Test flag predicates."""
        packet = Packet(flags=PacketFlag.SYNC | PacketFlag.ACK)

        assert packet.is_sync
        assert packet.is_ack
        assert not packet.is_connect
        assert not packet.is_repeat
        assert not packet.is_ack_only

    def test_ack_only(self):
        """Test a bare ACK is recognized as ack-only."""
        assert Packet(flags=PacketFlag.ACK).is_ack_only
        assert not Packet(flags=PacketFlag.CONNECT | PacketFlag.ACK).is_ack_only

    def test_header_view(self):
        """Test the header view mirrors packet fields."""
        packet = Packet(flags=PacketFlag.SYNC, session_id=0x8001, local_seq=3, commands=[RawCommand("DCut")])

        header = packet.header

        assert header.session_id == 0x8001
        assert header.local_seq == 3
        assert header.total_length == HEADER_LENGTH + 8
