"""Switcher protocol packet flags, constants and dataclass structures.

Every datagram starts with a 12-byte header:
- Bytes 0-1: flags (high 5 bits of byte 0) | total packet length (low 11 bits)
- Bytes 2-3: session id
- Bytes 4-5: foreign sequence (acknowledged peer packet, ACK only)
- Bytes 6-9: reserved, always zero
- Bytes 10-11: local sequence (SYNC / CONNECT only)

The body is a run of command records:
- Bytes 0-1: record length (8 + payload length)
- Bytes 2-3: reserved
- Bytes 4-7: 4-character ASCII command name
- Bytes 8+: payload
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from atem_link.protocol.exceptions import ReadOnlyFieldError

HEADER_LENGTH = 12
COMMAND_HEADER_LENGTH = 8
COMMAND_NAME_LENGTH = 4
LENGTH_MASK = 0x07FF  # 11 bits of packet length
FLAG_SHIFT = 11  # flags occupy the top 5 bits of the first 16-bit word
MAX_BODY_LENGTH = LENGTH_MASK - HEADER_LENGTH
SEQUENCE_MODULO = 0x10000
INITIAL_SESSION_ID_MAX = 0x07FF  # client-drawn ids stay within 11 bits

# Body of the connect packet: capability announcement sent by the client
CONNECT_PAYLOAD = bytes.fromhex("0100000000000000")


class PacketFlag(enum.IntFlag):
    """Header flag bits (before shifting into byte 0)."""

    SYNC = 0x01  # Reliable packet, carries a local sequence
    CONNECT = 0x02  # Handshake packet
    REPEAT = 0x04  # Retransmission of an earlier packet
    UNKNOWN = 0x08  # Seen on the wire, meaning not established
    ACK = 0x10  # foreign_seq is meaningful


@dataclass(frozen=True)
class RawCommand:
    """A single named command record.

    Attributes:
        name: 4-character ASCII command code (e.g. "PrgI", "_pin")
        payload: Unparsed command data

    """

    name: str
    payload: bytes = b""

    def __post_init__(self) -> None:
        if len(self.name) != COMMAND_NAME_LENGTH or not self.name.isascii():
            error_msg = f"Command name must be {COMMAND_NAME_LENGTH} ASCII characters, got {self.name!r}"
            raise ValueError(error_msg)
        if not isinstance(self.payload, bytes):
            object.__setattr__(self, "payload", bytes(self.payload))

    @property
    def length(self) -> int:
        """Encoded record length (head + payload)."""
        return COMMAND_HEADER_LENGTH + len(self.payload)


@dataclass(frozen=True)
class PacketHeader:
    """Decoded 12-byte packet header.

    Attributes:
        flags: Flag bits
        session_id: Session identity the packet belongs to
        foreign_seq: Peer sequence being acknowledged (valid with ACK)
        local_seq: Sender's own sequence number (valid with SYNC/CONNECT)
        total_length: Header length field (header + body)

    """

    flags: PacketFlag
    session_id: int
    foreign_seq: int
    local_seq: int
    total_length: int


@dataclass
class Packet:
    """One protocol packet: header fields plus an ordered command list.

    The same value type is used in both directions. ``length`` is derived from
    the body and cannot be assigned. ``connect_payload`` is the opaque body of
    CONNECT packets, which carry no command records. ``raw`` holds the
    received datagram for decoded packets and is empty for packets built
    locally.
    """

    flags: PacketFlag = PacketFlag(0)
    session_id: int = 0
    foreign_seq: int = 0
    local_seq: int = 0
    commands: list[RawCommand] = field(default_factory=list)
    connect_payload: bytes = b""
    raw: bytes = b""

    @property
    def length(self) -> int:
        """Total packet length (header + body)."""
        return HEADER_LENGTH + len(self.connect_payload) + sum(command.length for command in self.commands)

    @length.setter
    def length(self, _value: int) -> None:
        raise ReadOnlyFieldError("length", "Add or remove commands to change the packet length.")

    @property
    def header(self) -> PacketHeader:
        """Header view of this packet."""
        return PacketHeader(
            flags=self.flags,
            session_id=self.session_id,
            foreign_seq=self.foreign_seq,
            local_seq=self.local_seq,
            total_length=self.length,
        )

    @property
    def is_sync(self) -> bool:
        return PacketFlag.SYNC in self.flags

    @property
    def is_connect(self) -> bool:
        return PacketFlag.CONNECT in self.flags

    @property
    def is_ack(self) -> bool:
        return PacketFlag.ACK in self.flags

    @property
    def is_repeat(self) -> bool:
        return PacketFlag.REPEAT in self.flags

    @property
    def is_ack_only(self) -> bool:
        """ACK without SYNC/CONNECT: a bare confirmation, never tracked."""
        return self.is_ack and not (self.is_sync or self.is_connect)
