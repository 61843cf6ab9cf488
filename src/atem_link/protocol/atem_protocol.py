"""Switcher protocol encoder/decoder implementation.

This module implements header parsing, packet encoding and packet decoding
for the switcher's reliable-UDP protocol. The codec holds no state; session
identity checks are driven by the caller passing the identity it holds.
"""

from __future__ import annotations

import struct

from atem_link.const import ATEM_RAW
from atem_link.logging_abstraction import get_logger
from atem_link.protocol.command_codec import decode_commands, encode_commands
from atem_link.protocol.exceptions import (
    IdentityMismatchError,
    LengthMismatchError,
    PacketDecodeError,
)
from atem_link.protocol.packet_types import (
    FLAG_SHIFT,
    HEADER_LENGTH,
    LENGTH_MASK,
    Packet,
    PacketFlag,
    PacketHeader,
)

# word0 (flags | length), session id, foreign seq, 4 reserved bytes, local seq
_HEADER = struct.Struct("!HHH4xH")
_REPEAT_BIT_IN_BYTE0 = PacketFlag.REPEAT << (FLAG_SHIFT - 8)

logger = get_logger(__name__)


class AtemProtocol:
    """Switcher protocol encoder/decoder.

    Provides static methods for encoding and decoding packets.
    All methods are stateless - no instance state maintained.
    """

    @staticmethod
    def encode_header(
        flags: PacketFlag,
        session_id: int,
        total_length: int,
        foreign_seq: int = 0,
        local_seq: int = 0,
    ) -> bytes:
        """Encode the 12-byte packet header.

        ``foreign_seq`` is only written when ACK is set and ``local_seq`` only
        when SYNC or CONNECT is set; otherwise those fields are zero.

        Args:
            flags: Flag bits
            session_id: 16-bit session identity
            total_length: Header plus body length (11 bits)
            foreign_seq: Acknowledged peer sequence
            local_seq: Sender sequence

        Returns:
            12-byte header

        Raises:
            ValueError: If total_length does not fit the 11-bit length field

        Example:
            >>> AtemProtocol.encode_header(PacketFlag.CONNECT, 0x1234, 20).hex()
            '101412340000000000000000'
            >>> header = AtemProtocol.encode_header(PacketFlag.ACK, 0x0001, 12, foreign_seq=5)
            >>> header[0] >> 3 == PacketFlag.ACK
            True

        """
        if not 0 <= total_length <= LENGTH_MASK:
            error_msg = f"Packet length {total_length} does not fit the {LENGTH_MASK.bit_length()}-bit length field"
            raise ValueError(error_msg)

        if PacketFlag.ACK not in flags:
            foreign_seq = 0
        if not flags & (PacketFlag.SYNC | PacketFlag.CONNECT):
            local_seq = 0

        word0 = (int(flags) << FLAG_SHIFT) | total_length
        return _HEADER.pack(word0, session_id & 0xFFFF, foreign_seq & 0xFFFF, local_seq & 0xFFFF)

    @staticmethod
    def parse_header(data: bytes) -> PacketHeader:
        """Parse the 12-byte header at the start of ``data``.

        Args:
            data: Datagram bytes (must be at least 12 bytes)

        Returns:
            Decoded PacketHeader

        Raises:
            PacketDecodeError: If data is too short to hold a header

        """
        if len(data) < HEADER_LENGTH:
            error_reason = "too_short"
            raise PacketDecodeError(error_reason, data)

        word0, session_id, foreign_seq, local_seq = _HEADER.unpack_from(data)
        header = PacketHeader(
            flags=PacketFlag(word0 >> FLAG_SHIFT),
            session_id=session_id,
            foreign_seq=foreign_seq,
            local_seq=local_seq,
            total_length=word0 & LENGTH_MASK,
        )

        logger.debug(
            "Parsed header: flags=%s, session=0x%04x, length=%d, fs=%d, ls=%d",
            header.flags,
            header.session_id,
            header.total_length,
            header.foreign_seq,
            header.local_seq,
        )
        return header

    @staticmethod
    def encode_packet(packet: Packet) -> bytes:
        """Encode a packet (header + body) for transmission.

        CONNECT packets carry their opaque ``connect_payload`` as body; every
        other packet carries its command records in list order.

        Args:
            packet: Packet to encode

        Returns:
            Complete datagram bytes

        """
        body = packet.connect_payload + encode_commands(packet.commands)
        header = AtemProtocol.encode_header(
            packet.flags,
            packet.session_id,
            HEADER_LENGTH + len(body),
            foreign_seq=packet.foreign_seq,
            local_seq=packet.local_seq,
        )
        data = header + body

        if ATEM_RAW:
            logger.debug("Encoded packet: %s", data.hex(" "), extra={"bytes": len(data)})
        return data

    @staticmethod
    def decode_packet(data: bytes, session_id: int | None = None) -> Packet:
        """Decode a received datagram.

        Steps:
        1. Parse the 12-byte header
        2. Validate the header length against the bytes received
        3. Validate the session id (non-CONNECT packets, when one is held)
        4. Walk the body into command records (non-CONNECT packets)

        Args:
            data: Complete datagram bytes
            session_id: Identity held locally, or None to skip the check

        Returns:
            Decoded Packet with ``raw`` set to ``data``

        Raises:
            PacketDecodeError: If the datagram is shorter than a header
            LengthMismatchError: If the header length differs from len(data)
            IdentityMismatchError: If the session id differs from ``session_id``
            CommandFramingError: If the body is not a clean run of records

        Example:
            >>> packet = AtemProtocol.decode_packet(bytes.fromhex("080c0001000000000000" + "0003"))
            >>> packet.is_sync, packet.local_seq, packet.commands
            (True, 3, [])

        """
        header = AtemProtocol.parse_header(data)

        if header.total_length != len(data):
            raise LengthMismatchError(header.total_length, len(data), data)

        is_connect = PacketFlag.CONNECT in header.flags
        if not is_connect and session_id is not None and header.session_id != session_id:
            raise IdentityMismatchError(session_id, header.session_id, data)

        if PacketFlag.UNKNOWN in header.flags:
            logger.warning(
                "Received packet with unknown flag set",
                extra={"flags": str(header.flags), "session_id": f"0x{header.session_id:04x}"},
            )

        body = bytes(data[HEADER_LENGTH:])
        packet = Packet(
            flags=header.flags,
            session_id=header.session_id,
            foreign_seq=header.foreign_seq,
            local_seq=header.local_seq,
            commands=[] if is_connect else decode_commands(body),
            connect_payload=body if is_connect else b"",
            raw=bytes(data),
        )

        if ATEM_RAW:
            logger.debug("Decoded packet: %s", bytes(data).hex(" "), extra={"bytes": len(data)})
        return packet

    @staticmethod
    def set_repeat_flag(data: bytes) -> bytes:
        """Return a copy of encoded packet bytes with the REPEAT flag set.

        Every other bit, including the sequence fields, is left untouched so
        a retransmission is byte-identical to the original apart from REPEAT.
        """
        if len(data) < HEADER_LENGTH:
            error_reason = "too_short"
            raise PacketDecodeError(error_reason, data)

        repeated = bytearray(data)
        repeated[0] |= _REPEAT_BIT_IN_BYTE0
        return bytes(repeated)
