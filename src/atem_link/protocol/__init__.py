"""Switcher protocol package - packet encoding, decoding and command framing.

Public API:
- Packet flags and value types (PacketFlag, PacketHeader, Packet, RawCommand)
- Protocol encoder/decoder (AtemProtocol)
- Command record codec (encode_command, encode_commands, decode_commands)
"""

from atem_link.protocol.atem_protocol import AtemProtocol
from atem_link.protocol.command_codec import decode_commands, encode_command, encode_commands
from atem_link.protocol.exceptions import (
    AtemProtocolError,
    CommandFramingError,
    CommandTooLargeError,
    IdentityMismatchError,
    LengthMismatchError,
    PacketDecodeError,
    ReadOnlyFieldError,
)
from atem_link.protocol.packet_types import (
    CONNECT_PAYLOAD,
    HEADER_LENGTH,
    Packet,
    PacketFlag,
    PacketHeader,
    RawCommand,
)

__all__ = [
    # Protocol encoder/decoder
    "AtemProtocol",
    "decode_commands",
    "encode_command",
    "encode_commands",
    # Constants
    "CONNECT_PAYLOAD",
    "HEADER_LENGTH",
    # Dataclasses
    "Packet",
    "PacketFlag",
    "PacketHeader",
    "RawCommand",
    # Exceptions
    "AtemProtocolError",
    "CommandFramingError",
    "CommandTooLargeError",
    "IdentityMismatchError",
    "LengthMismatchError",
    "PacketDecodeError",
    "ReadOnlyFieldError",
]
