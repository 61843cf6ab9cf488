"""Command record encoding/decoding for packet bodies.

A body is a plain concatenation of records, each one an 8-byte head
(record length, two reserved bytes, 4-byte ASCII name) followed by the
payload. Decoding walks the body with a cursor and refuses any record that
would read past the end, so a corrupt length can never cause an
out-of-bounds read or an endless loop.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable

from atem_link.logging_abstraction import get_logger
from atem_link.protocol.exceptions import CommandFramingError
from atem_link.protocol.packet_types import (
    COMMAND_HEADER_LENGTH,
    RawCommand,
)

_COMMAND_HEAD = struct.Struct("!HH4s")  # length, reserved, name

logger = get_logger(__name__)


def encode_command(command: RawCommand) -> bytes:
    """Encode one command record.

    Example:
        >>> encode_command(RawCommand("DCut", bytes(4))).hex()
        '000c00004443757400000000'

    """
    head = _COMMAND_HEAD.pack(command.length, 0, command.name.encode("ascii"))
    return head + command.payload


def encode_commands(commands: Iterable[RawCommand]) -> bytes:
    """Encode a sequence of commands into a packet body."""
    return b"".join(encode_command(command) for command in commands)


def decode_commands(body: bytes) -> list[RawCommand]:
    """Decode every command record of a packet body, in wire order.

    Args:
        body: Packet bytes following the 12-byte header

    Returns:
        Commands in the order they appear in the body (empty for an empty body)

    Raises:
        CommandFramingError: If a record head is truncated, a record declares a
            length shorter than its head, a record runs past the end of the
            body, or a name is not ASCII. No partial result is returned.

    """
    commands: list[RawCommand] = []
    body_length = len(body)
    cursor = 0

    while cursor < body_length:
        if body_length - cursor < COMMAND_HEADER_LENGTH:
            raise CommandFramingError("truncated_record_head", cursor, body)

        record_length, _reserved, raw_name = _COMMAND_HEAD.unpack_from(body, cursor)

        if record_length < COMMAND_HEADER_LENGTH:
            raise CommandFramingError("record_too_short", cursor, body)
        if cursor + record_length > body_length:
            raise CommandFramingError("record_overrun", cursor, body)

        try:
            name = raw_name.decode("ascii")
        except UnicodeDecodeError as e:
            raise CommandFramingError("invalid_command_name", cursor, body) from e

        payload = bytes(body[cursor + COMMAND_HEADER_LENGTH : cursor + record_length])
        commands.append(RawCommand(name, payload))
        cursor += record_length

    logger.debug(
        "Decoded %d command(s) from %d body bytes",
        len(commands),
        body_length,
        extra={"commands": len(commands), "body_bytes": body_length},
    )
    return commands
