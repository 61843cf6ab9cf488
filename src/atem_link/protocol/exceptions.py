"""Custom exception types for switcher protocol errors.

Decode failures raise exceptions instead of returning None. Every protocol
error carries a short machine-readable ``reason`` that doubles as the
metrics label.
"""

from __future__ import annotations


class AtemProtocolError(Exception):
    """Base exception for all switcher protocol errors.

    All protocol-related exceptions inherit from this base class,
    enabling catch-all error handling when needed while maintaining
    specific exception types for detailed handling.
    """

    reason: str = "protocol_error"


class PacketDecodeError(AtemProtocolError):
    """Datagram cannot be decoded.

    Attributes:
        reason: Specific failure reason (e.g., "too_short", "length_mismatch")
        data_preview: First 16 bytes of the datagram

    """

    def __init__(self, reason: str, data: bytes = b""):
        self.reason = reason
        self.data_preview = data[:16] if data else b""
        super().__init__(f"Packet decode failed: {reason}")


class LengthMismatchError(PacketDecodeError):
    """Header length field disagrees with the number of bytes received."""

    def __init__(self, declared: int, received: int, data: bytes = b""):
        self.declared = declared
        self.received = received
        super().__init__("length_mismatch", data)
        self.args = (f"Message length mismatch: header says {declared}, received {received}",)


class IdentityMismatchError(PacketDecodeError):
    """Datagram carries a session id other than the one held locally."""

    def __init__(self, expected: int, received: int, data: bytes = b""):
        self.expected = expected
        self.received = received
        super().__init__("identity_mismatch", data)
        self.args = (f"Session id mismatch: expected 0x{expected:04x}, got 0x{received:04x}",)


class CommandFramingError(PacketDecodeError):
    """A command record in the packet body is malformed.

    Raised when a record declares a length shorter than its own 8-byte head,
    reads past the end of the body, or when the body leaves a trailing
    remainder that cannot hold a record.

    Attributes:
        reason: Specific failure reason (e.g., "record_overrun")
        offset: Body offset of the offending record

    """

    def __init__(self, reason: str, offset: int = 0, data: bytes = b""):
        self.offset = offset
        super().__init__(reason, data)
        self.args = (f"Command framing failed: {reason} at body offset {offset}",)


class ReadOnlyFieldError(AttributeError):
    """A derived field was assigned directly.

    The packet length is computed from the command list; changing it by hand
    is a programming error, so this is not an ``AtemProtocolError``.
    """

    def __init__(self, field: str, hint: str):
        self.field = field
        super().__init__(f"{field} cannot be changed manually. {hint}")


class CommandTooLargeError(AtemProtocolError):
    """A submitted command cannot fit in a single packet.

    Attributes:
        name: Command name
        length: Encoded record length
        limit: Largest record a packet body can hold

    """

    reason = "command_too_large"

    def __init__(self, name: str, length: int, limit: int):
        self.name = name
        self.length = length
        self.limit = limit
        super().__init__(f"Command {name!r} is {length} bytes, a packet body holds at most {limit}")
