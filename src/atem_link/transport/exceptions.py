"""Custom exception types for transport layer errors.

This module defines the exception hierarchy for session-related errors,
extending the protocol exceptions.
"""

from __future__ import annotations

from atem_link.protocol.exceptions import AtemProtocolError


class AtemConnectionError(AtemProtocolError):
    """Connection state error (transport failure, operation in the wrong state)

    Raised when:
    - The datagram transport cannot be opened
    - A datagram cannot be sent

    Note: Named AtemConnectionError to avoid shadowing Python's built-in ConnectionError.

    Attributes:
        reason: Specific failure reason
        state: Connection state when error occurred
    """

    def __init__(self, reason: str, state: str = "unknown"):
        self.reason = reason
        self.state = state
        super().__init__(f"Connection error: {reason} (state: {state})")


class AtemConfigurationError(AtemConnectionError):
    """Target address missing or invalid.

    Attributes:
        reason: Specific failure reason
        address: Rejected address (None when no address was set)
    """

    def __init__(self, reason: str, address: str | None = None, state: str = "unknown"):
        self.address = address
        super().__init__(reason, state)


class MessageTimeoutError(AtemProtocolError):
    """Packet not acknowledged within the message timeout.

    Non-fatal: retransmission of the packet continues until it is confirmed
    or the session closes.

    Attributes:
        local_seq: Sequence number of the unacknowledged packet
        timeout_seconds: Timeout value that was exceeded
    """

    reason = "message_timeout"

    def __init__(self, local_seq: int, timeout_seconds: float):
        self.local_seq = local_seq
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Sync timeout ({timeout_seconds}s) for packet {local_seq}")
