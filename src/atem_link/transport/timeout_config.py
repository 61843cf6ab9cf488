"""Protocol timing configuration for switcher sessions.

The switcher expects the client to retransmit and heartbeat on fixed
intervals; these values match what the device firmware tolerates.
"""

from __future__ import annotations


class TimeoutConfig:
    """Fixed protocol timings, overridable per session.

    Default values:
    - repeat: 600ms between retransmissions of an unacknowledged packet
    - ack timeout: 1s before a MessageTimeout is reported (non-fatal)
    - heartbeat: 600ms of outbound silence before an empty sync is sent
    - batch: 16ms window collecting submitted commands into one packet
    - liveness: 800ms of inbound silence before the connection is lost
    """

    def __init__(
        self,
        repeat_interval_seconds: float = 0.6,
        ack_timeout_seconds: float = 1.0,
        heartbeat_interval_seconds: float = 0.6,
        batch_window_seconds: float = 0.016,
        liveness_timeout_seconds: float = 0.8,
    ):
        """Initialize timeout configuration.

        Args:
            repeat_interval_seconds: Retransmission interval
            ack_timeout_seconds: Delay before an unacknowledged packet is reported
            heartbeat_interval_seconds: Heartbeat sync interval once open
            batch_window_seconds: Command batching window
            liveness_timeout_seconds: Inbound silence tolerated before connection loss

        Raises:
            ValueError: If any value is not positive

        """
        values = {
            "repeat_interval_seconds": repeat_interval_seconds,
            "ack_timeout_seconds": ack_timeout_seconds,
            "heartbeat_interval_seconds": heartbeat_interval_seconds,
            "batch_window_seconds": batch_window_seconds,
            "liveness_timeout_seconds": liveness_timeout_seconds,
        }
        for name, value in values.items():
            if value <= 0:
                error_msg = f"{name} must be positive, got {value}"
                raise ValueError(error_msg)

        self.repeat_interval_seconds = repeat_interval_seconds
        self.ack_timeout_seconds = ack_timeout_seconds
        self.heartbeat_interval_seconds = heartbeat_interval_seconds
        self.batch_window_seconds = batch_window_seconds
        self.liveness_timeout_seconds = liveness_timeout_seconds

    def __repr__(self) -> str:
        """String representation showing all timings."""
        return (
            f"TimeoutConfig(repeat={self.repeat_interval_seconds:.3f}s, "
            f"ack={self.ack_timeout_seconds:.3f}s, "
            f"heartbeat={self.heartbeat_interval_seconds:.3f}s, "
            f"batch={self.batch_window_seconds:.3f}s, "
            f"liveness={self.liveness_timeout_seconds:.3f}s)"
        )
