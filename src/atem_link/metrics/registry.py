"""Prometheus metrics registry for switcher sessions."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

# Connection state labels, in lifecycle order
CONNECTION_STATES: Final = ("closed", "attempting", "establishing", "open")

# Metric definitions
atem_packet_sent_total: Final = Counter(  # type: ignore[assignment]
    "atem_packet_sent_total",
    "Total packets sent",
    ["switcher", "kind"],
)

atem_packet_recv_total: Final = Counter(  # type: ignore[assignment]
    "atem_packet_recv_total",
    "Total packets received",
    ["switcher", "outcome"],
)

atem_packet_retransmit_total: Final = Counter(  # type: ignore[assignment]
    "atem_packet_retransmit_total",
    "Total packet retransmissions",
    ["switcher"],
)

atem_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "atem_decode_errors_total",
    "Total decode errors",
    ["switcher", "reason"],
)

atem_ack_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "atem_ack_latency_seconds",
    "Time from first transmission to cumulative acknowledgment",
    ["switcher"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.6, 1.0, 2.0),
)

atem_message_timeout_total: Final = Counter(  # type: ignore[assignment]
    "atem_message_timeout_total",
    "Total packets not acknowledged within the message timeout",
    ["switcher"],
)

# Connection metrics
atem_connection_state: Final = Gauge(  # type: ignore[assignment]
    "atem_connection_state",
    "Current connection state",
    ["switcher", "state"],
)

atem_connection_lost_total: Final = Counter(  # type: ignore[assignment]
    "atem_connection_lost_total",
    "Total liveness expiries",
    ["switcher"],
)

atem_reconnection_total: Final = Counter(  # type: ignore[assignment]
    "atem_reconnection_total",
    "Total reconnection attempts",
    ["switcher", "reason"],
)

atem_heartbeat_total: Final = Counter(  # type: ignore[assignment]
    "atem_heartbeat_total",
    "Total heartbeat syncs sent",
    ["switcher"],
)

atem_pending_confirmations: Final = Gauge(  # type: ignore[assignment]
    "atem_pending_confirmations",
    "Packets awaiting acknowledgment",
    ["switcher"],
)

# Command metrics
atem_commands_sent_total: Final = Counter(  # type: ignore[assignment]
    "atem_commands_sent_total",
    "Total commands flushed to the switcher",
    ["switcher"],
)

atem_commands_received_total: Final = Counter(  # type: ignore[assignment]
    "atem_commands_received_total",
    "Total commands received from the switcher",
    ["switcher"],
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9410) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_packet_sent(switcher: str, kind: str) -> None:
    """Record a sent packet (kind: connect, sync, ack, heartbeat)."""
    atem_packet_sent_total.labels(switcher=switcher, kind=kind).inc()  # type: ignore[no-untyped-call]


def record_packet_recv(switcher: str, outcome: str) -> None:
    """Record a received packet."""
    atem_packet_recv_total.labels(switcher=switcher, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_retransmit(switcher: str) -> None:
    """Record a retransmission."""
    atem_packet_retransmit_total.labels(switcher=switcher).inc()  # type: ignore[no-untyped-call]


def record_decode_error(switcher: str, reason: str) -> None:
    """Record a decode error."""
    atem_decode_errors_total.labels(switcher=switcher, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_ack_latency(switcher: str, latency_seconds: float) -> None:
    atem_ack_latency_seconds.labels(switcher=switcher).observe(latency_seconds)  # type: ignore[no-untyped-call]


def record_message_timeout(switcher: str) -> None:
    """Record a message timeout."""
    atem_message_timeout_total.labels(switcher=switcher).inc()  # type: ignore[no-untyped-call]


def record_connection_state(switcher: str, state: str) -> None:
    """Record connection state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in CONNECTION_STATES:
        value = 1 if s == state else 0
        atem_connection_state.labels(switcher=switcher, state=s).set(value)  # type: ignore[no-untyped-call]


def record_connection_lost(switcher: str) -> None:
    atem_connection_lost_total.labels(switcher=switcher).inc()  # type: ignore[no-untyped-call]


def record_reconnection(switcher: str, reason: str) -> None:
    """Record a reconnection attempt."""
    atem_reconnection_total.labels(switcher=switcher, reason=reason).inc()  # type: ignore[no-untyped-call]


def record_heartbeat(switcher: str) -> None:
    """Record a heartbeat sync."""
    atem_heartbeat_total.labels(switcher=switcher).inc()  # type: ignore[no-untyped-call]


def record_pending_confirmations(switcher: str, count: int) -> None:
    atem_pending_confirmations.labels(switcher=switcher).set(count)  # type: ignore[no-untyped-call]


def record_commands_sent(switcher: str, count: int) -> None:
    """Record commands flushed in one packet."""
    atem_commands_sent_total.labels(switcher=switcher).inc(count)  # type: ignore[no-untyped-call]


def record_commands_received(switcher: str, count: int) -> None:
    """Record commands decoded from one packet."""
    atem_commands_received_total.labels(switcher=switcher).inc(count)  # type: ignore[no-untyped-call]
