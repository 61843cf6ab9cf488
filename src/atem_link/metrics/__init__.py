"""Metrics module."""

from .registry import (
    record_ack_latency,
    record_commands_received,
    record_commands_sent,
    record_connection_lost,
    record_connection_state,
    record_decode_error,
    record_heartbeat,
    record_message_timeout,
    record_packet_recv,
    record_packet_sent,
    record_pending_confirmations,
    record_reconnection,
    record_retransmit,
    start_metrics_server,
)

__all__ = [
    "record_ack_latency",
    "record_commands_received",
    "record_commands_sent",
    "record_connection_lost",
    "record_connection_state",
    "record_decode_error",
    "record_heartbeat",
    "record_message_timeout",
    "record_packet_recv",
    "record_packet_sent",
    "record_pending_confirmations",
    "record_reconnection",
    "record_retransmit",
    "start_metrics_server",
]
