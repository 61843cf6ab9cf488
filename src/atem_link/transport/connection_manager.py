"""Connection management with state machine, handshake, and packet routing.

This module implements the ConnectionManager class which owns one switcher
session: the Closed → Attempting → Establishing → Open handshake, outbound
sequencing and retransmission, command batching, inbound acknowledgment,
liveness detection and reconnection.

Everything runs on one asyncio event loop. Timer callbacks and the datagram
handler run to completion, so session state needs no locking; only opening
the datagram transport is awaited.
"""

from __future__ import annotations

import asyncio
import ipaddress
import random
from collections.abc import Callable
from types import TracebackType
from typing import Self

from atem_link.const import ATEM_AUTO_RECONNECT, ATEM_METRICS_ENABLED, ATEM_METRICS_PORT, ATEM_PORT, ATEM_RAW, RAW_MSG
from atem_link.correlation import correlation_context
from atem_link.events import (
    AddressChanged,
    Connected,
    ConnectionLost,
    ConnectionStateChanged,
    ErrorRaised,
    EventBus,
    MessageTimeout,
    RawCommandReceived,
)
from atem_link.logging_abstraction import get_logger
from atem_link.metrics import registry
from atem_link.protocol.atem_protocol import AtemProtocol
from atem_link.protocol.exceptions import CommandTooLargeError, PacketDecodeError
from atem_link.protocol.packet_types import (
    CONNECT_PAYLOAD,
    HEADER_LENGTH,
    INITIAL_SESSION_ID_MAX,
    Packet,
    PacketFlag,
    RawCommand,
)
from atem_link.transport.command_queue import CommandBatcher
from atem_link.transport.exceptions import AtemConfigurationError, AtemConnectionError
from atem_link.transport.liveness import LivenessMonitor
from atem_link.transport.scheduler import RetransmissionScheduler
from atem_link.transport.sequence_tracker import SequenceTracker
from atem_link.transport.socket_abstraction import DatagramTransport, TransportFactory, open_udp_connection
from atem_link.transport.timeout_config import TimeoutConfig
from atem_link.transport.types import (
    ConnectionState,
    OutboundPacket,
    SessionContext,
    UnackedInbound,
)

logger = get_logger(__name__)


class ConnectionManager:
    """Manages one switcher session over an unreliable datagram transport.

    **Handshake**: ``connect()`` opens the transport, draws a fresh session
    id and sends a CONNECT packet (Attempting). The first inbound SYNC moves
    the session to Establishing and adopts the switcher's session id; the
    first header-only non-connect packet after that opens the session. On
    Open the heartbeat starts, ``Connected`` is emitted and an empty sync is
    sent. Transitions are checked in order on each packet, so a header-only
    SYNC received while Attempting passes through Establishing into Open.

    **Reconnection**: ``connect()`` on a live session tears it down and
    starts over without reporting Closed in between. Liveness expiry and
    address changes reuse that path through ``_trigger_reconnect()``.

    **Errors**: configuration problems, undecodable datagrams and send
    failures are logged and emitted as ``ErrorRaised``; none of them changes
    the connection state.
    """

    def __init__(
        self,
        address: str | None = None,
        *,
        port: int = ATEM_PORT,
        timeout_config: TimeoutConfig | None = None,
        events: EventBus | None = None,
        transport_factory: TransportFactory | None = None,
        auto_connect: bool = True,
        auto_reconnect: bool = ATEM_AUTO_RECONNECT,
    ) -> None:
        """Initialize connection manager.

        Args:
            address: Switcher IPv4 address (validated like ``set_address``)
            port: Switcher UDP port
            timeout_config: Protocol timings (defaults to TimeoutConfig() if None)
            events: Notification bus (a private one is created if None)
            transport_factory: Opens the datagram transport (defaults to UDP)
            auto_connect: Let ``start()``/``async with`` connect when an address is set
            auto_reconnect: Reconnect automatically when the connection is lost

        """
        self.events: EventBus = events or EventBus()
        self.ctx: SessionContext = SessionContext(port=port, timeouts=timeout_config or TimeoutConfig())
        self.auto_connect: bool = auto_connect
        self.auto_reconnect: bool = auto_reconnect
        self.reconnect_task: asyncio.Task[None] | None = None
        self._transport_factory: TransportFactory = transport_factory or open_udp_connection
        self._background_tasks: set[asyncio.Future[object]] = set()
        # Bumped by every connect() and disconnect(); a connect whose transport
        # opens after a newer call discards it.
        self._connect_generation: int = 0
        self._opening: int = 0

        self.tracker: SequenceTracker = SequenceTracker(self.ctx)
        self.scheduler: RetransmissionScheduler = RetransmissionScheduler(
            self.ctx,
            send_raw=self._send_raw,
            on_timeout=self._on_message_timeout,
            on_heartbeat=self._send_heartbeat,
        )
        self.batcher: CommandBatcher = CommandBatcher(self.ctx, flush=self._send_sync)
        self.liveness: LivenessMonitor = LivenessMonitor(self.ctx, on_expired=self._on_liveness_expired)

        if address is not None:
            self.set_address(address)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self.ctx.state

    @property
    def address(self) -> str | None:
        return self.ctx.address

    @property
    def session_id(self) -> int:
        return self.ctx.session_id

    @property
    def local_seq(self) -> int:
        """Sequence number the next sync packet will carry."""
        return self.ctx.local_seq

    def is_open(self) -> bool:
        return self.ctx.state is ConnectionState.OPEN

    def set_address(self, address: str) -> None:
        """Configure the switcher address.

        An invalid address is reported on the error channel and changes
        nothing. A valid one is stored and announced; a live session is then
        reconnected to it.
        """
        if not _is_ipv4(address):
            error = AtemConfigurationError("invalid_address", address=str(address), state=self.ctx.state.value)
            logger.warning(
                "Rejected switcher address %r",
                address,
                extra={"address": str(address), "state": self.ctx.state.value},
            )
            self._report_error(error)
            return

        self.ctx.address = address
        logger.info("Switcher address set to %s", address, extra={"address": address})
        self.events.emit(AddressChanged(address))

        if self.ctx.state is not ConnectionState.CLOSED or self._opening:
            self._cancel_reconnect()
            self._trigger_reconnect("address_changed")

    async def connect(self) -> None:
        """Open the transport and start the handshake.

        Without an address this reports ``AtemConfigurationError`` and leaves
        the state untouched. On a live session the old session is torn down
        silently once the new transport is open.
        """
        address = self.ctx.address
        if address is None:
            error_reason = "address not set"
            logger.warning("Cannot connect: %s", error_reason, extra={"state": self.ctx.state.value})
            self._report_error(AtemConfigurationError(error_reason, state=self.ctx.state.value))
            return

        self._connect_generation += 1
        generation = self._connect_generation

        with correlation_context():
            logger.info(
                "→ Connecting to switcher %s:%d",
                address,
                self.ctx.port,
                extra={"address": address, "port": self.ctx.port, "state": self.ctx.state.value},
            )
            self._opening += 1
            try:
                transport = await self._transport_factory(
                    address,
                    self.ctx.port,
                    self._on_datagram,
                    self._report_error,
                )
            except (AtemConnectionError, OSError) as e:
                logger.exception(
                    "Opening transport to %s:%d failed",
                    address,
                    self.ctx.port,
                    extra={"address": address, "error": str(e), "error_type": type(e).__name__},
                )
                self._report_error(e)
                return
            finally:
                self._opening -= 1

            if generation != self._connect_generation:
                logger.info(
                    "Connect to %s superseded while the transport was opening, discarding it",
                    address,
                    extra={"address": address, "state": self.ctx.state.value},
                )
                _close_quietly(transport)
                return

            if self.ctx.state is not ConnectionState.CLOSED:
                self._teardown(notify=False)

            self.ctx.transport = transport
            self.tracker.reset_identity(random.randint(0, INITIAL_SESSION_ID_MAX))
            self._set_state(ConnectionState.ATTEMPTING)
            if self.ctx.state is not ConnectionState.ATTEMPTING:
                return
            self._transmit(Packet(flags=PacketFlag.CONNECT, connect_payload=CONNECT_PAYLOAD))
            logger.info(
                "✓ Connect packet sent",
                extra={"address": address, "session_id": f"0x{self.ctx.session_id:04x}"},
            )

    def disconnect(self, on_complete: Callable[[], object] | None = None) -> None:
        """Close the session: cancel every timer, drop every queue, release the transport.

        Closed is only announced when the session was not already closed.

        Args:
            on_complete: Called once the session is Closed. A returned
                coroutine is scheduled on the running loop.

        """
        logger.info("Disconnecting...", extra={"state": self.ctx.state.value})
        self._connect_generation += 1
        self._cancel_reconnect()
        self._teardown(notify=self.ctx.state is not ConnectionState.CLOSED)
        logger.info("Disconnect complete")

        if on_complete is not None:
            result = on_complete()
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

    def submit(self, name: str, payload: bytes = b"") -> None:
        """Queue a named command for the next batch.

        Raises:
            ValueError: If ``name`` is not exactly 4 ASCII characters

        """
        self.submit_command(RawCommand(name, payload))

    def submit_command(self, command: RawCommand) -> None:
        try:
            self.batcher.submit(command)
        except CommandTooLargeError as e:
            logger.warning(
                "Dropping command %s: %s",
                command.name,
                e,
                extra={"command": command.name, "length": e.length, "limit": e.limit},
            )
            self._report_error(e)

    async def start(self) -> None:
        """Start the metrics server (when enabled) and connect if configured to."""
        if ATEM_METRICS_ENABLED:
            registry.start_metrics_server(ATEM_METRICS_PORT)
        if self.auto_connect and self.ctx.address is not None:
            await self.connect()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.disconnect()

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        previous = self.ctx.state
        self.ctx.state = state
        registry.record_connection_state(self.ctx.label, state.value)
        logger.info(
            "Connection state: %s → %s",
            previous.value,
            state.value,
            extra={"address": self.ctx.label, "from": previous.value, "to": state.value},
        )
        self.events.emit(ConnectionStateChanged(state))

    def _enter_open(self) -> None:
        self._set_state(ConnectionState.OPEN)
        if self.ctx.state is not ConnectionState.OPEN:
            return

        self.scheduler.arm_heartbeat()
        logger.info(
            "✓ Connected to switcher",
            extra={"address": self.ctx.label, "session_id": f"0x{self.ctx.session_id:04x}"},
        )
        self.events.emit(Connected())
        if self.ctx.state is ConnectionState.OPEN:
            self._send_sync()

    def _teardown(self, *, notify: bool) -> None:
        """Cancel all timers, empty every queue and release the transport."""
        self.scheduler.cancel_all()
        self.liveness.stop()
        self.batcher.clear()
        self.tracker.clear()

        transport, self.ctx.transport = self.ctx.transport, None
        if transport is not None:
            _close_quietly(transport)

        if notify:
            self._set_state(ConnectionState.CLOSED)
        else:
            self.ctx.state = ConnectionState.CLOSED

    def _trigger_reconnect(self, reason: str) -> None:
        """Trigger reconnection if not already in progress.

        Args:
            reason: Reason for reconnection

        """
        if self.reconnect_task is None or self.reconnect_task.done():
            logger.info(
                "Triggering reconnection",
                extra={"reason": reason},
            )
            self.reconnect_task = asyncio.create_task(self.reconnect(reason))
        else:
            logger.debug(
                "Reconnection already in progress",
                extra={"reason": reason},
            )

    async def reconnect(self, reason: str = "unknown") -> None:
        """Tear the session down and start a new attempt in one step."""
        logger.info(
            "→ Starting reconnection",
            extra={"address": self.ctx.label, "reason": reason},
        )
        registry.record_reconnection(self.ctx.label, reason)
        await self.connect()

    def _cancel_reconnect(self) -> None:
        task = self.reconnect_task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            _ = task.cancel()
            self.reconnect_task = None

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _transmit(self, packet: Packet) -> None:
        """First transmission of a packet built locally."""
        attached = self.tracker.prepare(packet)
        data = AtemProtocol.encode_packet(packet)
        outbound = OutboundPacket(packet=packet, data=data, sent_at=asyncio.get_running_loop().time())

        self._send_raw(data)
        registry.record_packet_sent(self.ctx.label, _packet_kind(packet))
        if attached:
            registry.record_commands_sent(self.ctx.label, len(attached))
            logger.debug(
                "Sent %d command(s) in packet %d",
                len(attached),
                packet.local_seq,
                extra={"commands": [command.name for command in attached], "local_seq": packet.local_seq},
            )

        if packet.is_sync or packet.is_connect:
            _ = self.scheduler.track(outbound)

        self.tracker.advance(packet)

        if packet.is_sync and self.ctx.state is ConnectionState.OPEN:
            self.scheduler.arm_heartbeat()

    def _send_raw(self, data: bytes) -> None:
        transport = self.ctx.transport
        if transport is None:
            logger.debug("No transport, dropping %d byte datagram", len(data))
            return
        try:
            transport.send(data)
        except (AtemConnectionError, OSError) as e:
            logger.exception(
                "Send to switcher failed",
                extra={"address": self.ctx.label, "bytes": len(data), "error_type": type(e).__name__},
            )
            self._report_error(e)

    def _send_sync(self) -> None:
        self._transmit(Packet(flags=PacketFlag.SYNC))

    def _send_heartbeat(self) -> None:
        registry.record_heartbeat(self.ctx.label)
        self._send_sync()

    def _send_ack(self, foreign_seq: int) -> None:
        self._transmit(Packet(flags=PacketFlag.ACK, foreign_seq=foreign_seq))

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def _on_datagram(self, data: bytes) -> None:
        """Decode and route one datagram from the transport."""
        if self.ctx.state is ConnectionState.CLOSED:
            logger.debug("Ignoring datagram while closed", extra={"bytes": len(data)})
            return

        expected_session = (
            self.ctx.session_id
            if self.ctx.state in (ConnectionState.ESTABLISHING, ConnectionState.OPEN)
            else None
        )
        try:
            packet = AtemProtocol.decode_packet(data, session_id=expected_session)
        except PacketDecodeError as e:
            context: dict[str, object] = {"reason": e.reason, "bytes": len(data)}
            if ATEM_RAW:
                context["preview"] = e.data_preview.hex(" ")
            logger.warning("Discarding datagram: %s.%s", e, RAW_MSG, extra=context)
            registry.record_decode_error(self.ctx.label, e.reason)
            registry.record_packet_recv(self.ctx.label, "rejected")
            self._report_error(e)
            return

        registry.record_packet_recv(self.ctx.label, "accepted")
        self._handle_packet(packet)

    def _handle_packet(self, packet: Packet) -> None:
        if self.ctx.state is ConnectionState.ATTEMPTING and packet.is_sync:
            self.ctx.session_id = packet.session_id
            self._set_state(ConnectionState.ESTABLISHING)

        if (
            self.ctx.state is ConnectionState.ESTABLISHING
            and not packet.is_connect
            and len(packet.raw) == HEADER_LENGTH
        ):
            self._enter_open()

        if self.ctx.state is ConnectionState.CLOSED:
            return

        if packet.is_ack:
            self.scheduler.settled(self.tracker.confirm(packet.foreign_seq))
        elif packet.is_connect:
            self.scheduler.settled(self.tracker.confirm_connect())

        if (packet.is_sync and self.ctx.state is not ConnectionState.ESTABLISHING) or packet.is_connect:
            self._acknowledge(packet)

        self.liveness.reset()

        if packet.commands:
            registry.record_commands_received(self.ctx.label, len(packet.commands))
            for command in packet.commands:
                self.events.emit(RawCommandReceived(command))

    def _acknowledge(self, packet: Packet) -> None:
        entry = self.tracker.record_inbound(packet)
        if self.ctx.state is ConnectionState.ATTEMPTING:
            self._respond_ack(entry)
        else:
            _ = asyncio.get_running_loop().call_soon(self._respond_ack, entry)

    def _respond_ack(self, entry: UnackedInbound) -> None:
        if self.tracker.claim(entry):
            self._send_ack(entry.local_seq)

    # ------------------------------------------------------------------
    # Timer callbacks and notifications
    # ------------------------------------------------------------------

    def _on_message_timeout(self, local_seq: int) -> None:
        self.events.emit(MessageTimeout(local_seq, self.ctx.timeouts.ack_timeout_seconds))

    def _on_liveness_expired(self) -> None:
        logger.warning(
            "Connection lost: no packet from %s for %.1fs",
            self.ctx.label,
            self.ctx.timeouts.liveness_timeout_seconds,
            extra={"address": self.ctx.label, "state": self.ctx.state.value},
        )
        registry.record_connection_lost(self.ctx.label)
        self.events.emit(ConnectionLost())

        if self.ctx.state is ConnectionState.CLOSED:
            return
        if self.auto_reconnect:
            self._trigger_reconnect("connection_lost")
        else:
            self.disconnect()

    def _report_error(self, error: Exception) -> None:
        self.events.emit(ErrorRaised(error))


def _close_quietly(transport: DatagramTransport) -> None:
    try:
        transport.close()
    except OSError as e:
        logger.warning(
            "Error closing transport: %s",
            e,
            extra={"error": str(e), "error_type": type(e).__name__},
        )


def _is_ipv4(address: object) -> bool:
    if not isinstance(address, str):
        return False
    try:
        _ = ipaddress.IPv4Address(address)
    except ValueError:
        return False
    return True


def _packet_kind(packet: Packet) -> str:
    if packet.is_connect:
        return "connect"
    if packet.is_sync:
        return "sync"
    return "ack"
