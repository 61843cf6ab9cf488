"""Loopback UDP switcher that answers a client session for integration tests."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import override

from atem_link.protocol.atem_protocol import AtemProtocol
from atem_link.protocol.exceptions import PacketDecodeError
from atem_link.protocol.packet_types import Packet, PacketFlag, RawCommand
from tests.helpers.fake_switcher import SWITCHER_CONNECT_PAYLOAD, SWITCHER_SESSION_ID

logger = logging.getLogger(__name__)

PRODUCT_NAME = b"ATEM Mini\x00"


class ResponseMode(Enum):
    """Response mode for the mock switcher."""

    SUCCESS = "success"  # Handshake and acknowledge everything
    SILENT = "silent"  # Never answer (simulates an unreachable switcher)


class MockSwitcherProtocol(asyncio.DatagramProtocol):
    """Plays the switcher's side of the session for one client."""

    def __init__(self, server: MockSwitcher) -> None:
        self.server = server
        self.transport: asyncio.DatagramTransport | None = None

    @override
    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    @override
    def datagram_received(self, data: bytes, addr: tuple[str | object, int]) -> None:
        self.server.handle_datagram(data, addr)


class MockSwitcher:
    """Mock switcher UDP endpoint for integration testing."""

    def __init__(
        self,
        response_mode: ResponseMode = ResponseMode.SUCCESS,
        host: str = "127.0.0.1",
        port: int = 0,
    ):
        """Initialize mock switcher.

        Args:
            response_mode: How the switcher should respond
            host: Host to bind to
            port: Port to bind to (0 = OS assigns)

        """
        self.response_mode = response_mode
        self.host = host
        self.port = port
        self.protocol: MockSwitcherProtocol | None = None
        self.received_packets: list[Packet] = []
        self.received_commands: list[RawCommand] = []
        self.command_arrived = asyncio.Event()
        self._local_seq = 0

    async def start(self) -> None:
        """Bind the endpoint."""
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: MockSwitcherProtocol(self),
            local_addr=(self.host, self.port),
        )
        self.protocol = protocol
        if self.port == 0:
            self.port = transport.get_extra_info("sockname")[1]
        logger.info("Mock switcher started on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self.protocol is not None and self.protocol.transport is not None:
            self.protocol.transport.close()
            logger.info("Mock switcher stopped")

    def handle_datagram(self, data: bytes, addr: tuple[str | object, int]) -> None:
        try:
            packet = AtemProtocol.decode_packet(data)
        except PacketDecodeError:
            logger.exception("Mock switcher received an undecodable datagram")
            return

        self.received_packets.append(packet)
        if self.response_mode is ResponseMode.SILENT:
            return

        if packet.is_connect and not packet.is_repeat:
            self._handshake(packet.session_id, addr)
            return

        if packet.is_sync:
            self._send(Packet(flags=PacketFlag.ACK, session_id=SWITCHER_SESSION_ID, foreign_seq=packet.local_seq), addr)
            if packet.commands and not packet.is_repeat:
                self.received_commands.extend(packet.commands)
                self.command_arrived.set()

    def send_sync(self, commands: list[RawCommand], addr: tuple[str | object, int]) -> None:
        self._local_seq += 1
        self._send(
            Packet(
                flags=PacketFlag.SYNC,
                session_id=SWITCHER_SESSION_ID,
                local_seq=self._local_seq,
                commands=commands,
            ),
            addr,
        )

    def _handshake(self, client_session_id: int, addr: tuple[str | object, int]) -> None:
        self._local_seq = 0
        self._send(
            Packet(flags=PacketFlag.CONNECT, session_id=client_session_id, connect_payload=SWITCHER_CONNECT_PAYLOAD),
            addr,
        )
        self.send_sync([RawCommand("_ver", bytes.fromhex("0002001c")), RawCommand("_pin", PRODUCT_NAME)], addr)
        self.send_sync([], addr)

    def _send(self, packet: Packet, addr: tuple[str | object, int]) -> None:
        if self.protocol is not None and self.protocol.transport is not None:
            self.protocol.transport.sendto(AtemProtocol.encode_packet(packet), addr)
