"""In-memory datagram transport and switcher-side packet builders."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable

from atem_link.protocol.atem_protocol import AtemProtocol
from atem_link.protocol.packet_types import Packet, PacketFlag, RawCommand

SWITCHER_SESSION_ID = 0x8001
SWITCHER_CONNECT_PAYLOAD = bytes.fromhex("0200000000000000")


class FakeTransport:
    """Records outbound datagrams instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[bytes] = []
        self.sent_at: list[float] = []  # time.monotonic() per datagram
        self.closed = False

    def send(self, data: bytes) -> None:
        self.sent.append(bytes(data))
        self.sent_at.append(time.monotonic())

    def close(self) -> None:
        self.closed = True


class FakeSwitcher:
    """Transport factory plus helpers to play the switcher's side.

    Pass ``switcher.factory`` as the manager's ``transport_factory``; every
    connect() opens a new FakeTransport, and ``deliver()`` feeds datagrams to
    the handler of the latest one. Set ``gate`` to hold connect() inside the
    factory until the event is set.
    """

    def __init__(self) -> None:
        self.transports: list[FakeTransport] = []
        self.opened: list[tuple[str, int]] = []
        self.gate: asyncio.Event | None = None
        self._on_datagram: Callable[[bytes], None] | None = None
        self._on_error: Callable[[Exception], None] | None = None

    async def factory(
        self,
        address: str,
        port: int,
        on_datagram: Callable[[bytes], None],
        on_error: Callable[[Exception], None],
    ) -> FakeTransport:
        if self.gate is not None:
            _ = await self.gate.wait()
        transport = FakeTransport()
        self.transports.append(transport)
        self.opened.append((address, port))
        self._on_datagram = on_datagram
        self._on_error = on_error
        return transport

    @property
    def transport(self) -> FakeTransport:
        return self.transports[-1]

    @property
    def sent(self) -> list[bytes]:
        return self.transport.sent

    def sent_packets(self) -> list[Packet]:
        """Decode every datagram the client sent on the current transport."""
        return [AtemProtocol.decode_packet(data) for data in self.sent]

    def sent_syncs(self) -> list[Packet]:
        return [p for p in self.sent_packets() if p.is_sync and not p.is_repeat]

    def deliver(self, data: bytes) -> None:
        assert self._on_datagram is not None, "connect() has not opened a transport"
        self._on_datagram(data)

    def fail(self, exc: Exception) -> None:
        """Report a socket error the way the transport would."""
        assert self._on_error is not None, "connect() has not opened a transport"
        self._on_error(exc)

    def reply_connect(self, session_id: int) -> None:
        """Answer the client's connect packet."""
        self.deliver(
            build_packet(
                PacketFlag.CONNECT,
                session_id,
                connect_payload=SWITCHER_CONNECT_PAYLOAD,
            ),
        )

    def send_sync(
        self,
        local_seq: int,
        commands: Iterable[RawCommand] = (),
        *,
        session_id: int = SWITCHER_SESSION_ID,
        ack: int | None = None,
    ) -> None:
        flags = PacketFlag.SYNC
        if ack is not None:
            flags |= PacketFlag.ACK
        self.deliver(
            build_packet(flags, session_id, local_seq=local_seq, foreign_seq=ack or 0, commands=commands),
        )

    def send_ack(self, foreign_seq: int, *, session_id: int = SWITCHER_SESSION_ID) -> None:
        self.deliver(build_packet(PacketFlag.ACK, session_id, foreign_seq=foreign_seq))

    def handshake(self, client_session_id: int) -> None:
        """Drive a client in Attempting all the way to Open.

        Mirrors a real switcher: connect reply, a state dump sync, then the
        header-only sync that ends the initial state transfer.
        """
        self.reply_connect(client_session_id)
        self.send_sync(1, [RawCommand("_ver", bytes.fromhex("0002001c")), RawCommand("_pin", b"ATEM Mini\x00")])
        self.send_sync(2)


def build_packet(
    flags: PacketFlag,
    session_id: int,
    *,
    local_seq: int = 0,
    foreign_seq: int = 0,
    commands: Iterable[RawCommand] = (),
    connect_payload: bytes = b"",
) -> bytes:
    """Encode a switcher-side packet."""
    return AtemProtocol.encode_packet(
        Packet(
            flags=flags,
            session_id=session_id,
            local_seq=local_seq,
            foreign_seq=foreign_seq,
            commands=list(commands),
            connect_payload=connect_payload,
        ),
    )
