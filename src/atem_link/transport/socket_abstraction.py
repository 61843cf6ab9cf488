"""Asyncio UDP socket abstraction with instrumentation."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Protocol, override

from atem_link.logging_abstraction import get_logger
from atem_link.transport.exceptions import AtemConnectionError

logger = get_logger(__name__)

DatagramHandler = Callable[[bytes], None]
ErrorHandler = Callable[[Exception], None]


class DatagramTransport(Protocol):
    """What the session needs from a datagram transport."""

    def send(self, data: bytes) -> None: ...

    def close(self) -> None: ...


# (host, port, on_datagram, on_error) -> open transport
TransportFactory = Callable[[str, int, DatagramHandler, ErrorHandler], Awaitable[DatagramTransport]]


class _SwitcherDatagramProtocol(asyncio.DatagramProtocol):
    """Forwards endpoint callbacks to the owning UDPConnection."""

    def __init__(self, connection: UDPConnection) -> None:
        self._connection = connection

    @override
    def datagram_received(self, data: bytes, addr: tuple[str | object, int]) -> None:
        self._connection.on_datagram(data)

    @override
    def error_received(self, exc: Exception) -> None:
        self._connection.handle_error(exc)

    @override
    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self._connection.handle_error(exc)
        self._connection.transport = None


class UDPConnection:
    """Async UDP endpoint bound to one switcher address."""

    def __init__(
        self,
        host: str,
        port: int,
        on_datagram: DatagramHandler,
        on_error: ErrorHandler | None = None,
    ):
        """
        Initialize UDP connection parameters.

        Args:
            host: Switcher address
            port: Switcher port
            on_datagram: Called with every datagram received from the switcher
            on_error: Called with socket errors reported by the endpoint
        """
        self.host = host
        self.port = port
        self.on_datagram = on_datagram
        self.on_error = on_error
        self.transport: asyncio.DatagramTransport | None = None

    @property
    def is_open(self) -> bool:
        return self.transport is not None

    async def open(self) -> None:
        """
        Create the datagram endpoint.

        Raises:
            AtemConnectionError: If the endpoint cannot be created
        """
        start_time = time.perf_counter()
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _SwitcherDatagramProtocol(self),
                remote_addr=(self.host, self.port),
            )
        except OSError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "Opening UDP endpoint for %s:%d failed after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms, "error": str(e)},
            )
            error_reason = "endpoint_failed"
            raise AtemConnectionError(error_reason, state="closed") from e

        self.transport = transport
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "UDP endpoint for %s:%d ready in %.1fms",
            self.host,
            self.port,
            elapsed_ms,
            extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms},
        )

    def send(self, data: bytes) -> None:
        """
        Send one datagram.

        Raises:
            AtemConnectionError: If the endpoint is not open
        """
        if self.transport is None:
            error_reason = "not_open"
            raise AtemConnectionError(error_reason, state="closed")
        self.transport.sendto(data)

    def close(self) -> None:
        if self.transport is not None:
            self.transport.close()
            self.transport = None
            logger.debug("UDP endpoint closed", extra={"host": self.host, "port": self.port})

    def handle_error(self, exc: Exception) -> None:
        logger.warning(
            "UDP endpoint error: %s",
            exc,
            extra={"host": self.host, "port": self.port, "error_type": type(exc).__name__},
        )
        if self.on_error is not None:
            self.on_error(exc)


async def open_udp_connection(
    host: str,
    port: int,
    on_datagram: DatagramHandler,
    on_error: ErrorHandler | None = None,
) -> UDPConnection:
    """Default transport factory: open a UDPConnection to ``host:port``."""
    connection = UDPConnection(host, port, on_datagram, on_error)
    await connection.open()
    return connection
