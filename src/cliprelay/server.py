#!/usr/bin/env python3
"""Host mode implementation for cliprelay.

The host runs next to the OS clipboard and listens on a loopback TCP port.
For each accepted connection it:
- Answers the version handshake
- Executes W/R/P/U requests against the local clipboard
- Replies in the order requests arrived

At most one session is served at a time. In persistent mode a new
connection supersedes the previous one; in per-request mode connections
are served one after another and each is closed after one request.

Usage:
    cliprelay --host [--port PORT] [--per-request]
"""

from __future__ import annotations

import asyncio
import logging
import signal

from cliprelay.constants import DEFAULT_ADDRESS, DEFAULT_PORT
from cliprelay.server_handler import handle_connection
from cliprelay.server_socket import bind_error, print_startup_message
from cliprelay.session_state import HostState
from cliprelay.status import Indicator, LogLevel, report
from cliprelay.transport import FrameStream

logger = logging.getLogger(__name__)


class HostServer:
    """Listening endpoint that serves one session at a time.

    Args:
        state: The host state shared by every connection.
        address: Loopback address to listen on.
        port: Port to listen on; 0 picks a free port.
    """

    def __init__(
        self,
        state: HostState,
        address: str = DEFAULT_ADDRESS,
        port: int = DEFAULT_PORT,
    ) -> None:
        self.state = state
        self.address = address
        self.port = port
        self._server: asyncio.Server | None = None
        self._active: FrameStream | None = None
        self._streams: set[FrameStream] = set()
        self._serial = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        """Accepted connections not yet closed, queued ones included."""
        return len(self._streams)

    async def start(self) -> None:
        """Bind and start accepting connections.

        Raises:
            BindError: If the endpoint cannot be bound. The failure is
                reported to the sink and not retried.
        """
        try:
            self._server = await asyncio.start_server(
                self._on_connection, self.address, self.port, reuse_address=True
            )
        except OSError as e:
            error = bind_error(e, self.address, self.port)
            message = error.strerror or str(error)
            self._report(LogLevel.ERROR, message)
            if self.state.sink is not None:
                self.state.sink.on_status(message, False, Indicator.ERROR)
            raise error from e
        self.port = self._server.sockets[0].getsockname()[1]
        self._report(LogLevel.INFO, f"Listening on {self.address}:{self.port}")
        if self.state.sink is not None:
            self.state.sink.on_status("Waiting for a connection.", False)

    async def close(self) -> None:
        """Stop accepting and close every accepted connection."""
        server, self._server = self._server, None
        if server is not None:
            server.close()
        # wait_closed() also waits for open connections.
        for stream in list(self._streams):
            await stream.close(goodbye=True)
        self._active = None
        if server is not None:
            await server.wait_closed()

    async def __aenter__(self) -> HostServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _on_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        stream = FrameStream(reader, writer)
        self._streams.add(stream)
        try:
            if self.state.per_request:
                async with self._serial:
                    # Closed by close() while waiting for its turn.
                    if not stream.closed:
                        await self._serve(stream)
                return

            previous, self._active = self._active, stream
            if previous is not None:
                self._report(LogLevel.INFO, "New connection replaces the previous one.")
                await previous.close(goodbye=True)
            await self._serve(stream)
        finally:
            self._streams.discard(stream)

    async def _serve(self, stream: FrameStream) -> None:
        self._report(LogLevel.DEBUG, "Connection accepted.")
        try:
            await handle_connection(self.state, stream)
        finally:
            if self._active is stream:
                self._active = None
            if self._active is None and self.state.sink is not None:
                self.state.sink.on_status("Waiting for a connection.", False)

    def _report(self, level: LogLevel, message: str) -> None:
        report(self.state.sink, logger, level, message)


async def run_server(state: HostState, address: str, port: int) -> None:
    """Run the host until SIGINT or SIGTERM.

    Args:
        state: The host state.
        address: Loopback address to listen on.
        port: Port to listen on.

    Raises:
        BindError: If the endpoint cannot be bound.
    """
    shutdown_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, shutdown_requested.set)
    loop.add_signal_handler(signal.SIGTERM, shutdown_requested.set)

    async with HostServer(state, address, port) as server:
        print_startup_message(address, server.port, state.per_request)
        await shutdown_requested.wait()
