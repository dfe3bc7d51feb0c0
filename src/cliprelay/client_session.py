#!/usr/bin/env python3
"""Client session manager.

ClientSession owns the outbound connection to the host and every piece of
session state. All transitions happen in handle_event(), which run()
calls for each event taken from the session queue, so frames are handled
one at a time in arrival order:

    DISCONNECTED --connect--> CONNECTING --open--> AWAITING_VERSION
    AWAITING_VERSION --valid version--> ACTIVE
    any state --close--> DISCONNECTED (retry in 5 s) or idle/ERRORING

Transport reads run in a per-connection task that only posts events. Each
connection gets a new generation number; events from an older generation
are dropped, which discards anything that arrives after a close.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import TYPE_CHECKING

from cliprelay.constants import (
    CONNECT_TIMEOUT,
    DEFAULT_ADDRESS,
    DEFAULT_PORT,
    PROTOCOL_VERSION,
    REQUEST_TIMEOUT,
    RETRY_DELAY,
)
from cliprelay.errors import (
    MalformedFrame,
    PeerReportedError,
    ProtocolError,
    TransportClosed,
)
from cliprelay.frames import Command, Frame, error_frame, version_frame
from cliprelay.handlers import dispatch_request
from cliprelay.session_state import (
    ConnectionState,
    ConnectRequested,
    DisableRequested,
    EnableRequested,
    FrameReceived,
    FrameRejected,
    RetryTimerFired,
    SessionEvent,
    ShutdownRequested,
    TransportLost,
)
from cliprelay.status import Indicator, LogLevel, StatusSink, report
from cliprelay.transport import FrameStream, open_frame_stream

if TYPE_CHECKING:
    from cliprelay.browser import UrlOpener
    from cliprelay.clipboard import ClipboardCapability

logger = logging.getLogger(__name__)

Connector = Callable[[], Awaitable[FrameStream]]


class ClientSession:
    """The single, possibly reconnecting, session with the host.

    Args:
        clipboard: Local clipboard capability used for incoming W/R frames.
        sink: Status sink notified of every transition.
        opener: URL-open capability used for incoming U frames.
        address: Host address, used by the default connector.
        port: Host port, used by the default connector.
        connector: Coroutine factory returning a connected FrameStream;
            defaults to a TCP connection to address:port.
        retry_delay: Seconds to wait before reconnecting.
        version: Protocol version expected from the host.
        close_on_peer_error: Close the transport when the host sends E.
    """

    def __init__(
        self,
        clipboard: ClipboardCapability,
        sink: StatusSink | None = None,
        *,
        opener: UrlOpener | None = None,
        address: str = DEFAULT_ADDRESS,
        port: int = DEFAULT_PORT,
        connector: Connector | None = None,
        retry_delay: float = RETRY_DELAY,
        version: str = PROTOCOL_VERSION,
        close_on_peer_error: bool = True,
    ) -> None:
        self.clipboard = clipboard
        self.sink = sink if sink is not None else StatusSink()
        self.opener = opener
        self.retry_delay = retry_delay
        self.version = version
        self.close_on_peer_error = close_on_peer_error
        self._connector = connector or (lambda: open_frame_stream(address, port))

        self.state = ConnectionState.DISCONNECTED
        self.enabled = True
        self.last_error: str | None = None
        self.connect_attempts = 0

        self._stream: FrameStream | None = None
        self._generation = 0
        self._reader_task: asyncio.Task[None] | None = None
        self._retry_handle: asyncio.TimerHandle | None = None
        self._retry_serial = 0
        self._events: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._pending_reply: asyncio.Future[Frame] | None = None
        self._request_lock = asyncio.Lock()

    @property
    def generation(self) -> int:
        """Generation of the current (or last) connection."""
        return self._generation

    @property
    def connected(self) -> bool:
        """True while a transport is attached."""
        return self._stream is not None

    @property
    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    @property
    def retry_handle(self) -> asyncio.TimerHandle | None:
        return self._retry_handle

    @property
    def retry_serial(self) -> int:
        """Serial of the most recently armed retry timer."""
        return self._retry_serial

    # Operator controls

    def connect(self) -> None:
        """Request a connection attempt."""
        self._events.put_nowait(ConnectRequested())

    def enable(self) -> None:
        self._events.put_nowait(EnableRequested())

    def disable(self) -> None:
        self._events.put_nowait(DisableRequested())

    def toggle(self) -> None:
        """Disable an enabled session, enable a disabled one."""
        if self.enabled:
            self.disable()
        else:
            self.enable()

    def set_debug_logging(self, debug: bool) -> None:
        self.sink.set_debug(debug)
        self._log(LogLevel.INFO, f"Debug logging {'enabled' if debug else 'disabled'}.")

    def stop(self) -> None:
        """Ask run() to return."""
        self._events.put_nowait(ShutdownRequested())

    # Scheduler

    async def run(self) -> None:
        """Connect, then process session events until stop() is called."""
        self._log(LogLevel.DEBUG, "Session started")
        self._set_status("Started...", Indicator.OFFLINE)
        self.connect()
        try:
            while True:
                event = await self._events.get()
                if isinstance(event, ShutdownRequested):
                    break
                await self.handle_event(event)
        finally:
            await self.shutdown()

    async def handle_event(self, event: SessionEvent) -> None:
        """Apply one event to the session state machine."""
        if isinstance(event, ConnectRequested):
            await self._connect()
        elif isinstance(event, RetryTimerFired):
            # A timer cancelled after its event was queued is stale.
            if event.serial == self._retry_serial and self._retry_handle is not None:
                self._retry_handle = None
                await self._connect()
        elif isinstance(event, EnableRequested):
            await self._enable()
        elif isinstance(event, DisableRequested):
            await self._disable()
        elif isinstance(event, FrameReceived):
            if event.generation == self._generation and self._stream is not None:
                await self._on_frame(event.frame)
        elif isinstance(event, FrameRejected):
            if event.generation == self._generation and self._stream is not None:
                await self._on_rejected(event.error)
        elif isinstance(event, TransportLost):
            if event.generation == self._generation and self._stream is not None:
                self._log(LogLevel.DEBUG, f"Transport lost: {event.reason}")
                await self._close_transport()
        elif isinstance(event, ShutdownRequested):
            await self.shutdown()

    async def shutdown(self) -> None:
        """Cancel the retry timer and close the transport with a goodbye."""
        self._cancel_retry()
        stream = self._detach()
        if stream is not None:
            await stream.close(goodbye=True)
            self.state = ConnectionState.DISCONNECTED
            self._set_status("No connection (shut down).", Indicator.OFFLINE)

    async def request(self, frame: Frame, timeout: float = REQUEST_TIMEOUT) -> Frame:
        """Send a request to the host and wait for its reply.

        Only one request is in flight at a time; the next frame received
        after sending is taken as the reply.

        Args:
            frame: The request frame.
            timeout: Seconds to wait for the reply.

        Returns:
            The reply frame.

        Raises:
            TransportClosed: If the session is not active or the
                connection is lost before the reply arrives.
            PeerReportedError: If the host answers with an error frame.
            asyncio.TimeoutError: If no reply arrives in time.
        """
        async with self._request_lock:
            stream = self._stream
            if self.state is not ConnectionState.ACTIVE or stream is None:
                raise TransportClosed("Session is not active")
            self._pending_reply = asyncio.get_running_loop().create_future()
            try:
                await stream.send(frame)
                reply = await asyncio.wait_for(self._pending_reply, timeout)
            finally:
                self._pending_reply = None
        if reply.command is Command.ERROR:
            raise PeerReportedError(reply.payload)
        return reply

    # Transitions

    async def _connect(self) -> None:
        self._cancel_retry()
        if not self.enabled:
            self._set_status("No connection (disabled).", Indicator.DISABLED)
            self._log(LogLevel.INFO, "Session is disabled.")
            return
        if self._stream is not None:
            self._log(LogLevel.DEBUG, "Socket already open")
            return

        self.state = ConnectionState.CONNECTING
        self.connect_attempts += 1
        self._set_status("Connecting...", Indicator.OFFLINE)
        self._log(LogLevel.DEBUG, "Opening a connection")
        try:
            stream = await asyncio.wait_for(self._connector(), timeout=CONNECT_TIMEOUT)
        except (ConnectionError, OSError, asyncio.TimeoutError) as e:
            self._log(LogLevel.DEBUG, f"Connection failed: {e or 'timeout'}")
            self._on_closed()
            return

        self._attach(stream)
        self.state = ConnectionState.AWAITING_VERSION
        self._log(LogLevel.INFO, "Connection established.")
        self._set_status("Connection established: checking version...", Indicator.OFFLINE)
        await self._send(version_frame())

    async def _enable(self) -> None:
        self.enabled = True
        self.last_error = None
        self._log(LogLevel.INFO, "Session enabled.")
        if self._stream is None:
            self.state = ConnectionState.DISCONNECTED
            await self._connect()

    async def _disable(self) -> None:
        self.enabled = False
        self._log(LogLevel.INFO, "Session disabled.")
        if self._stream is not None:
            await self._close_transport(goodbye=True)
        else:
            self._cancel_retry()
            self._set_status("No connection (disabled).", Indicator.DISABLED)

    async def _on_frame(self, frame: Frame) -> None:
        self._log(LogLevel.DEBUG, f"Frame received ({frame.command.value}+{frame.payload})")
        if self.state is ConnectionState.AWAITING_VERSION:
            await self._on_version(frame)
            return

        if self._pending_reply is not None and not self._pending_reply.done():
            self._pending_reply.set_result(frame)
            return

        if frame.command is Command.ERROR:
            await self._on_peer_error(frame.payload)
            return

        try:
            reply = dispatch_request(frame, self.clipboard, self.opener)
        except Exception as e:
            self._log(LogLevel.ERROR, f"Cannot execute {frame.command.value} request: {e}")
            reply = error_frame(f"Cannot execute request: {e}")
        if reply is None:
            self._log(LogLevel.ERROR, f"Invalid packet from server: {frame}")
            reply = error_frame(f"Unexpected {frame.command.value} frame")
        await self._send(reply)

    async def _on_version(self, frame: Frame) -> None:
        if frame.command is not Command.VERSION:
            # Handshake violation: drop the connection but keep retrying.
            await self._fail("Received frame while waiting for version.", disable=False)
            return
        if frame.payload != self.version:
            await self._fail(
                f"Invalid server version {frame.payload} != {self.version}.",
                disable=True,
            )
            return
        self.state = ConnectionState.ACTIVE
        self.last_error = None
        self._log(LogLevel.INFO, "Connection established.")
        self._set_status("Connection established.", Indicator.ONLINE)

    async def _on_rejected(self, error: MalformedFrame) -> None:
        if self.state is ConnectionState.AWAITING_VERSION:
            await self._fail(f"Invalid frame while waiting for version: {error}", disable=False)
            return
        self._log(LogLevel.ERROR, f"Invalid packet from server: {error}")
        await self._send(error_frame(f"Invalid packet: {error}"))

    async def _on_peer_error(self, message: str) -> None:
        self.last_error = f"Server error: {message}"
        self._log(LogLevel.ERROR, self.last_error)
        self.state = ConnectionState.ERRORING
        self._set_status(self.last_error, Indicator.ERROR)
        if self.close_on_peer_error:
            await self._close_transport()

    async def _fail(self, message: str, disable: bool) -> None:
        """Log an error and close the transport, optionally disabling retries."""
        self.last_error = message
        self._log(LogLevel.ERROR, message)
        if disable:
            self.enabled = False
        self.state = ConnectionState.ERRORING
        await self._close_transport()

    async def _send(self, frame: Frame) -> None:
        stream = self._stream
        if stream is None:
            return
        try:
            await stream.send(frame)
        except (ConnectionError, OSError, ProtocolError) as e:
            self._log(LogLevel.DEBUG, f"Send failed: {e}")
            await self._close_transport()

    # Transport bookkeeping

    def _attach(self, stream: FrameStream) -> None:
        self._generation += 1
        self._stream = stream
        self._reader_task = asyncio.create_task(self._read_frames(stream, self._generation))

    def _detach(self) -> FrameStream | None:
        """Forget the current transport; later events for it are stale."""
        stream, self._stream = self._stream, None
        if stream is None:
            return None
        self._generation += 1
        task, self._reader_task = self._reader_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        if self._pending_reply is not None and not self._pending_reply.done():
            self._pending_reply.set_exception(TransportClosed("Connection closed"))
        return stream

    async def _close_transport(self, goodbye: bool = False) -> None:
        stream = self._detach()
        if stream is None:
            return
        await stream.close(goodbye=goodbye)
        self._on_closed()

    def _on_closed(self) -> None:
        """Transport-level close, whatever caused it."""
        if self.enabled:
            self.state = ConnectionState.DISCONNECTED
            self._set_status(
                f"No connection (retrying in {self.retry_delay:g} seconds)",
                Indicator.OFFLINE,
            )
            self._log(
                LogLevel.INFO,
                f"Connection is closed, trying again in {self.retry_delay:g} seconds...",
            )
            self._schedule_retry()
        elif self.last_error is not None:
            self.state = ConnectionState.ERRORING
            self._set_status(self.last_error, Indicator.ERROR)
            self._log(LogLevel.INFO, "Connection is closed after an error: not retrying.")
        else:
            self.state = ConnectionState.DISCONNECTED
            self._set_status("No connection (disabled).", Indicator.DISABLED)
            self._log(LogLevel.INFO, "Connection is closed, session is disabled: not retrying.")

    def _schedule_retry(self) -> None:
        if self._retry_handle is not None:
            return
        self._retry_serial += 1
        loop = asyncio.get_running_loop()
        self._retry_handle = loop.call_later(
            self.retry_delay, self._events.put_nowait, RetryTimerFired(self._retry_serial)
        )

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    async def _read_frames(self, stream: FrameStream, generation: int) -> None:
        """Turn transport reads into session events until the stream ends."""
        reason = "Connection closed by peer"
        try:
            while True:
                try:
                    frame = await stream.receive()
                except MalformedFrame as e:
                    self._events.put_nowait(FrameRejected(generation, e))
                    continue
                if frame is None:
                    break
                self._events.put_nowait(FrameReceived(generation, frame))
        except (ConnectionError, OSError, ProtocolError) as e:
            reason = str(e)
        self._events.put_nowait(TransportLost(generation, reason))

    # Reporting

    def _set_status(self, message: str, indicator: Indicator) -> None:
        self.sink.on_status(message, indicator is Indicator.ONLINE, indicator)

    def _log(self, level: LogLevel, message: str) -> None:
        report(self.sink, logger, level, message)
