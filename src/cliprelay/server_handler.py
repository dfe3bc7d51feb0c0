#!/usr/bin/env python3
"""Host connection handler.

handle_connection() serves one accepted connection: it enforces the
version handshake, executes requests against the host clipboard and
replies in arrival order. In per-request mode it returns after the first
request/reply cycle that follows the handshake.

The same loop serves the client's local request endpoint. There
HostState.relay is set and requests are forwarded over the client's
session instead of being executed locally.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from cliprelay.errors import (
    MalformedFrame,
    PeerReportedError,
    ProtocolError,
    ProtocolVersionMismatch,
    TransportClosed,
)
from cliprelay.frames import Command, Frame, error_frame, version_frame
from cliprelay.handlers import dispatch_request
from cliprelay.status import LogLevel, report

if TYPE_CHECKING:
    from cliprelay.session_state import HostState
    from cliprelay.transport import FrameStream

logger = logging.getLogger(__name__)


async def handle_connection(state: HostState, stream: FrameStream) -> None:
    """Handle a single client connection.

    Errors on the connection are logged and end only this connection; the
    listener keeps accepting.

    Args:
        state: The host state.
        stream: The accepted connection.
    """
    logger.debug("Client connected, awaiting version")
    try:
        await serve_frames(state, stream)
        logger.debug("Client disconnected cleanly")
    except ProtocolVersionMismatch as e:
        report(state.sink, logger, LogLevel.ERROR, f"Version mismatch: {e}")
    except ProtocolError as e:
        report(state.sink, logger, LogLevel.ERROR, f"Protocol error: {e}")
    except ConnectionError as e:
        if stream.closed:
            logger.debug("Connection closed locally: %s", e)
        else:
            report(state.sink, logger, LogLevel.ERROR, f"Connection error: {e}")
    finally:
        await stream.close()


async def serve_frames(state: HostState, stream: FrameStream) -> None:
    """Read frames and reply until the peer leaves.

    Raises:
        ProtocolVersionMismatch: If the peer announces another version.
        ProtocolError: On a framing violation.
        ConnectionError: If the connection is lost.
    """
    handshaken = False
    while True:
        try:
            frame = await stream.receive()
        except MalformedFrame as e:
            report(state.sink, logger, LogLevel.ERROR, f"Invalid packet: {e}")
            await stream.send(error_frame(f"Invalid packet: {e}"))
            if not handshaken:
                return
            continue
        if frame is None:
            return

        if not handshaken:
            await check_version(state, stream, frame)
            handshaken = True
            continue

        if state.relay is not None:
            reply = await relay_frame(state, frame)
        else:
            reply = execute_frame(state, frame)
        if reply is not None:
            await stream.send(reply)
        if state.per_request:
            return


async def check_version(state: HostState, stream: FrameStream, frame: Frame) -> None:
    """Answer the opening frame of a connection.

    An empty V payload is a version query; a non-empty one is the peer's own
    version, which must match.

    Raises:
        ProtocolVersionMismatch: If the announced version differs.
        ProtocolError: If the opening frame is not V.
    """
    if frame.command is not Command.VERSION:
        await stream.send(error_frame("Version handshake required"))
        raise ProtocolError(f"Received {frame.command.value} frame before version")
    if frame.payload and frame.payload != state.version:
        await stream.send(error_frame(f"Unsupported version {frame.payload}"))
        raise ProtocolVersionMismatch(state.version, frame.payload)
    await stream.send(version_frame(state.version))
    logger.debug("Version handshake complete")
    if state.sink is not None:
        state.sink.on_status("Client connected.", True)


def execute_frame(state: HostState, frame: Frame) -> Frame | None:
    """Execute one post-handshake frame against the host clipboard.

    Returns:
        The reply frame, or None when the frame needs no reply.
    """
    if frame.command is Command.VERSION:
        return version_frame(state.version)
    if frame.command is Command.ERROR:
        error = PeerReportedError(frame.payload)
        report(state.sink, logger, LogLevel.ERROR, f"Client error: {error}")
        return None
    try:
        return dispatch_request(frame, state.clipboard, state.opener)
    except Exception as e:
        report(state.sink, logger, LogLevel.ERROR, f"Cannot execute {frame.command.value} request: {e}")
        return error_frame(f"Cannot execute request: {e}")


async def relay_frame(state: HostState, frame: Frame) -> Frame | None:
    """Forward one post-handshake request to the relay and return its reply.

    Used by the client's local request endpoint: requests from local tools
    go over the long-lived session to the host, and the host's reply (or
    an error frame saying why there is none) comes back.

    Returns:
        The reply frame, or None when the frame needs no reply.
    """
    if frame.command is Command.VERSION:
        return version_frame(state.version)
    if frame.command is Command.ERROR:
        report(state.sink, logger, LogLevel.ERROR, f"Local tool error: {frame.payload}")
        return None
    try:
        return await state.relay(frame)
    except PeerReportedError as e:
        return error_frame(str(e))
    except TransportClosed as e:
        report(state.sink, logger, LogLevel.INFO, f"Cannot relay {frame.command.value} request: {e}")
        return error_frame(f"No connection to host: {e}")
    except asyncio.TimeoutError:
        report(state.sink, logger, LogLevel.ERROR, f"Host did not answer {frame.command.value} request")
        return error_frame("Host did not reply")
