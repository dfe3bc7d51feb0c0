#!/usr/bin/env python3
"""One-shot requests to the host.

send_request() is the connection-per-request counterpart of the host:
connect, check the version, send one request, read one reply, close.
Connecting is retried with tenacity for a short while so a request issued
while the host is between connections still goes through.
"""

from __future__ import annotations

import logging

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from cliprelay.constants import (
    DEFAULT_ADDRESS,
    DEFAULT_PORT,
    PROTOCOL_VERSION,
    REQUEST_CONNECT_TIMEOUT,
    REQUEST_RETRY_WAIT,
)
from cliprelay.errors import (
    PeerReportedError,
    ProtocolError,
    ProtocolVersionMismatch,
    TransportClosed,
)
from cliprelay.frames import Command, Frame, version_frame
from cliprelay.transport import FrameStream, open_frame_stream

logger = logging.getLogger(__name__)


@retry(
    wait=wait_fixed(REQUEST_RETRY_WAIT),
    stop=stop_after_delay(REQUEST_CONNECT_TIMEOUT),
    retry=retry_if_exception_type(ConnectionError),
    reraise=True,
)
async def connect_to_host(address: str, port: int) -> FrameStream:
    """Connect to the host, retrying refused connections briefly.

    Raises:
        ConnectionError: If no connection could be made in time.
    """
    logger.debug("Connecting to host at %s:%d", address, port)
    return await open_frame_stream(address, port)


async def receive_reply(stream: FrameStream) -> Frame:
    """Receive the reply to a request.

    Raises:
        TransportClosed: If the host closed the connection instead.
        PeerReportedError: If the host answered with an error frame.
    """
    reply = await stream.receive()
    if reply is None:
        raise TransportClosed("Host closed the connection without replying")
    if reply.command is Command.ERROR:
        raise PeerReportedError(reply.payload)
    return reply


async def send_request(
    frame: Frame,
    address: str = DEFAULT_ADDRESS,
    port: int = DEFAULT_PORT,
    version: str = PROTOCOL_VERSION,
) -> Frame:
    """Send one request to the host over a fresh connection.

    Args:
        frame: The request frame.
        address: Host address.
        port: Host port.
        version: Protocol version expected from the host.

    Returns:
        The host's reply.

    Raises:
        ConnectionError: If the host is unreachable or drops the connection.
        ProtocolVersionMismatch: If the host speaks another version.
        ProtocolError: If the host's reply is malformed or unexpected.
        PeerReportedError: If the host answered with an error frame.
    """
    stream = await connect_to_host(address, port)
    try:
        await stream.send(version_frame())
        reply = await receive_reply(stream)
        if reply.command is not Command.VERSION:
            raise ProtocolError(f"Expected version reply, got {reply.command.value}")
        if reply.payload != version:
            raise ProtocolVersionMismatch(version, reply.payload)

        await stream.send(frame)
        reply = await receive_reply(stream)
        logger.debug("Received %s reply (%d characters)", reply.command.value, len(reply.payload))
        return reply
    finally:
        await stream.close(goodbye=True)
