#!/usr/bin/env python3
"""Frame stream over an asyncio TCP connection.

FrameStream pairs the netstring framing from protocol.py with the frame
codec from frames.py so callers only ever see whole frames.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from cliprelay.errors import ProtocolError
from cliprelay.frames import Frame, decode_frame, encode_frame
from cliprelay.protocol import (
    encode_netstring,
    is_goodbye,
    read_netstring,
    send_goodbye,
    validate_content_size,
)

logger = logging.getLogger(__name__)


class FrameStream:
    """A connection that sends and receives whole frames.

    Args:
        reader: The asyncio StreamReader for the connection.
        writer: The asyncio StreamWriter for the connection.
    """

    def __init__(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.closed = False

    async def send(self, frame: Frame) -> None:
        """Send one frame and wait for the write buffer to drain.

        Raises:
            ProtocolError: If the encoded frame exceeds the size limit.
            ConnectionError: If the connection is lost while writing.
        """
        data = encode_frame(frame)
        if not validate_content_size(data):
            raise ProtocolError(f"Frame of {len(data)} bytes exceeds size limit")
        self.writer.write(encode_netstring(data))
        await self.writer.drain()
        logger.debug("Sent %s frame (%d bytes)", frame.command.value, len(data))

    async def receive(self) -> Frame | None:
        """Receive one frame.

        Returns:
            The next frame, or None if the peer sent a goodbye.

        Raises:
            MalformedFrame: If a complete message is not a valid frame.
            TransportClosed: If the connection ends mid-message.
            ProtocolError: On a framing violation.
        """
        content = await read_netstring(self.reader)
        if is_goodbye(content):
            logger.debug("Goodbye received")
            return None
        return decode_frame(content)

    async def close(self, goodbye: bool = False) -> None:
        """Close the connection, optionally announcing it with a goodbye."""
        if self.closed:
            return
        self.closed = True
        if goodbye:
            await send_goodbye(self.writer)
        self.writer.close()
        # The peer may already have reset the connection.
        with suppress(OSError):
            await self.writer.wait_closed()


async def open_frame_stream(address: str, port: int) -> FrameStream:
    """Open a TCP connection to address:port.

    Args:
        address: Loopback address of the peer.
        port: TCP port of the peer.

    Returns:
        A FrameStream for the new connection.

    Raises:
        ConnectionError: If connection fails (refused, unreachable, etc).
    """
    try:
        reader, writer = await asyncio.open_connection(address, port)
    except OSError as e:
        raise ConnectionError(f"Failed to connect to {address}:{port}: {e}") from e
    return FrameStream(reader, writer)
