#!/usr/bin/env python3
"""
Netstring framing for relay frames.

The relay frames themselves carry no length or terminator, so every frame
is wrapped in a netstring before it goes on the stream. Format:
<length>:<content>, where length is ASCII decimal digits, followed by a
colon, the raw content bytes, and a trailing comma.

Example: "4:Rabc," carries the 4-byte frame "Rabc".

The empty netstring "0:," never carries a frame (a frame has at least a
command byte) and is used as a goodbye marker before an intentional close.
"""
import asyncio

from cliprelay.errors import ProtocolError, TransportClosed

__all__ = [
    "GOODBYE_MESSAGE",
    "MAX_CONTENT_SIZE",
    "ProtocolError",
    "encode_netstring",
    "is_goodbye",
    "read_length",
    "read_netstring",
    "send_goodbye",
    "validate_content_size",
]

# Maximum size of a single frame in bytes (16 MiB).
MAX_CONTENT_SIZE: int = 16777216

# Maximum digits in the length field (8 digits allows up to 99999999 bytes).
# Enforced during parsing to prevent denial of service from huge length values.
MAX_LENGTH_DIGITS: int = 8

# Goodbye message: empty netstring signaling clean shutdown.
GOODBYE_MESSAGE: bytes = b"0:,"

# Timeout for goodbye message drain in seconds.
GOODBYE_DRAIN_TIMEOUT: float = 2.0


def encode_netstring(data: bytes) -> bytes:
    """
    Encode raw bytes as a netstring.

    Args:
        data: Encoded frame bytes.

    Returns:
        Netstring-encoded bytes in format "<length>:<content>,".
    """
    return f"{len(data)}:".encode("ascii") + data + b","


def validate_content_size(data: bytes) -> bool:
    """
    Check if content size is within the allowed limit.

    Args:
        data: Encoded frame bytes to validate.

    Returns:
        True if len(data) <= MAX_CONTENT_SIZE, False otherwise.
    """
    return len(data) <= MAX_CONTENT_SIZE


async def read_length(reader: asyncio.StreamReader) -> int:
    """Read the length field of a netstring up to and including the colon.

    Raises:
        TransportClosed: If the stream ends inside the length field.
        ProtocolError: If the field is empty, too long, not decimal, or
            announces more than MAX_CONTENT_SIZE bytes.
    """
    digits = bytearray()
    while True:
        byte = await reader.read(1)
        if not byte:
            raise TransportClosed("Connection closed while reading length field")
        if byte == b":":
            break
        if not byte.isdigit():
            raise ProtocolError(f"Invalid character in length field: {byte!r}")
        if len(digits) == MAX_LENGTH_DIGITS:
            raise ProtocolError("Length field exceeds maximum digits")
        digits += byte
    if not digits:
        raise ProtocolError("Empty length field")
    length = int(digits)
    if length > MAX_CONTENT_SIZE:
        raise ProtocolError(f"Content size {length} exceeds limit {MAX_CONTENT_SIZE}")
    return length


async def read_netstring(reader: asyncio.StreamReader) -> bytes:
    """
    Read one netstring from an async stream and return its content.

    Args:
        reader: asyncio StreamReader to read from.

    Returns:
        Decoded content bytes; empty for a goodbye.

    Raises:
        TransportClosed: If the stream ends before a complete netstring.
        ProtocolError: On invalid format or size violation.
    """
    length = await read_length(reader)
    try:
        content = await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise TransportClosed(
            f"Connection closed after {len(e.partial)} of {length} bytes"
        ) from e

    terminator = await reader.read(1)
    if terminator == b",":
        return content
    if not terminator:
        raise TransportClosed("Connection closed before comma terminator")
    raise ProtocolError(f"Expected comma terminator, got {terminator!r}")

async def send_goodbye(writer: asyncio.StreamWriter) -> None:
    """
    Send goodbye message to signal clean shutdown.

    Errors are ignored since the connection may already be dead when we
    are closing it.

    Args:
        writer: asyncio StreamWriter to send goodbye on.
    """
    try:
        writer.write(GOODBYE_MESSAGE)
        await asyncio.wait_for(writer.drain(), timeout=GOODBYE_DRAIN_TIMEOUT)
    except (OSError, asyncio.TimeoutError):
        pass


def is_goodbye(content: bytes) -> bool:
    """
    Check if content is a goodbye message (empty bytes).

    Args:
        content: Decoded netstring content to check.

    Returns:
        True if content is empty bytes, False otherwise.
    """
    return content == b""
