#!/usr/bin/env python3
"""Relay frame codec.

A frame is a single command character followed by a free-form text
payload. The command vocabulary is shared by host and client:

- V: version announce (payload = version) or query (empty payload)
- W: write clipboard (payload = text); acknowledged with "WOK"
- R: read clipboard (empty request payload); reply carries the text
- U: open URL (payload = URL); acknowledged with "UOK"
- P: ping; the whole frame is echoed back
- E: error (payload = human-readable message)

Acknowledgements are payload conventions, not separate commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cliprelay.errors import MalformedFrame

# Payload of the acknowledgement replies to W and U.
ACK_PAYLOAD: str = "OK"


class Command(Enum):
    """Frame command characters."""

    VERSION = "V"
    WRITE = "W"
    READ = "R"
    OPEN_URL = "U"
    PING = "P"
    ERROR = "E"


_COMMANDS = {command.value: command for command in Command}


@dataclass(frozen=True)
class Frame:
    """One protocol message.

    Attributes:
        command: The frame command.
        payload: Text following the command character, possibly empty.
    """

    command: Command
    payload: str = ""

    def __str__(self) -> str:
        return self.command.value + self.payload


def encode_frame(frame: Frame) -> bytes:
    """Encode a frame as UTF-8 command character + payload.

    Args:
        frame: The frame to encode.

    Returns:
        The wire representation of the frame.
    """
    return str(frame).encode("utf-8")


def decode_frame(data: bytes) -> Frame:
    """Decode a complete message into a frame.

    Args:
        data: One complete message as delivered by the transport.

    Returns:
        The decoded frame.

    Raises:
        MalformedFrame: If data is empty, not UTF-8, or starts with an
            unknown command character.
    """
    if not data:
        raise MalformedFrame("Empty frame", data)
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedFrame(f"Frame is not valid UTF-8: {e}", data) from e
    command = _COMMANDS.get(text[0])
    if command is None:
        raise MalformedFrame(f"Unknown command {text[0]!r}", data)
    return Frame(command, text[1:])


def version_frame(version: str = "") -> Frame:
    """Build a version frame; an empty version makes it a query."""
    return Frame(Command.VERSION, version)


def write_ack() -> Frame:
    return Frame(Command.WRITE, ACK_PAYLOAD)


def url_ack() -> Frame:
    return Frame(Command.OPEN_URL, ACK_PAYLOAD)


def error_frame(message: str) -> Frame:
    return Frame(Command.ERROR, message)


def is_ack(frame: Frame) -> bool:
    """Check whether frame is the acknowledgement of a W or U request."""
    return (
        frame.command in (Command.WRITE, Command.OPEN_URL)
        and frame.payload == ACK_PAYLOAD
    )
