#!/usr/bin/env python3
"""Exceptions raised by the relay.

Protocol-level failures derive from ProtocolError, transport-level
failures from ConnectionError so callers can keep catching the builtin
family they already handle.
"""


class ProtocolError(Exception):
    """
    Exception raised for protocol-level errors.

    Raised when netstring parsing fails due to invalid format or size
    violations. The stream is no longer trustworthy after this error.
    """


class MalformedFrame(ProtocolError):
    """
    A complete message was received but is not a valid frame.

    The stream itself is intact, so the session may continue after
    answering with an error frame.

    Attributes:
        data: The raw message bytes that failed to decode.
    """

    def __init__(self, message: str, data: bytes = b"") -> None:
        super().__init__(message)
        self.data = data


class ProtocolVersionMismatch(ProtocolError):
    """The peer speaks a different protocol version."""

    def __init__(self, expected: str, received: str) -> None:
        super().__init__(f"Invalid peer version {received!r} != {expected!r}")
        self.expected = expected
        self.received = received


class TransportClosed(ConnectionError):
    """The connection was closed by the peer or lost."""


class PeerReportedError(Exception):
    """The peer answered with an error frame."""


class BindError(OSError):
    """The listening endpoint could not be bound."""
