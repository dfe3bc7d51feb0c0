#!/usr/bin/env python3
"""Session states, session events and host state.

ConnectionState enumerates the client session states. The event
dataclasses are the messages consumed by ClientSession.handle_event();
transport events carry the generation of the connection that produced
them so events from a closed connection can be discarded. HostState
groups what every host connection handler needs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from cliprelay.constants import PROTOCOL_VERSION

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from cliprelay.browser import UrlOpener
    from cliprelay.clipboard import ClipboardCapability
    from cliprelay.errors import MalformedFrame
    from cliprelay.frames import Frame
    from cliprelay.status import StatusSink

    Relay = Callable[[Frame], Awaitable[Frame]]


class ConnectionState(Enum):
    """Client session states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_VERSION = "awaiting_version"
    ACTIVE = "active"
    ERRORING = "erroring"


@dataclass(frozen=True)
class ConnectRequested:
    """Attempt a connection now."""


@dataclass(frozen=True)
class RetryTimerFired:
    """Reconnect timer `serial` elapsed."""

    serial: int


@dataclass(frozen=True)
class EnableRequested:
    """Operator enabled the session."""


@dataclass(frozen=True)
class DisableRequested:
    """Operator disabled the session."""


@dataclass(frozen=True)
class ShutdownRequested:
    """Stop the session scheduler."""


@dataclass(frozen=True)
class FrameReceived:
    """A frame arrived on connection `generation`."""

    generation: int
    frame: Frame


@dataclass(frozen=True)
class FrameRejected:
    """A message on connection `generation` could not be decoded."""

    generation: int
    error: MalformedFrame


@dataclass(frozen=True)
class TransportLost:
    """Connection `generation` was closed by the peer or failed."""

    generation: int
    reason: str


SessionEvent = (
    ConnectRequested
    | RetryTimerFired
    | EnableRequested
    | DisableRequested
    | ShutdownRequested
    | FrameReceived
    | FrameRejected
    | TransportLost
)


@dataclass
class HostState:
    """State shared by every connection the host accepts.

    Attributes:
        clipboard: The host clipboard capability.
        sink: Status sink for connection events, or None.
        opener: URL-open capability, or None if U is not supported.
        version: Protocol version the host speaks.
        per_request: Close each connection after one request/reply cycle.
        relay: Coroutine function forwarding a request elsewhere and
            returning the reply; when set, requests are not executed
            against clipboard.
    """

    clipboard: ClipboardCapability
    sink: StatusSink | None = None
    opener: UrlOpener | None = None
    version: str = PROTOCOL_VERSION
    per_request: bool = False
    relay: Relay | None = None
