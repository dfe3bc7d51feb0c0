#!/usr/bin/env python3
"""Pytest fixtures for cliprelay tests.

Provides an in-memory clipboard, a status sink, and fake frame streams so
session logic can be driven without sockets.
"""

from __future__ import annotations

import asyncio

import pytest

from cliprelay.clipboard import MemoryClipboard
from cliprelay.client_session import ClientSession
from cliprelay.session_state import HostState
from cliprelay.status import StatusSink


class FakeStream:
    """Stand-in for FrameStream recording sent frames.

    Items put on `incoming` are returned by receive(); exceptions are
    raised instead.
    """

    def __init__(self) -> None:
        self.sent = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.goodbye = False

    async def send(self, frame) -> None:
        if self.closed:
            raise ConnectionError("stream is closed")
        self.sent.append(frame)

    async def receive(self):
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self, goodbye: bool = False) -> None:
        self.closed = True
        self.goodbye = self.goodbye or goodbye


class FakeConnector:
    """Connector handing out a new FakeStream per connection attempt."""

    def __init__(self) -> None:
        self.streams: list[FakeStream] = []
        self.fail = False

    async def __call__(self) -> FakeStream:
        if self.fail:
            raise ConnectionRefusedError("Connection refused")
        stream = FakeStream()
        self.streams.append(stream)
        return stream

    @property
    def live(self) -> list[FakeStream]:
        return [stream for stream in self.streams if not stream.closed]


@pytest.fixture
def clipboard() -> MemoryClipboard:
    """Create an empty in-memory clipboard."""
    return MemoryClipboard()


@pytest.fixture
def sink() -> StatusSink:
    """Create a status sink recording debug entries too."""
    return StatusSink(debug=True)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def session(
    clipboard: MemoryClipboard, sink: StatusSink, connector: FakeConnector
) -> ClientSession:
    """Create a ClientSession wired to the fake connector."""
    return ClientSession(clipboard, sink, connector=connector, opener=lambda url: None)


@pytest.fixture
def host_state(clipboard: MemoryClipboard, sink: StatusSink) -> HostState:
    """Create a persistent-mode HostState over the memory clipboard."""
    return HostState(clipboard=clipboard, sink=sink)


async def until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


async def activate(session: ClientSession, connector: FakeConnector) -> FakeStream:
    """Connect session and complete the version handshake."""
    from cliprelay.frames import version_frame
    from cliprelay.session_state import ConnectRequested, FrameReceived

    await session.handle_event(ConnectRequested())
    stream = connector.streams[-1]
    await session.handle_event(FrameReceived(session.generation, version_frame("0")))
    return stream
