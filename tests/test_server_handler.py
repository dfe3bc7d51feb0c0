#!/usr/bin/env python3
"""Tests for the host connection handler."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeStream

from cliprelay.errors import MalformedFrame, PeerReportedError, TransportClosed
from cliprelay.frames import Command, Frame, error_frame, url_ack, version_frame, write_ack
from cliprelay.server_handler import execute_frame, handle_connection
from cliprelay.session_state import HostState
from cliprelay.status import LogLevel


def feed(stream: FakeStream, *items) -> None:
    for item in items:
        stream.incoming.put_nowait(item)


@pytest.mark.asyncio
async def test_version_query_is_answered(host_state) -> None:
    """Test a bare V gets the host version."""
    stream = FakeStream()
    feed(stream, version_frame(), None)
    await handle_connection(host_state, stream)

    assert stream.sent == [version_frame("0")]
    assert stream.closed


@pytest.mark.asyncio
async def test_requests_answered_in_order(host_state, clipboard) -> None:
    """Test W, R and P after the handshake are answered in order."""
    stream = FakeStream()
    feed(
        stream,
        version_frame("0"),
        Frame(Command.WRITE, "abc"),
        Frame(Command.READ),
        Frame(Command.PING, "hello"),
        None,
    )
    await handle_connection(host_state, stream)

    assert stream.sent == [
        version_frame("0"),
        write_ack(),
        Frame(Command.READ, "abc"),
        Frame(Command.PING, "hello"),
    ]
    assert clipboard.content == "abc"


@pytest.mark.asyncio
async def test_request_before_version_is_refused(host_state, clipboard, sink) -> None:
    """Test a request as the first frame is refused and the connection closed."""
    stream = FakeStream()
    feed(stream, Frame(Command.WRITE, "abc"))
    await handle_connection(host_state, stream)

    assert stream.sent == [error_frame("Version handshake required")]
    assert clipboard.content == ""
    assert stream.closed
    assert sink.entries[0].level is LogLevel.ERROR


@pytest.mark.asyncio
async def test_version_mismatch_is_refused(host_state, sink) -> None:
    """Test an announced foreign version is refused."""
    stream = FakeStream()
    feed(stream, version_frame("7"))
    await handle_connection(host_state, stream)

    assert stream.sent == [error_frame("Unsupported version 7")]
    assert stream.closed
    assert sink.entries[0].message.startswith("Version mismatch")


@pytest.mark.asyncio
async def test_malformed_frame_after_handshake_continues(host_state) -> None:
    """Test an undecodable message is answered with E and serving continues."""
    stream = FakeStream()
    feed(
        stream,
        version_frame(),
        MalformedFrame("Unknown command 'X'"),
        Frame(Command.PING, "still here"),
        None,
    )
    await handle_connection(host_state, stream)

    assert stream.sent == [
        version_frame("0"),
        error_frame("Invalid packet: Unknown command 'X'"),
        Frame(Command.PING, "still here"),
    ]


@pytest.mark.asyncio
async def test_malformed_first_frame_closes(host_state) -> None:
    """Test an undecodable opening message ends the connection."""
    stream = FakeStream()
    feed(stream, MalformedFrame("Empty frame"), Frame(Command.PING, "ignored"))
    await handle_connection(host_state, stream)

    assert stream.sent == [error_frame("Invalid packet: Empty frame")]
    assert stream.closed


@pytest.mark.asyncio
async def test_per_request_closes_after_one_reply(clipboard, sink) -> None:
    """Test per-request mode serves one request after the handshake."""
    state = HostState(clipboard=clipboard, sink=sink, per_request=True)
    stream = FakeStream()
    feed(stream, version_frame(), Frame(Command.WRITE, "one"), Frame(Command.WRITE, "two"))
    await handle_connection(state, stream)

    assert stream.sent == [version_frame("0"), write_ack()]
    assert clipboard.content == "one"
    assert stream.closed


@pytest.mark.asyncio
async def test_transport_loss_is_reported(host_state, sink) -> None:
    """Test a dropped connection is logged as an error."""
    stream = FakeStream()
    feed(stream, version_frame(), TransportClosed("Connection closed after 2 of 9 bytes"))
    await handle_connection(host_state, stream)

    assert stream.closed
    assert sink.entries[0].message == "Connection error: Connection closed after 2 of 9 bytes"


@pytest.mark.asyncio
async def test_client_error_frame_is_logged(host_state, sink) -> None:
    """Test an E frame from the client is logged and not answered."""
    stream = FakeStream()
    feed(stream, version_frame(), Frame(Command.ERROR, "bad reply"), None)
    await handle_connection(host_state, stream)

    assert stream.sent == [version_frame("0")]
    assert any(e.message == "Client error: bad reply" for e in sink.entries)


def test_execute_frame_version_after_handshake(host_state) -> None:
    """Test a repeated V is answered with the version."""
    assert execute_frame(host_state, version_frame()) == version_frame("0")


def test_execute_frame_open_url_without_opener(host_state) -> None:
    """Test U without an opener is refused."""
    reply = execute_frame(host_state, Frame(Command.OPEN_URL, "https://example.org"))
    assert reply == error_frame("Opening URLs is not supported")


def test_execute_frame_open_url(clipboard) -> None:
    """Test U calls the host's opener."""
    opened = []
    state = HostState(clipboard=clipboard, opener=opened.append)
    assert execute_frame(state, Frame(Command.OPEN_URL, "u")) == url_ack()
    assert opened == ["u"]


@pytest.mark.asyncio
async def test_handshake_reports_client_online(host_state, sink) -> None:
    """Test the host shows the client online only after the version check."""
    stream = FakeStream()
    feed(stream, version_frame(), None)
    await handle_connection(host_state, stream)

    assert sink.message == "Client connected."
    assert sink.is_online


@pytest.mark.asyncio
async def test_refused_handshake_never_online(host_state, sink) -> None:
    """Test a client failing the version check is never shown online."""
    seen = []
    sink.add_listener(lambda s: seen.append(s.is_online))
    stream = FakeStream()
    feed(stream, Frame(Command.READ))
    await handle_connection(host_state, stream)

    assert not any(seen)


def relay_state(clipboard, relay) -> HostState:
    return HostState(clipboard=clipboard, relay=relay, per_request=True)


@pytest.mark.asyncio
async def test_relay_forwards_request(clipboard) -> None:
    """Test requests are forwarded to the relay instead of the clipboard."""
    relay = AsyncMock(return_value=Frame(Command.READ, "from host"))
    stream = FakeStream()
    feed(stream, version_frame(), Frame(Command.READ))
    await handle_connection(relay_state(clipboard, relay), stream)

    relay.assert_awaited_once_with(Frame(Command.READ))
    assert stream.sent == [version_frame("0"), Frame(Command.READ, "from host")]


@pytest.mark.asyncio
async def test_relay_without_session(clipboard) -> None:
    """Test a relay with no active session answers with an error frame."""
    relay = AsyncMock(side_effect=TransportClosed("Session is not active"))
    stream = FakeStream()
    feed(stream, version_frame(), Frame(Command.WRITE, "x"))
    await handle_connection(relay_state(clipboard, relay), stream)

    assert stream.sent[-1] == error_frame("No connection to host: Session is not active")
    assert clipboard.content == ""


@pytest.mark.asyncio
async def test_relay_passes_host_error_through(clipboard) -> None:
    """Test an error reply from the host reaches the local tool."""
    relay = AsyncMock(side_effect=PeerReportedError("Opening URLs is not supported"))
    stream = FakeStream()
    feed(stream, version_frame(), Frame(Command.OPEN_URL, "u"))
    await handle_connection(relay_state(clipboard, relay), stream)

    assert stream.sent[-1] == error_frame("Opening URLs is not supported")


@pytest.mark.asyncio
async def test_relay_timeout(clipboard) -> None:
    """Test a host that never answers yields an error frame."""
    relay = AsyncMock(side_effect=asyncio.TimeoutError())
    stream = FakeStream()
    feed(stream, version_frame(), Frame(Command.PING, "p"))
    await handle_connection(relay_state(clipboard, relay), stream)

    assert stream.sent[-1] == error_frame("Host did not reply")
