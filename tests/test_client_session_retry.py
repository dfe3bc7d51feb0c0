#!/usr/bin/env python3
"""Tests for the ClientSession retry timer."""
import asyncio
from unittest.mock import patch

import pytest

from conftest import activate, until

from cliprelay.client_session import ClientSession
from cliprelay.session_state import (
    ConnectRequested,
    DisableRequested,
    EnableRequested,
    RetryTimerFired,
    TransportLost,
)
from cliprelay.status import Indicator


@pytest.mark.asyncio
async def test_failed_connect_schedules_one_timer(session, connector, sink) -> None:
    """Test a refused connection arms a single 5 second timer."""
    connector.fail = True
    await session.handle_event(ConnectRequested())

    assert session.retry_pending
    remaining = session.retry_handle.when() - asyncio.get_running_loop().time()
    assert 4.5 < remaining <= 5.0
    assert sink.message == "No connection (retrying in 5 seconds)"
    await session.shutdown()


@pytest.mark.asyncio
async def test_repeated_failures_keep_one_timer(session, connector) -> None:
    """Test closes while a retry is pending do not add timers."""
    connector.fail = True
    await session.handle_event(ConnectRequested())
    handle = session.retry_handle

    session._on_closed()
    session._on_closed()

    assert session.retry_handle is handle
    assert not handle.cancelled()
    await session.shutdown()


@pytest.mark.asyncio
async def test_timer_firing_makes_one_attempt(session, connector) -> None:
    """Test one timer expiry leads to exactly one connection attempt."""
    connector.fail = True
    await session.handle_event(ConnectRequested())
    assert session.connect_attempts == 1

    connector.fail = False
    await session.handle_event(RetryTimerFired(session.retry_serial))

    assert session.connect_attempts == 2
    assert len(connector.streams) == 1
    assert not session.retry_pending
    await session.shutdown()


@pytest.mark.asyncio
async def test_manual_connect_cancels_timer(session, connector) -> None:
    """Test a manual connect replaces the pending retry."""
    connector.fail = True
    await session.handle_event(ConnectRequested())
    handle = session.retry_handle

    connector.fail = False
    await session.handle_event(ConnectRequested())

    assert handle.cancelled()
    assert not session.retry_pending
    assert session.connected
    await session.shutdown()


@pytest.mark.asyncio
async def test_disable_cancels_timer(session, connector, sink) -> None:
    """Test disabling while waiting to retry cancels the timer."""
    connector.fail = True
    await session.handle_event(ConnectRequested())
    handle = session.retry_handle

    await session.handle_event(DisableRequested())

    assert handle.cancelled()
    assert not session.retry_pending
    assert sink.indicator is Indicator.DISABLED


@pytest.mark.asyncio
async def test_connect_timeout_schedules_retry(clipboard, sink) -> None:
    """Test a connector that never answers times out into a retry."""

    async def hang():
        await asyncio.sleep(3600)

    session = ClientSession(clipboard, sink, connector=hang)
    with patch("cliprelay.client_session.CONNECT_TIMEOUT", 0.01):
        await session.handle_event(ConnectRequested())

    assert not session.connected
    assert session.retry_pending
    await session.shutdown()


@pytest.mark.asyncio
async def test_timer_posts_retry_event(clipboard, sink, connector) -> None:
    """Test the armed timer drives reconnection when the session runs."""

    connector.fail = True
    session = ClientSession(clipboard, sink, connector=connector, retry_delay=0.01)
    task = asyncio.create_task(session.run())
    await until(lambda: session.connect_attempts >= 3)

    session.stop()
    await task
    assert not session.retry_pending


@pytest.mark.asyncio
async def test_lost_connection_retries_after_delay(session, connector) -> None:
    """Test a lost connection reconnects when the timer fires."""
    await activate(session, connector)
    await session.handle_event(TransportLost(session.generation, "reset"))
    assert session.retry_pending

    await session.handle_event(RetryTimerFired(session.retry_serial))

    assert session.connected
    assert len(connector.live) == 1
    await session.shutdown()


@pytest.mark.asyncio
async def test_stale_timer_event_is_ignored(session, connector) -> None:
    """Test a timer event queued before its timer was replaced arms nothing."""
    connector.fail = True
    await session.handle_event(ConnectRequested())
    stale = RetryTimerFired(session.retry_serial)

    await session.handle_event(EnableRequested())
    replacement = session.retry_handle
    assert session.connect_attempts == 2

    await session.handle_event(stale)

    assert session.retry_handle is replacement
    assert not replacement.cancelled()
    assert session.connect_attempts == 2
    await session.shutdown()
    assert replacement.cancelled()


@pytest.mark.asyncio
async def test_timer_event_after_cancel_is_ignored(session, connector) -> None:
    """Test an event from a cancelled timer does not reconnect."""
    connector.fail = True
    await session.handle_event(ConnectRequested())
    stale = RetryTimerFired(session.retry_serial)
    connector.fail = False
    await session.handle_event(ConnectRequested())

    await session.handle_event(stale)

    assert session.connect_attempts == 2
    assert len(connector.streams) == 1
    await session.shutdown()
