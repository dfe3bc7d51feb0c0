#!/usr/bin/env python3
"""Client mode implementation for cliprelay.

This module provides the main entry point for client mode, which keeps a
session with a cliprelay host open on a loopback port, reconnecting
every few seconds while the host is away.

Local tools reach the host through the client: the client listens on a
second loopback port, answers the version query itself, and forwards
each request over its session, piping the host's reply back. Point
cliprelay-request at that port to use it.

Operator controls are mapped to signals:
- SIGUSR1 toggles the session between enabled and disabled
- SIGUSR2 toggles debug entries in the status log
- SIGINT/SIGTERM shut the session down

See client_session.py for the session state machine.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import TYPE_CHECKING

from cliprelay.client_session import ClientSession
from cliprelay.server import HostServer
from cliprelay.session_state import HostState
from cliprelay.status import StatusSink

if TYPE_CHECKING:
    from cliprelay.browser import UrlOpener
    from cliprelay.clipboard import ClipboardCapability
    from cliprelay.config import RelayConfig


class StatusPrinter:
    """Sink listener printing the status line to stderr when it changes."""

    def __init__(self) -> None:
        self.last_line: str | None = None

    def __call__(self, sink: StatusSink) -> None:
        line = f"[{sink.indicator.value}] {sink.message}"
        if line != self.last_line:
            print(line, file=sys.stderr)
            self.last_line = line


def request_endpoint(
    session: ClientSession,
    clipboard: ClipboardCapability,
    address: str,
    port: int,
) -> HostServer:
    """Build the local endpoint relaying requests over session.

    Connections are served one at a time and closed after one request,
    like a per-request host. The endpoint has no sink of its own so it
    never overwrites the session status.

    Args:
        session: The client session requests are forwarded over.
        clipboard: The local clipboard capability.
        address: Loopback address to listen on.
        port: Port to listen on; 0 picks a free port.
    """
    state = HostState(clipboard=clipboard, relay=session.request, per_request=True)
    return HostServer(state, address, port)


async def run_client(
    config: RelayConfig,
    clipboard: ClipboardCapability,
    opener: UrlOpener | None = None,
) -> None:
    """Run client mode until SIGINT or SIGTERM.

    Args:
        config: The relay configuration.
        clipboard: The local clipboard capability.
        opener: The URL-open capability.

    Raises:
        BindError: If the local request endpoint cannot be bound.
    """
    sink = StatusSink(debug=config.verbose)
    sink.add_listener(StatusPrinter())
    session = ClientSession(
        clipboard,
        sink,
        opener=opener,
        address=config.address,
        port=config.port,
        retry_delay=config.retry_delay,
    )

    endpoint = None
    if config.request_port is not None:
        endpoint = request_endpoint(session, clipboard, config.address, config.request_port)
        await endpoint.start()
        print(
            f"Relaying local requests from {config.address}:{endpoint.port}",
            file=sys.stderr,
        )

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, session.stop)
    loop.add_signal_handler(signal.SIGTERM, session.stop)
    loop.add_signal_handler(signal.SIGUSR1, session.toggle)
    loop.add_signal_handler(
        signal.SIGUSR2, lambda: session.set_debug_logging(not sink.debug)
    )

    try:
        await session.run()
    finally:
        if endpoint is not None:
            await endpoint.close()
