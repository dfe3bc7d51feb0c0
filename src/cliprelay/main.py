"""CLI handling for cliprelay.

This module provides the command-line interface for cliprelay, handling
argument parsing via click, logging configuration, and dispatching to host
or client mode, plus the one-shot request tool.

Usage:
    cliprelay --host [--per-request] [--port PORT] [--verbose]
    cliprelay --client [--port PORT] [--request-port PORT] [--retry-delay SECONDS]
    cliprelay-request [--port PORT] --read | --write TEXT | --ping TEXT | --open-url URL

cliprelay-request talks to the host directly (--port 30001) or through a
running client's session (--port 30002, the client's request port).
"""

import sys

import click

from cliprelay.constants import (
    DEFAULT_ADDRESS,
    DEFAULT_PORT,
    DEFAULT_REQUEST_PORT,
    RETRY_DELAY,
)
from cliprelay.main_logging import configure_logging
from cliprelay.main_options import MutuallyExclusiveOption, loopback_address

_address_option = click.option(
    "--address",
    default=DEFAULT_ADDRESS,
    show_default=True,
    envvar="CLIPRELAY_ADDRESS",
    callback=loopback_address,
    help="Loopback address to listen on or connect to",
)
_port_option = click.option(
    "--port",
    default=DEFAULT_PORT,
    show_default=True,
    envvar="CLIPRELAY_PORT",
    type=click.IntRange(1, 65535),
    help="TCP port of the host",
)
_verbose_option = click.option(
    "--verbose",
    is_flag=True,
    help="Enable DEBUG-level logging",
)


@click.command()
@click.option(
    "--host",
    is_flag=True,
    cls=MutuallyExclusiveOption,
    not_required_if=["client"],
    help="Run in host mode (owns the clipboard, listens)",
)
@click.option(
    "--client",
    is_flag=True,
    cls=MutuallyExclusiveOption,
    not_required_if=["host"],
    help="Run in client mode (connects, reconnects on loss)",
)
@_address_option
@_port_option
@click.option(
    "--per-request",
    is_flag=True,
    help="Host: close each connection after one request",
)
@click.option(
    "--retry-delay",
    default=RETRY_DELAY,
    show_default=True,
    type=click.FloatRange(min=0, min_open=True),
    help="Client: seconds to wait before reconnecting",
)
@click.option(
    "--request-port",
    default=DEFAULT_REQUEST_PORT,
    show_default=True,
    envvar="CLIPRELAY_REQUEST_PORT",
    type=click.IntRange(1, 65535),
    help="Client: port accepting requests from local tools",
)
@click.option(
    "--no-local-requests",
    is_flag=True,
    help="Client: do not accept requests from local tools",
)
@click.option(
    "--memory-clipboard",
    is_flag=True,
    help="Keep clipboard content in memory instead of the OS clipboard",
)
@_verbose_option
def main(
    host: bool,
    client: bool,
    address: str,
    port: int,
    per_request: bool,
    retry_delay: float,
    request_port: int,
    no_local_requests: bool,
    memory_clipboard: bool,
    verbose: bool,
) -> None:
    """Relay clipboard reads and writes between a host and a sandbox."""
    if not host and not client:
        raise click.UsageError("Either --host or --client must be specified")
    if per_request and not host:
        raise click.UsageError("--per-request only applies to --host")

    from cliprelay.config import ConfigError, RelayConfig

    try:
        config = RelayConfig(
            address=address,
            port=port,
            retry_delay=retry_delay,
            per_request=per_request,
            verbose=verbose,
            request_port=None if host or no_local_requests else request_port,
        )
    except ConfigError as e:
        raise click.UsageError(str(e)) from e
    configure_logging(verbose)
    _run_mode(host, config, memory_clipboard)


def _run_mode(host: bool, config, memory_clipboard: bool) -> None:
    """Run the appropriate mode (host or client).

    Args:
        host: True for host mode, False for client mode.
        config: The RelayConfig built from the options.
        memory_clipboard: Use an in-process clipboard.
    """
    import asyncio

    from cliprelay.browser import open_url
    from cliprelay.client import run_client
    from cliprelay.clipboard import MemoryClipboard, validate_clipboard
    from cliprelay.errors import ProtocolError
    from cliprelay.server import run_server
    from cliprelay.session_state import HostState
    from cliprelay.status import StatusSink

    clipboard = MemoryClipboard() if memory_clipboard else validate_clipboard()
    try:
        if host:
            state = HostState(
                clipboard=clipboard,
                sink=StatusSink(debug=config.verbose),
                opener=open_url,
                per_request=config.per_request,
            )
            asyncio.run(run_server(state, config.address, config.port))
        else:
            asyncio.run(run_client(config, clipboard, open_url))
    except (ProtocolError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.command()
@click.option(
    "--read",
    is_flag=True,
    cls=MutuallyExclusiveOption,
    not_required_if=["write", "ping", "open_url"],
    help="Print the host clipboard",
)
@click.option(
    "--write",
    metavar="TEXT",
    cls=MutuallyExclusiveOption,
    not_required_if=["read", "ping", "open_url"],
    help="Write TEXT to the host clipboard ('-' reads standard input)",
)
@click.option(
    "--ping",
    metavar="TEXT",
    cls=MutuallyExclusiveOption,
    not_required_if=["read", "write", "open_url"],
    help="Send a ping carrying TEXT and print the echo",
)
@click.option(
    "--open-url",
    metavar="URL",
    cls=MutuallyExclusiveOption,
    not_required_if=["read", "write", "ping"],
    help="Ask the host to open URL",
)
@_address_option
@_port_option
@_verbose_option
def request_main(
    read: bool,
    write: str | None,
    ping: str | None,
    open_url: str | None,
    address: str,
    port: int,
    verbose: bool,
) -> None:
    """Send one request to a cliprelay host and print the reply."""
    from cliprelay.frames import Command, Frame

    if read:
        frame = Frame(Command.READ)
    elif write is not None:
        if write == "-":
            write = click.get_text_stream("stdin").read()
        frame = Frame(Command.WRITE, write)
    elif ping is not None:
        frame = Frame(Command.PING, ping)
    elif open_url is not None:
        frame = Frame(Command.OPEN_URL, open_url)
    else:
        raise click.UsageError(
            "One of --read, --write, --ping or --open-url must be specified"
        )

    configure_logging(verbose)
    _run_request(frame, address, port)


def _run_request(frame, address: str, port: int) -> None:
    """Send frame and print what the reply carries.

    Args:
        frame: The request frame.
        address: Host address.
        port: Host port.
    """
    import asyncio

    from cliprelay.errors import PeerReportedError, ProtocolError
    from cliprelay.frames import Command
    from cliprelay.request import send_request

    try:
        reply = asyncio.run(send_request(frame, address, port))
    except (ProtocolError, ConnectionError, PeerReportedError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if frame.command in (Command.READ, Command.PING):
        click.echo(reply.payload, nl=False)
