#!/usr/bin/env python3
"""Server socket utilities for cliprelay.

This module provides utility functions for the host's listening socket:
- Turning a bind failure into a BindError with a likely cause
- Printing startup messages
"""

from __future__ import annotations

import errno
import sys

from cliprelay.errors import BindError


def bind_error(error: OSError, address: str, port: int) -> BindError:
    """Build the BindError reported when listening fails.

    Args:
        error: The OSError raised by the bind/listen call.
        address: Address the host tried to listen on.
        port: Port the host tried to listen on.

    Returns:
        A BindError naming the endpoint and, when known, the likely cause.
    """
    message = f"Cannot listen on {address}:{port}: {error.strerror or error}"
    if error.errno == errno.EADDRINUSE:
        message += " (port already in use, is another host running?)"
    if error.errno is None:
        return BindError(message)
    return BindError(error.errno, message)


def print_startup_message(address: str, port: int, per_request: bool) -> None:
    """Print host startup message to stderr.

    Args:
        address: Address the host listens on.
        port: Port the host listens on.
        per_request: Whether connections close after each request.
    """
    mode = "connection per request" if per_request else "persistent"
    print(f"Listening on {address}:{port} ({mode})", file=sys.stderr)
    print(f"Example client: cliprelay --client --port {port}", file=sys.stderr)
