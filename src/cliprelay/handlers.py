#!/usr/bin/env python3
"""Frame handlers shared by the host and client roles.

Each handler executes one request against a local capability and returns
the reply frame:
- handle_write: set the clipboard unless it already holds the payload
- handle_read: reply with the clipboard text
- handle_ping: echo the frame
- handle_open_url: open the payload with the URL-open capability
- dispatch_request: route W/R/U/P frames to the handlers above
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cliprelay.frames import Command, Frame, error_frame, url_ack, write_ack

if TYPE_CHECKING:
    from cliprelay.browser import UrlOpener
    from cliprelay.clipboard import ClipboardCapability

logger = logging.getLogger(__name__)


def handle_write(clipboard: ClipboardCapability, frame: Frame) -> Frame:
    """Apply a W frame to the clipboard.

    Reads the current content first and skips the write when it is
    identical, so clipboard managers do not see a spurious change.

    Args:
        clipboard: The local clipboard capability.
        frame: The W frame; its payload is the new content.

    Returns:
        The WOK acknowledgement.
    """
    snapshot = clipboard.get_clipboard()
    if snapshot == frame.payload:
        logger.debug("Not erasing content (identical)")
    else:
        clipboard.set_clipboard(frame.payload)
        logger.debug("Wrote %d characters to clipboard", len(frame.payload))
    return write_ack()


def handle_read(clipboard: ClipboardCapability, frame: Frame) -> Frame:
    """Reply to an R frame with the current clipboard text."""
    content = clipboard.get_clipboard()
    logger.debug("Read %d characters from clipboard", len(content))
    return Frame(Command.READ, content)


def handle_ping(frame: Frame) -> Frame:
    return frame


def handle_open_url(opener: UrlOpener | None, frame: Frame) -> Frame:
    """Open the URL carried by a U frame.

    Returns:
        UOK on success, an error frame if no opener is configured or the
        opener failed.
    """
    if opener is None:
        return error_frame("Opening URLs is not supported")
    try:
        opener(frame.payload)
    except OSError as e:
        logger.error("Cannot open URL %s: %s", frame.payload, e)
        return error_frame(f"Cannot open URL: {e}")
    return url_ack()


def dispatch_request(
    frame: Frame,
    clipboard: ClipboardCapability,
    opener: UrlOpener | None = None,
) -> Frame | None:
    """Execute a W, R, U or P request.

    Args:
        frame: The incoming frame.
        clipboard: The local clipboard capability.
        opener: The URL-open capability, if this peer supports U.

    Returns:
        The reply frame, or None if the command is not a request (V and E
        are handled by the session managers themselves).
    """
    if frame.command is Command.WRITE:
        return handle_write(clipboard, frame)
    if frame.command is Command.READ:
        return handle_read(clipboard, frame)
    if frame.command is Command.OPEN_URL:
        return handle_open_url(opener, frame)
    if frame.command is Command.PING:
        return handle_ping(frame)
    return None
