"""URL-open capability used for U frames."""

from __future__ import annotations

import logging
from collections.abc import Callable

import click

logger = logging.getLogger(__name__)

UrlOpener = Callable[[str], None]


def open_url(url: str) -> None:
    """Open url with the desktop's default handler.

    Raises:
        OSError: If the handler could not be started.
    """
    logger.debug("Opening URL %s", url)
    status = click.launch(url)
    if status != 0:
        raise OSError(f"URL handler exited with status {status}")
