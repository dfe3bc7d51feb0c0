"""Logging configuration for the cliprelay commands."""
import logging

VERBOSE_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"
QUIET_FORMAT = "%(levelname)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    """Configure the root logger for a cliprelay process.

    Args:
        verbose: If True, log DEBUG and up with timestamps and logger
            names; otherwise only WARNING and up.

    Session status is printed separately by the status listener, so the
    quiet format only ever shows warnings and errors.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format=VERBOSE_FORMAT if verbose else QUIET_FORMAT,
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler()],
    )
    # asyncio reports every closed socket at DEBUG.
    logging.getLogger("asyncio").setLevel(logging.INFO if verbose else logging.WARNING)
