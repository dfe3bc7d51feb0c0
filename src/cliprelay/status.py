#!/usr/bin/env python3
"""Status and log sink.

The sink is a pure observer: session managers report state transitions
and log lines to it, and front ends (a popup, a tray icon, the CLI) read
from it. It keeps the latest status message, an indicator, and a ring
buffer of the most recent log entries, newest first.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum

from cliprelay.constants import MAX_LOG_ENTRIES, MAX_LOG_MESSAGE_LENGTH

logger = logging.getLogger(__name__)


class LogLevel(IntEnum):
    """Sink log levels, most severe first."""

    ERROR = 0
    INFO = 1
    DEBUG = 2

    @property
    def logging_level(self) -> int:
        """The matching standard library logging level."""
        return {
            LogLevel.ERROR: logging.ERROR,
            LogLevel.INFO: logging.INFO,
            LogLevel.DEBUG: logging.DEBUG,
        }[self]


class Indicator(Enum):
    """Coarse session status shown by an icon."""

    ONLINE = "online"
    OFFLINE = "offline"
    DISABLED = "disabled"
    ERROR = "error"


@dataclass(frozen=True)
class LogEntry:
    """One sink log line.

    Attributes:
        level: Severity of the entry.
        timestamp: Local time formatted as HH:MM:SS.
        message: The (possibly truncated) message.
    """

    level: LogLevel
    timestamp: str
    message: str


StatusListener = Callable[["StatusSink"], None]


class StatusSink:
    """Latest status plus a capped, newest-first log.

    Args:
        max_entries: Ring buffer capacity.
        debug: Whether DEBUG entries are recorded.
    """

    def __init__(self, max_entries: int = MAX_LOG_ENTRIES, debug: bool = False) -> None:
        self.entries: deque[LogEntry] = deque(maxlen=max_entries)
        self.debug = debug
        self.message = ""
        self.indicator = Indicator.OFFLINE
        self._listeners: list[StatusListener] = []

    @property
    def is_online(self) -> bool:
        return self.indicator is Indicator.ONLINE

    def add_listener(self, listener: StatusListener) -> None:
        """Call listener with this sink after every status or log change."""
        self._listeners.append(listener)

    def set_debug(self, debug: bool) -> None:
        self.debug = debug
        self._notify()

    def on_status(
        self, message: str, is_online: bool, indicator: Indicator | None = None
    ) -> None:
        """Record a state transition.

        Args:
            message: Human-readable status line.
            is_online: Whether the session is usable.
            indicator: Icon state; derived from is_online when omitted.
        """
        if indicator is None:
            indicator = Indicator.ONLINE if is_online else Indicator.OFFLINE
        self.message = message
        self.indicator = indicator
        self._notify()

    def on_log(self, level: LogLevel, timestamp: str, message: str) -> None:
        """Append a log entry, newest first.

        DEBUG entries are dropped unless debug logging is enabled.
        """
        if level is LogLevel.DEBUG and not self.debug:
            return
        if len(message) > MAX_LOG_MESSAGE_LENGTH:
            message = message[: MAX_LOG_MESSAGE_LENGTH - 3] + "..."
        self.entries.appendleft(LogEntry(level, timestamp, message))
        self._notify()

    def log(self, level: LogLevel, message: str) -> None:
        """Append a log entry stamped with the current local time."""
        self.on_log(level, datetime.now().strftime("%H:%M:%S"), message)

    def _notify(self) -> None:
        for listener in self._listeners:
            try:
                listener(self)
            except Exception:
                logger.exception("Status listener failed")


def report(
    sink: StatusSink | None,
    log: logging.Logger,
    level: LogLevel,
    message: str,
) -> None:
    """Write message to a module logger and, if given, to the sink.

    Args:
        sink: Status sink to append to, or None.
        log: Module logger of the caller.
        level: Severity of the message.
        message: The message text.
    """
    log.log(level.logging_level, message)
    if sink is not None:
        sink.log(level, message)
