"""Clipboard capability.

The relay never touches the OS clipboard directly; it goes through an
object with get_clipboard()/set_clipboard(). Both calls are synchronous
and are made from within a single protocol step.

The module provides:
- ClipboardCapability: the interface the session managers consume
- SystemClipboard: the OS clipboard via pyperclip
- MemoryClipboard: an in-process clipboard
- validate_clipboard: fail fast at startup when no clipboard is usable
"""

from __future__ import annotations

import sys
from typing import Protocol

import pyperclip


class ClipboardCapability(Protocol):
    """Read and write access to one clipboard."""

    def get_clipboard(self) -> str:
        ...

    def set_clipboard(self, text: str) -> None:
        ...


class SystemClipboard:
    """The OS clipboard, accessed through pyperclip."""

    def get_clipboard(self) -> str:
        return pyperclip.paste() or ""

    def set_clipboard(self, text: str) -> None:
        pyperclip.copy(text)


class MemoryClipboard:
    """A clipboard that lives in this process.

    Attributes:
        content: Current clipboard text.
        writes: Number of set_clipboard() calls.
    """

    def __init__(self, content: str = "") -> None:
        self.content = content
        self.writes = 0

    def get_clipboard(self) -> str:
        return self.content

    def set_clipboard(self, text: str) -> None:
        self.content = text
        self.writes += 1


def validate_clipboard() -> SystemClipboard:
    """Check that the OS clipboard is reachable and return it.

    pyperclip needs a platform mechanism (xclip, xsel, wl-clipboard,
    pbcopy, ...). This should be called at startup to fail fast if none
    is available.

    Returns:
        SystemClipboard for clipboard operations.

    Raises:
        SystemExit: If no clipboard mechanism is available.
    """
    clipboard = SystemClipboard()
    try:
        clipboard.get_clipboard()
    except pyperclip.PyperclipException as e:
        print(f"Error: Cannot access the clipboard: {e}", file=sys.stderr)
        sys.exit(1)
    return clipboard
