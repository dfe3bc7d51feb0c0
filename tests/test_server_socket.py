#!/usr/bin/env python3
"""
Tests for server socket utilities.

Tests bind_error messages for common bind failures and
print_startup_message output.
"""
import errno

import pytest

from cliprelay.errors import BindError
from cliprelay.server_socket import bind_error, print_startup_message


class TestBindError:
    """Tests for bind_error function."""

    def test_address_in_use_names_likely_cause(self) -> None:
        """Test EADDRINUSE mentions another running host."""
        error = bind_error(OSError(errno.EADDRINUSE, "Address already in use"), "127.0.0.1", 30001)
        assert isinstance(error, BindError)
        assert error.errno == errno.EADDRINUSE
        assert error.strerror == (
            "Cannot listen on 127.0.0.1:30001: Address already in use"
            " (port already in use, is another host running?)"
        )

    def test_other_errno_keeps_reason(self) -> None:
        """Test other failures carry the system reason only."""
        error = bind_error(OSError(errno.EACCES, "Permission denied"), "127.0.0.1", 80)
        assert error.errno == errno.EACCES
        assert error.strerror == "Cannot listen on 127.0.0.1:80: Permission denied"

    def test_error_without_errno(self) -> None:
        """Test an OSError without errno still produces a message."""
        error = bind_error(OSError("weird failure"), "::1", 30001)
        assert error.errno is None
        assert str(error) == "Cannot listen on ::1:30001: weird failure"


class TestPrintStartupMessage:
    """Tests for print_startup_message function."""

    def test_persistent_mode(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test persistent mode startup message."""
        print_startup_message("127.0.0.1", 30001, per_request=False)
        captured = capsys.readouterr()
        assert "Listening on 127.0.0.1:30001 (persistent)" in captured.err
        assert "cliprelay --client --port 30001" in captured.err

    def test_per_request_mode(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Test per-request mode startup message."""
        print_startup_message("127.0.0.1", 4000, per_request=True)
        captured = capsys.readouterr()
        assert "(connection per request)" in captured.err
