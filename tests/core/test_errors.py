"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from chisme.core.errors import (
    BackendError,
    ChismeError,
    CommandError,
    CommandSpawnError,
    ConfigValidationError,
    ConnectionError,
    ExecutionError,
    PackageNotFoundError,
    ParseError,
    SessionError,
    StoreError,
    StreamReadError,
)


class TestHierarchy:
    """Tests for error base classes."""

    @pytest.mark.parametrize(
        "error_class",
        [CommandSpawnError, ConnectionError, SessionError, ExecutionError, StreamReadError],
    )
    def test_runner_errors_are_command_errors(self, error_class: type[Exception]) -> None:
        """Test every runner failure derives from CommandError."""
        assert issubclass(error_class, CommandError)
        assert issubclass(error_class, ChismeError)

    def test_other_errors(self) -> None:
        """Test the non-runner errors derive from ChismeError."""
        for error_class in (ConfigValidationError, ParseError, BackendError, StoreError):
            assert issubclass(error_class, ChismeError)
        assert issubclass(PackageNotFoundError, StoreError)


class TestMessages:
    """Tests for error messages and attributes."""

    def test_execution_error_exit_status(self) -> None:
        """Test ExecutionError reports the exit status and keeps the output."""
        error = ExecutionError("apt update", 100, output=["E: failed"])

        assert error.exit_code == 100
        assert error.output == ["E: failed"]
        assert str(error) == "Command 'apt update' finished with error: exit status 100"

    def test_execution_error_reason(self) -> None:
        """Test ExecutionError with an explicit reason."""
        error = ExecutionError("ls", None, reason="channel closed")

        assert error.output == []
        assert "channel closed" in str(error)

    def test_connection_error(self) -> None:
        """Test ConnectionError keeps the host and port."""
        error = ConnectionError("server", 2222, OSError("refused"))

        assert error.host == "server"
        assert error.port == 2222
        assert str(error) == "Cannot connect to server:2222: refused"

    def test_spawn_error(self) -> None:
        """Test CommandSpawnError names the command."""
        error = CommandSpawnError("ls", FileNotFoundError("bash"))
        assert "ls" in str(error)

    def test_stream_read_error(self) -> None:
        """Test StreamReadError names the stream."""
        error = StreamReadError("stdout", ValueError("boom"))
        assert str(error) == "Error reading stdout: boom"

    def test_parse_error_keeps_line(self) -> None:
        """Test ParseError carries the offending line."""
        error = ParseError("unexpected number of fields in line", "foo bar")

        assert error.line == "foo bar"
        assert "foo bar" in str(error)
