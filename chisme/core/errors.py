"""Exception hierarchy for chisme.

Setup failures (configuration, spawn, connect, session) are raised
directly by the call that failed. Failures that happen while a command
is already running are delivered on the error channel of the
:class:`~chisme.core.interfaces.CommandStream` instead.
"""

from __future__ import annotations


class ChismeError(Exception):
    """Base class for all chisme errors."""


class ConfigValidationError(ChismeError, ValueError):
    """Invalid connection or settings fields, detected before any I/O."""


class ChannelClosedError(ChismeError):
    """An item was put on a channel that has already been closed."""


class CommandError(ChismeError):
    """Base class for command runner failures."""


class CommandSpawnError(CommandError):
    """The local process could not be started."""

    def __init__(self, command: str, original_error: Exception) -> None:
        """Initialize spawn error.

        Args:
            command: Command that failed to start.
            original_error: Exception raised by the process spawn.
        """
        self.command = command
        self.original_error = original_error
        super().__init__(f"Failed to start command '{command}': {original_error}")


class ConnectionError(CommandError):  # noqa: A001
    """Dialing or authenticating against the remote host failed."""

    def __init__(self, host: str, port: int, original_error: Exception | str) -> None:
        """Initialize connection error.

        Args:
            host: Remote host name or address.
            port: Remote SSH port.
            original_error: Underlying exception or reason.
        """
        self.host = host
        self.port = port
        self.original_error = original_error
        super().__init__(f"Cannot connect to {host}:{port}: {original_error}")


class SessionError(CommandError):
    """Opening a session on an established connection failed."""


class ExecutionError(CommandError):
    """The command exited non-zero or failed while running.

    Attributes:
        command: The command as dispatched (after elevation).
        exit_code: Exit status, or None if the command did not report one.
        output: Merged output lines gathered before the failure.
    """

    def __init__(
        self,
        command: str,
        exit_code: int | None,
        output: list[str] | None = None,
        reason: str | None = None,
    ) -> None:
        self.command = command
        self.exit_code = exit_code
        self.output = output or []
        if reason is None:
            reason = f"exit status {exit_code}" if exit_code is not None else "no exit status"
        super().__init__(f"Command '{command}' finished with error: {reason}")


class StreamReadError(CommandError):
    """Reading one of the command's output pipes failed mid-stream."""

    def __init__(self, stream_name: str, original_error: Exception) -> None:
        self.stream_name = stream_name
        self.original_error = original_error
        super().__init__(f"Error reading {stream_name}: {original_error}")


class ParseError(ChismeError):
    """A backend output line could not be parsed."""

    def __init__(self, message: str, line: str) -> None:
        """Initialize parse error.

        Args:
            message: What went wrong.
            line: The offending output line.
        """
        self.line = line
        super().__init__(f"{message}: {line!r}")


class BackendError(ChismeError):
    """A package backend operation failed."""


class StoreError(ChismeError):
    """A package store operation failed."""


class PackageNotFoundError(StoreError):
    """No stored package matches the lookup."""
