"""Core interfaces for chisme.

This module defines the abstract base classes for command runners and
package managers, and the stream handle returned by asynchronous
command execution.
"""

from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .channel import Channel

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

    from .models import ExecutionRequest, Package


class CommandStream:
    """Handle on a running command.

    ``output`` yields merged stdout/stderr lines as they are produced and
    is closed once the command terminated and its pipes were drained.
    ``errors`` yields failures (read errors, non-zero exit) and is closed
    once no more can occur. Both must be consumed concurrently, or the
    stream closed with :meth:`aclose`.

    Example:
        async with await runner.run_command_async(request) as stream:
            lines, errors = await stream.drain()
    """

    def __init__(
        self,
        command: str,
        output: Channel[str],
        errors: Channel[Exception],
        producer: asyncio.Task[None],
    ) -> None:
        """Initialize the stream.

        Args:
            command: The command as dispatched.
            output: Channel receiving output lines.
            errors: Channel receiving failures.
            producer: Task feeding both channels; it closes them and
                releases the process or session when it finishes.
        """
        self.command = command
        self.output = output
        self.errors = errors
        self._producer = producer

    @property
    def done(self) -> bool:
        """Whether the producer side has finished."""
        return self._producer.done()

    async def wait(self) -> None:
        """Wait until the producer finished and released its resources."""
        await asyncio.shield(self._producer)

    async def drain(self) -> tuple[list[str], list[Exception]]:
        """Consume both channels until closed.

        Returns:
            Tuple of (output lines, errors).
        """
        lines, errors = await asyncio.gather(self.output.collect(), self.errors.collect())
        return lines, errors

    async def first_error(self) -> Exception | None:
        """Wait for the first error, or None once the error channel closes."""
        async for error in self.errors:
            return error
        return None

    async def aclose(self) -> None:
        """Abandon the stream, stopping the producer and releasing resources.

        Lines already buffered in ``output`` stay readable.
        """
        if not self._producer.done():
            self._producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._producer
        self.output.close()
        self.errors.close()

    async def __aenter__(self) -> CommandStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()


class CommandRunner(ABC):
    """Runs shell commands on some target (local host, remote host, ...).

    Implementations apply privilege elevation to elevated requests and
    merge standard output and standard error into one line stream.
    """

    @abstractmethod
    async def run_command(self, request: ExecutionRequest) -> list[str]:
        """Run a command and return its merged output once it finished.

        Args:
            request: The command to run.

        Returns:
            Output lines, without line terminators.

        Raises:
            CommandError: If the command cannot be started or exits non-zero.
        """
        ...

    @abstractmethod
    async def run_command_async(self, request: ExecutionRequest) -> CommandStream:
        """Start a command and stream its output.

        Returns as soon as the command is running. Only setup failures
        are raised here; everything after that arrives on the stream's
        error channel.

        Args:
            request: The command to run.

        Returns:
            CommandStream for the running command.

        Raises:
            CommandError: If the command cannot be started.
        """
        ...


class PackageManager(ABC):
    """Abstraction over an OS package manager such as apt."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name."""
        ...

    @abstractmethod
    async def list_installed(self) -> list[Package]:
        """List all packages known to the backend."""
        ...

    @abstractmethod
    async def list_upgradable(self) -> list[Package]:
        """List packages that have a newer candidate version."""
        ...

    @abstractmethod
    async def refresh(self, output: Channel[str]) -> None:
        """Refresh package lists, streaming output into ``output``."""
        ...

    @abstractmethod
    async def update_one(self, package: Package, output: Channel[str]) -> None:
        """Update a single package, streaming output into ``output``."""
        ...

    @abstractmethod
    async def update_all(self, output: Channel[str]) -> None:
        """Update every upgradable package, streaming output into ``output``."""
        ...

    @abstractmethod
    async def simulate_update(self, package: Package) -> AsyncIterator[str]:
        """Simulate updating a package and return its output lines."""
        ...
