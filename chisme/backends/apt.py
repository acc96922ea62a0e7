"""APT package manager backend.

Maps the package operations onto ``apt`` command lines and runs them
through a command runner, so the same backend works locally and over
SSH.

Official documentation:
- apt command: https://manpages.debian.org/apt
- apt-get man page: https://manpages.debian.org/bookworm/apt/apt-get.8.en.html

Note: ``apt list`` warns that its CLI is not stable ("WARNING: apt does
not have a stable CLI interface"); the parser skips that banner.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from chisme.core.errors import BackendError, ChannelClosedError, CommandError
from chisme.core.interfaces import PackageManager
from chisme.core.models import ExecutionRequest

from .parser import parse_output, parse_package_line

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from chisme.core.channel import Channel
    from chisme.core.interfaces import CommandRunner, CommandStream
    from chisme.core.models import Package

logger = structlog.get_logger(__name__)

DEFAULT_CLI = "apt"


class AptBackend(PackageManager):
    """Backend for APT (Debian/Ubuntu).

    Listing operations buffer the command output and parse it. Update
    operations stream output lines into a caller-supplied channel.
    """

    def __init__(
        self,
        runner: CommandRunner,
        cli: str = DEFAULT_CLI,
        *,
        elevate: bool = False,
    ) -> None:
        """Initialize the backend.

        Args:
            runner: Runner executing the apt commands.
            cli: apt executable name or path.
            elevate: Run refresh and update commands through sudo.
        """
        self.runner = runner
        self.cli = cli
        self.elevate = elevate

    @property
    def name(self) -> str:
        """Return the backend name."""
        return "apt"

    # Command templates

    def list_installed_command(self) -> str:
        return f"{self.cli} list"

    def list_upgradable_command(self) -> str:
        return f"{self.cli} list --upgradable"

    def refresh_command(self) -> str:
        return f"{self.cli} update"

    def update_one_command(self, package: Package) -> str:
        # TODO: drop --simulate once update_one is allowed to modify the system
        return f"{self.cli} install --only-upgrade --simulate {package.name}"

    def update_all_command(self) -> str:
        return f"{self.cli} upgrade -y"

    def simulate_update_command(self, package: Package) -> str:
        return f"{self.cli} install --only-upgrade --simulate {package.name}"

    # Listing

    async def list_installed(self) -> list[Package]:
        """List all packages apt knows about.

        Raises:
            BackendError: If the command fails.
            ParseError: On the first malformed output line.
        """
        return await self._list(self.list_installed_command())

    async def list_upgradable(self) -> list[Package]:
        """List packages with a newer candidate version.

        Raises:
            BackendError: If the command fails.
            ParseError: On the first malformed output line.
        """
        return await self._list(self.list_upgradable_command())

    async def _list(self, command: str) -> list[Package]:
        log = logger.bind(backend=self.name, command=command)
        try:
            lines = await self.runner.run_command(ExecutionRequest(command=command))
        except CommandError as e:
            log.error("list_command_failed", error=str(e))
            raise BackendError(f"failed to execute command: {command}, err: {e}") from e

        packages = parse_output(lines, parse_package_line)
        log.debug("packages_listed", count=len(packages), lines=len(lines))
        return packages

    # Updates

    async def refresh(self, output: Channel[str]) -> None:
        """Refresh the package lists (``apt update``)."""
        await self._exec(self.refresh_command(), output)

    async def update_one(self, package: Package, output: Channel[str]) -> None:
        """Update a single package."""
        await self._exec(self.update_one_command(package), output)

    async def update_all(self, output: Channel[str]) -> None:
        """Upgrade every upgradable package (``apt upgrade -y``)."""
        await self._exec(self.update_all_command(), output)

    async def _exec(self, command: str, output: Channel[str]) -> None:
        """Run a command, forwarding its output lines into ``output``.

        ``output`` is closed when this returns, whether or not the
        command succeeded. Every line the command produced before a
        failure is forwarded before the error is raised.

        Raises:
            BackendError: If the command cannot be started.
            CommandError: The first error the running command reported.
        """
        log = logger.bind(backend=self.name, command=command)
        try:
            try:
                stream = await self.runner.run_command_async(
                    ExecutionRequest(command=command, elevated=self.elevate)
                )
            except CommandError as e:
                log.error("command_start_failed", error=str(e))
                raise BackendError(f"failed to execute command: {command}, err: {e}") from e

            async with stream:
                forwarder = asyncio.create_task(_forward(stream.output, output))
                error = await stream.first_error()
                if error is not None:
                    # Stop the command; lines it already produced stay buffered.
                    await stream.aclose()
                await forwarder
        finally:
            output.close()

        if error is not None:
            log.error("command_failed", error=str(error))
            raise error
        log.info("command_succeeded")

    # Simulation

    async def simulate_update(self, package: Package) -> AsyncIterator[str]:
        """Simulate updating a package.

        Errors reported by the running command are logged, not raised.

        Returns:
            Async iterator over the simulation output lines.

        Raises:
            BackendError: If the command cannot be started.
        """
        command = self.simulate_update_command(package)
        try:
            stream = await self.runner.run_command_async(ExecutionRequest(command=command))
        except CommandError as e:
            raise BackendError(f"failed to execute command: {command}, err: {e}") from e
        return _lines_logging_errors(stream)


async def _forward(source: Channel[str], target: Channel[str]) -> None:
    """Copy lines from the command stream into the caller's channel."""
    dropped = 0
    async for line in source:
        try:
            await target.put(line)
        except ChannelClosedError:
            # The caller stopped listening; keep draining so the command is not blocked.
            dropped += 1
    if dropped:
        logger.warning("output_lines_dropped", count=dropped)


async def _lines_logging_errors(stream: CommandStream) -> AsyncIterator[str]:
    async def log_errors() -> None:
        async for error in stream.errors:
            logger.warning("simulation_error", command=stream.command, error=str(error))

    error_logger = asyncio.create_task(log_errors())
    try:
        async for line in stream.output:
            yield line
        await stream.wait()
    finally:
        await stream.aclose()
        await error_logger
