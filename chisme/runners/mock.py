"""Mock command runner returning canned output.

Used by tests and for exercising the package backends without touching
a real package manager.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from chisme.core.channel import Channel
from chisme.core.elevation import elevate_request
from chisme.core.interfaces import CommandRunner, CommandStream

from .base import split_output

if TYPE_CHECKING:
    from chisme.core.models import ExecutionRequest


class MockCommandRunner(CommandRunner):
    """Command runner that replays predefined output and errors.

    Attributes:
        output: Text returned for every command.
        errors: Errors to report. run_command raises the first one;
            run_command_async delivers all of them on the error channel
            after the output was streamed.
        setup_error: Raised by both operations before anything runs.
        askpass_path: Ask-pass helper used for elevated requests.
        requests: Every request received, after elevation.
    """

    def __init__(
        self,
        output: str = "",
        errors: list[Exception] | None = None,
        *,
        setup_error: Exception | None = None,
        askpass_path: str | None = None,
    ) -> None:
        self.output = output
        self.errors = list(errors or [])
        self.setup_error = setup_error
        self.askpass_path = askpass_path
        self.requests: list[ExecutionRequest] = []

    @property
    def commands(self) -> list[str]:
        """Commands received so far, after elevation."""
        return [request.command for request in self.requests]

    def _accept(self, request: ExecutionRequest) -> ExecutionRequest:
        request = elevate_request(request, self.askpass_path)
        self.requests.append(request)
        if self.setup_error is not None:
            raise self.setup_error
        return request

    async def run_command(self, request: ExecutionRequest) -> list[str]:
        """Return the canned output, or raise the first canned error."""
        self._accept(request)
        if self.errors:
            raise self.errors[0]
        return split_output(self.output)

    async def run_command_async(self, request: ExecutionRequest) -> CommandStream:
        """Stream the canned output lines, then the canned errors."""
        request = self._accept(request)
        output: Channel[str] = Channel()
        errors: Channel[Exception] = Channel(maxsize=0)

        async def produce() -> None:
            try:
                for line in split_output(self.output):
                    await output.put(line)
                output.close()
                for error in self.errors:
                    await errors.put(error)
            finally:
                output.close()
                errors.close()

        producer = asyncio.create_task(produce())
        return CommandStream(request.command, output, errors, producer)
