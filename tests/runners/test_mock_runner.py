"""Tests for the mock command runner."""

from __future__ import annotations

import pytest

from chisme.core.errors import CommandSpawnError, ExecutionError
from chisme.core.models import ExecutionRequest
from chisme.runners import MockCommandRunner


class TestMockCommandRunner:
    """Tests for MockCommandRunner."""

    @pytest.mark.asyncio
    async def test_run_command_returns_output(self) -> None:
        """Test the canned output is split into lines."""
        runner = MockCommandRunner(output="one\ntwo\n")

        assert await runner.run_command(ExecutionRequest(command="anything")) == ["one", "two"]
        assert runner.commands == ["anything"]

    @pytest.mark.asyncio
    async def test_run_command_raises_first_error(self) -> None:
        """Test run_command raises the first canned error."""
        first = ExecutionError("x", 1)
        runner = MockCommandRunner(errors=[first, ExecutionError("x", 2)])

        with pytest.raises(ExecutionError) as exc_info:
            await runner.run_command(ExecutionRequest(command="x"))

        assert exc_info.value is first

    @pytest.mark.asyncio
    async def test_async_streams_output_then_errors(self) -> None:
        """Test all lines and all errors are delivered."""
        errors = [ExecutionError("x", 1)]
        runner = MockCommandRunner(output="a\n\nb\n", errors=errors)

        stream = await runner.run_command_async(ExecutionRequest(command="x"))
        lines, received = await stream.drain()

        assert lines == ["a", "", "b"]
        assert received == errors

    @pytest.mark.asyncio
    async def test_both_paths_agree(self) -> None:
        """Test buffered and streamed runs return the same lines, blanks included."""
        runner = MockCommandRunner(output="Listing...\n\nvim\n")
        request = ExecutionRequest(command="x")

        buffered = await runner.run_command(request)
        streamed, _ = await (await runner.run_command_async(request)).drain()

        assert buffered == streamed == ["Listing...", "", "vim"]

    @pytest.mark.asyncio
    async def test_setup_error(self) -> None:
        """Test the setup error is raised by both operations."""
        runner = MockCommandRunner(setup_error=CommandSpawnError("x", OSError("nope")))

        with pytest.raises(CommandSpawnError):
            await runner.run_command(ExecutionRequest(command="x"))
        with pytest.raises(CommandSpawnError):
            await runner.run_command_async(ExecutionRequest(command="x"))

    @pytest.mark.asyncio
    async def test_records_elevated_commands(self) -> None:
        """Test elevated requests are recorded after rewriting."""
        runner = MockCommandRunner(askpass_path="/p")

        await runner.run_command(ExecutionRequest(command="apt update", elevated=True))

        assert runner.commands == ["SUDO_ASKPASS=/p sudo -A apt update"]
        assert runner.requests[0].elevated is True
