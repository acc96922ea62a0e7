"""Command runner for the local host.

Commands run through ``bash -c`` as asyncio subprocesses. The buffered
variant merges stderr into stdout at the pipe level; the streaming
variant reads both pipes concurrently into one output channel.

Every command leads its own process group, so abandoning a streamed
command stops the whole pipeline and not only the shell.
"""

from __future__ import annotations

import asyncio
import os
import signal

import structlog

from chisme.core.channel import DEFAULT_CHANNEL_SIZE, Channel
from chisme.core.elevation import elevate_request
from chisme.core.errors import CommandSpawnError, ExecutionError
from chisme.core.interfaces import CommandRunner, CommandStream
from chisme.core.models import ExecutionRequest

from .base import LINE_LIMIT, pump_lines, split_output

logger = structlog.get_logger(__name__)

DEFAULT_SHELL = "bash"


class LocalCommandRunner(CommandRunner):
    """Runs commands on the local host through a shell."""

    def __init__(
        self,
        shell: str = DEFAULT_SHELL,
        askpass_path: str | None = None,
        buffer_size: int = DEFAULT_CHANNEL_SIZE,
    ) -> None:
        """Initialize the local runner.

        Args:
            shell: Shell used as ``<shell> -c <command>``.
            askpass_path: Ask-pass helper for elevated commands. When
                None, elevated commands read the sudo password from stdin.
            buffer_size: Capacity of the output channel of streamed commands.
        """
        self.shell = shell
        self.askpass_path = askpass_path
        self.buffer_size = buffer_size

    async def _spawn(
        self, command: str, *, stdin: bool, merge_stderr: bool
    ) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                self.shell,
                "-c",
                command,
                stdin=asyncio.subprocess.PIPE if stdin else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE,
                limit=LINE_LIMIT,
                start_new_session=True,
            )
        except OSError as e:
            logger.error("command_spawn_failed", command=command, error=str(e))
            raise CommandSpawnError(command, e) from e

    async def run_command(self, request: ExecutionRequest) -> list[str]:
        """Run a command and return its merged output.

        Raises:
            CommandSpawnError: If the shell cannot be started.
            ExecutionError: If the command exits non-zero. The output
                gathered so far is available as ``error.output``.
        """
        request = elevate_request(request, self.askpass_path)
        data = request.read_input()
        log = logger.bind(command=request.command)
        log.debug("running_command")

        process = await self._spawn(request.command, stdin=data is not None, merge_stderr=True)
        stdout, _ = await process.communicate(data)
        lines = split_output(stdout)

        log.debug("command_completed", return_code=process.returncode, lines=len(lines))

        if process.returncode != 0:
            raise ExecutionError(request.command, process.returncode, output=lines)
        return lines

    async def run_command_async(self, request: ExecutionRequest) -> CommandStream:
        """Start a command and stream its merged output.

        Raises:
            CommandSpawnError: If the shell cannot be started.
        """
        request = elevate_request(request, self.askpass_path)
        data = request.read_input()
        log = logger.bind(command=request.command)
        log.debug("running_command_streaming")

        process = await self._spawn(request.command, stdin=data is not None, merge_stderr=False)

        output: Channel[str] = Channel(maxsize=self.buffer_size)
        errors: Channel[Exception] = Channel(maxsize=0)
        producer = asyncio.create_task(
            self._produce(request.command, process, data, output, errors),
            name=f"local-command:{request.command}",
        )
        return CommandStream(request.command, output, errors, producer)

    async def _produce(
        self,
        command: str,
        process: asyncio.subprocess.Process,
        data: bytes | None,
        output: Channel[str],
        errors: Channel[Exception],
    ) -> None:
        """Pump both pipes into ``output``, then report the exit status.

        If the task is cancelled, the process group is killed and its
        pipes are drained before the channels are closed.
        """
        log = logger.bind(command=command, pid=process.pid)
        readers = [
            asyncio.create_task(_pump(process, process.stdout, "stdout", output, errors)),
            asyncio.create_task(_pump(process, process.stderr, "stderr", output, errors)),
        ]
        finished = False
        try:
            if data is not None and process.stdin is not None:
                await _feed_stdin(process.stdin, data)

            await asyncio.gather(*readers)
            output.close()

            return_code = await process.wait()
            finished = True
            log.debug("command_completed", return_code=return_code)
            if return_code != 0:
                await errors.put(ExecutionError(command, return_code))
        finally:
            for reader in readers:
                reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)
            if not finished:
                log.info("command_abandoned")
                _kill_process_group(process)
                await _discard(process.stdout)
                await _discard(process.stderr)
                await process.wait()
            output.close()
            errors.close()


async def _pump(
    process: asyncio.subprocess.Process,
    pipe: asyncio.StreamReader | None,
    stream_name: str,
    output: Channel[str],
    errors: Channel[Exception],
) -> None:
    """Pump one pipe; if it cannot be read to EOF, stop the command."""
    if not await pump_lines(pipe, stream_name, output, errors):
        _kill_process_group(process)
        await _discard(pipe)


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill the command together with every process it started."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError as e:
        # e.g. a root-owned sudo child after the shell already exited
        logger.warning("command_kill_denied", pid=process.pid, error=str(e))


async def _discard(pipe: asyncio.StreamReader | None) -> None:
    """Read a pipe to EOF so the process can be reaped."""
    if pipe is None:
        return
    try:
        while await pipe.read(64 * 1024):
            pass
    except Exception as e:
        # Read failures were already reported by the pump.
        logger.debug("pipe_discard_failed", error=str(e))


async def _feed_stdin(stdin: asyncio.StreamWriter, data: bytes) -> None:
    """Write the request input and close stdin so the command sees EOF."""
    try:
        stdin.write(data)
        await stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # The command exited without reading its input.
        logger.debug("stdin_closed_early")
    finally:
        stdin.close()
