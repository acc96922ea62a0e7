"""Command runner for remote hosts reached over SSH.

Every invocation opens its own asyncssh connection, runs exactly one
command on it and closes it again; nothing is pooled or reused, so
concurrent invocations never share a connection.

Sources consulted:
- AsyncSSH ReadTheDocs: https://asyncssh.readthedocs.io/en/latest/
- GitHub Examples: https://github.com/ronf/asyncssh/tree/develop/examples

Security note: when ``known_hosts`` is not configured, host keys are not
verified and any key the server presents is accepted. This keeps first
connections frictionless but leaves the session open to
man-in-the-middle attacks. Configure ``known_hosts`` wherever the
network is not trusted.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import asyncssh
import structlog

from chisme.core.channel import DEFAULT_CHANNEL_SIZE, Channel
from chisme.core.elevation import elevate_request
from chisme.core.errors import ConnectionError, ExecutionError, SessionError
from chisme.core.interfaces import CommandRunner, CommandStream

from .base import pump_lines, split_output

if TYPE_CHECKING:
    from chisme.core.models import ExecutionRequest, RemoteConnectionConfig

logger = structlog.get_logger(__name__)


class RemoteCommandRunner(CommandRunner):
    """Runs commands on a remote host over SSH.

    The config is only read, so one runner can serve any number of
    concurrent invocations.
    """

    def __init__(
        self,
        config: RemoteConnectionConfig,
        askpass_path: str | None = None,
        buffer_size: int = DEFAULT_CHANNEL_SIZE,
    ) -> None:
        """Initialize the remote runner.

        Args:
            config: Validated connection settings.
            askpass_path: Ask-pass helper path on the remote host. When
                None, elevated commands read the sudo password from stdin.
            buffer_size: Capacity of the output channel of streamed commands.
        """
        self.config = config
        self.askpass_path = askpass_path
        self.buffer_size = buffer_size

    async def _connect(self) -> asyncssh.SSHClientConnection:
        """Open an authenticated connection to the configured host.

        Raises:
            ConnectionError: If the key cannot be loaded, the connection
                times out, or authentication fails.
        """
        config = self.config
        log = logger.bind(host=config.host, port=config.port, user=config.user)

        try:
            client_key = asyncssh.import_private_key(
                config.private_key, config.private_key_password
            )
        except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError) as e:
            raise ConnectionError(config.host, config.port, f"invalid private key: {e}") from e

        if config.known_hosts is None:
            log.warning(
                "host_key_verification_disabled",
                hint="set known_hosts to verify the server identity",
            )

        log.info("connecting_to_remote")
        try:
            conn = await asyncio.wait_for(
                asyncssh.connect(
                    config.host,
                    port=config.port,
                    username=config.user,
                    client_keys=[client_key],
                    known_hosts=config.known_hosts,
                    agent_path=None,
                ),
                timeout=config.connect_timeout,
            )
        except TimeoutError as e:
            raise ConnectionError(
                config.host,
                config.port,
                f"timed out after {config.connect_timeout} seconds",
            ) from e
        except (OSError, asyncssh.Error) as e:
            log.error("remote_connect_failed", error=str(e))
            raise ConnectionError(config.host, config.port, e) from e

        log.info("connected_to_remote")
        return conn

    async def _open_session(
        self,
        conn: asyncssh.SSHClientConnection,
        command: str,
        *,
        merge_stderr: bool,
    ) -> asyncssh.SSHClientProcess[bytes]:
        """Open a session running ``command`` on an established connection."""
        try:
            if merge_stderr:
                return await conn.create_process(command, stderr=asyncssh.STDOUT, encoding=None)
            return await conn.create_process(command, encoding=None)
        except (OSError, asyncssh.Error) as e:
            logger.error("remote_session_failed", host=self.config.host, error=str(e))
            raise SessionError(f"Failed to create session on {self.config.address}: {e}") from e

    async def run_command(self, request: ExecutionRequest) -> list[str]:
        """Run a command remotely and return its merged output.

        Raises:
            ConnectionError: If connecting fails.
            SessionError: If the session cannot be opened.
            ExecutionError: If the command exits non-zero or the
                connection drops while it runs.
        """
        request = elevate_request(request, self.askpass_path)
        data = request.read_input()
        log = logger.bind(host=self.config.host, command=request.command)

        conn = await self._connect()
        try:
            process = await self._open_session(conn, request.command, merge_stderr=True)
            log.debug("running_remote_command")
            try:
                async with process:
                    stdout, _ = await process.communicate(data)
                    completed = await process.wait()
            except (OSError, asyncssh.Error) as e:
                raise ExecutionError(request.command, None, reason=str(e)) from e
        finally:
            await _close_connection(conn, self.config.host)

        lines = split_output(stdout)
        log.debug("remote_command_completed", return_code=completed.returncode, lines=len(lines))
        if completed.returncode != 0:
            raise ExecutionError(request.command, completed.returncode, output=lines)
        return lines

    async def run_command_async(self, request: ExecutionRequest) -> CommandStream:
        """Start a command remotely and stream its merged output.

        Raises:
            ConnectionError: If connecting fails.
            SessionError: If the session cannot be opened.
        """
        request = elevate_request(request, self.askpass_path)
        data = request.read_input()

        conn = await self._connect()
        try:
            process = await self._open_session(conn, request.command, merge_stderr=False)
        except SessionError:
            await _close_connection(conn, self.config.host)
            raise
        logger.debug(
            "running_remote_command_streaming", host=self.config.host, command=request.command
        )

        output: Channel[str] = Channel(maxsize=self.buffer_size)
        errors: Channel[Exception] = Channel(maxsize=0)
        producer = asyncio.create_task(
            self._produce(request.command, conn, process, data, output, errors),
            name=f"remote-command:{self.config.host}:{request.command}",
        )
        return CommandStream(request.command, output, errors, producer)

    async def _produce(
        self,
        command: str,
        conn: asyncssh.SSHClientConnection,
        process: asyncssh.SSHClientProcess[bytes],
        data: bytes | None,
        output: Channel[str],
        errors: Channel[Exception],
    ) -> None:
        """Pump the session pipes into ``output``, then report the exit status.

        The session and connection are closed on every exit path,
        including cancellation through CommandStream.aclose().
        """
        log = logger.bind(host=self.config.host, command=command)
        readers = [
            asyncio.create_task(pump_lines(process.stdout, "stdout", output, errors)),
            asyncio.create_task(pump_lines(process.stderr, "stderr", output, errors)),
        ]
        try:
            try:
                if data:
                    process.stdin.write(data)
                process.stdin.write_eof()

                await asyncio.gather(*readers)
                output.close()

                completed = await process.wait()
            except (OSError, asyncssh.Error) as e:
                log.warning("remote_command_failed", error=str(e))
                await errors.put(ExecutionError(command, None, reason=str(e)))
                return

            log.debug("remote_command_completed", return_code=completed.returncode)
            if completed.returncode != 0:
                await errors.put(ExecutionError(command, completed.returncode))
        finally:
            for reader in readers:
                reader.cancel()
            process.close()
            output.close()
            errors.close()
            await _close_connection(conn, self.config.host)


async def _close_connection(conn: asyncssh.SSHClientConnection, host: str) -> None:
    conn.close()
    await conn.wait_closed()
    logger.info("disconnected_from_remote", host=host)
