"""Helpers shared by the command runner implementations."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol

import structlog

from chisme.core.errors import StreamReadError

if TYPE_CHECKING:
    from chisme.core.channel import Channel

logger = structlog.get_logger(__name__)

# Longest output line a reader accepts (asyncio's default is 64 KiB)
LINE_LIMIT = 1024 * 1024


class LineReader(Protocol):
    """A pipe with asyncio StreamReader style ``readuntil`` and ``read``."""

    async def readuntil(self, separator: bytes = ...) -> bytes: ...

    async def read(self, n: int = ...) -> bytes: ...


def decode_line(line: bytes) -> str:
    """Decode one raw output line and strip its terminator."""
    return line.decode("utf-8", errors="replace").rstrip("\r\n")


def split_output(data: bytes | str | None) -> list[str]:
    """Split buffered command output into lines.

    A trailing newline does not produce an empty last line, and Windows
    line endings are stripped.
    """
    if not data:
        return []
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


async def read_line(reader: LineReader, limit: int = LINE_LIMIT) -> tuple[bytes, bool]:
    """Read one line, truncating it to ``limit`` bytes if it is longer.

    The rest of an overlong line is read and discarded, so the pipe keeps
    flowing and the next call starts at the following line.

    Returns:
        Tuple of (line, truncated). The line keeps its newline and is
        empty at EOF.
    """
    head = b""
    truncated = False
    while True:
        done = True
        try:
            chunk = await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            chunk = e.partial
        except asyncio.LimitOverrunError as e:
            chunk = await reader.read(e.consumed)
            done = False

        body = chunk.removesuffix(b"\n")
        room = max(limit - len(head), 0)
        if len(body) > room:
            truncated = True
        head += body[:room]
        if done:
            return head + chunk[len(body) :], truncated


async def pump_lines(
    reader: LineReader | None,
    stream_name: str,
    output: Channel[str],
    errors: Channel[Exception],
    limit: int = LINE_LIMIT,
) -> bool:
    """Forward lines from a pipe into the output channel until EOF.

    Lines longer than ``limit`` bytes are truncated. A failing read is
    reported on the error channel and ends the pump; the other pipe of
    the same command keeps flowing.

    Args:
        reader: The pipe to read, or None if it is not connected.
        stream_name: "stdout" or "stderr", used in errors and logs.
        output: Channel receiving decoded lines.
        errors: Channel receiving read failures.
        limit: Longest line forwarded, in bytes.

    Returns:
        True if the pipe was read to EOF, False if a read failed.
    """
    if reader is None:
        return True

    truncated_lines = 0
    while True:
        try:
            line, truncated = await read_line(reader, limit)
        except Exception as e:
            logger.warning("stream_read_error", stream=stream_name, error=str(e))
            await errors.put(StreamReadError(stream_name, e))
            return False

        if not line:
            if truncated_lines:
                logger.warning(
                    "long_lines_truncated",
                    stream=stream_name,
                    lines=truncated_lines,
                    limit=limit,
                )
            return True

        if truncated:
            truncated_lines += 1
        await output.put(decode_line(line))
