"""Tests for the line reading helpers shared by the runners."""

from __future__ import annotations

import asyncio

import pytest
from structlog.testing import capture_logs

from chisme.core.channel import Channel
from chisme.core.errors import StreamReadError
from chisme.runners.base import pump_lines, read_line, split_output


def make_reader(data: bytes, limit: int = 8) -> asyncio.StreamReader:
    reader = asyncio.StreamReader(limit=limit)
    reader.feed_data(data)
    reader.feed_eof()
    return reader


class FailingReader:
    """Pipe whose every read fails."""

    async def readuntil(self, separator: bytes = b"\n") -> bytes:
        raise OSError("pipe broken")

    async def read(self, n: int = -1) -> bytes:
        raise OSError("pipe broken")


class TestSplitOutput:
    """Tests for split_output."""

    def test_trailing_newline(self) -> None:
        """Test a trailing newline adds no empty line but inner blanks stay."""
        assert split_output(b"a\n\nb\r\n") == ["a", "", "b"]

    def test_empty(self) -> None:
        """Test no data gives no lines."""
        assert split_output(b"") == []
        assert split_output(None) == []


class TestReadLine:
    """Tests for read_line."""

    @pytest.mark.asyncio
    async def test_overlong_line_truncated(self) -> None:
        """Test a line beyond the reader limit is cut and the next line is intact."""
        reader = make_reader(b"0123456789abcdef\nok\n")

        assert await read_line(reader, limit=4) == (b"0123\n", True)
        assert await read_line(reader, limit=4) == (b"ok\n", False)
        assert await read_line(reader, limit=4) == (b"", False)

    @pytest.mark.asyncio
    async def test_overlong_line_at_eof(self) -> None:
        """Test an unterminated overlong last line is still returned."""
        reader = make_reader(b"x" * 20)

        assert await read_line(reader, limit=4) == (b"xxxx", True)
        assert await read_line(reader, limit=4) == (b"", False)

    @pytest.mark.asyncio
    async def test_unterminated_last_line(self) -> None:
        """Test a short last line without newline is returned as is."""
        reader = make_reader(b"tail")

        assert await read_line(reader) == (b"tail", False)


class TestPumpLines:
    """Tests for pump_lines."""

    @pytest.mark.asyncio
    async def test_keeps_reading_after_long_line(self) -> None:
        """Test the pump reaches EOF past an overlong line and logs the truncation."""
        output: Channel[str] = Channel()
        errors: Channel[Exception] = Channel(maxsize=0)
        reader = make_reader(b"before\n" + b"y" * 100 + b"\nafter\n")

        with capture_logs() as logs:
            assert await pump_lines(reader, "stdout", output, errors, limit=10) is True
        output.close()
        errors.close()

        assert await output.collect() == ["before", "y" * 10, "after"]
        assert await errors.collect() == []
        assert [log["event"] for log in logs] == ["long_lines_truncated"]

    @pytest.mark.asyncio
    async def test_read_failure_reported_once(self) -> None:
        """Test a failing pipe yields one StreamReadError and stops the pump."""
        output: Channel[str] = Channel()
        errors: Channel[Exception] = Channel(maxsize=0)

        assert await pump_lines(FailingReader(), "stderr", output, errors) is False
        errors.close()

        (error,) = await errors.collect()
        assert isinstance(error, StreamReadError)
        assert "stderr" in str(error)

    @pytest.mark.asyncio
    async def test_missing_pipe(self) -> None:
        """Test an unconnected pipe counts as drained."""
        output: Channel[str] = Channel()
        errors: Channel[Exception] = Channel(maxsize=0)

        assert await pump_lines(None, "stdout", output, errors) is True
