"""Tests for async channels."""

from __future__ import annotations

import asyncio

import pytest

from chisme.core.channel import DEFAULT_CHANNEL_SIZE, Channel
from chisme.core.errors import ChannelClosedError


class TestChannel:
    """Tests for Channel."""

    def test_default_size(self) -> None:
        """Test the default capacity."""
        assert Channel().maxsize == DEFAULT_CHANNEL_SIZE == 100

    def test_negative_size_rejected(self) -> None:
        """Test a negative capacity is rejected."""
        with pytest.raises(ValueError):
            Channel(maxsize=-1)

    @pytest.mark.asyncio
    async def test_items_delivered_in_order(self) -> None:
        """Test items put before close are all received, in order."""
        channel: Channel[int] = Channel()
        for i in range(5):
            await channel.put(i)
        channel.close()

        assert await channel.collect() == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_put_after_close_raises(self) -> None:
        """Test putting on a closed channel raises ChannelClosedError."""
        channel: Channel[str] = Channel()
        channel.close()

        with pytest.raises(ChannelClosedError):
            await channel.put("late")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        """Test closing twice is allowed."""
        channel: Channel[str] = Channel()
        channel.close()
        channel.close()

        assert channel.closed
        assert await channel.collect() == []

    @pytest.mark.asyncio
    async def test_close_wakes_waiting_consumer(self) -> None:
        """Test a consumer blocked on an empty channel stops on close."""
        channel: Channel[str] = Channel()
        consumer = asyncio.create_task(channel.collect())
        await asyncio.sleep(0)

        channel.close()

        assert await asyncio.wait_for(consumer, timeout=1) == []

    @pytest.mark.asyncio
    async def test_close_while_full(self) -> None:
        """Test closing a full channel keeps every buffered item."""
        channel: Channel[int] = Channel(maxsize=2)
        await channel.put(1)
        await channel.put(2)
        channel.close()

        assert await channel.collect() == [1, 2]

    @pytest.mark.asyncio
    async def test_backpressure(self) -> None:
        """Test put blocks while the channel is full."""
        channel: Channel[int] = Channel(maxsize=1)
        await channel.put(1)

        blocked = asyncio.create_task(channel.put(2))
        await asyncio.sleep(0.01)
        assert not blocked.done()

        assert await channel.get() == 1
        await asyncio.wait_for(blocked, timeout=1)
        assert channel.qsize() == 1

    @pytest.mark.asyncio
    async def test_unbounded(self) -> None:
        """Test maxsize 0 never blocks the producer."""
        channel: Channel[int] = Channel(maxsize=0)
        for i in range(1000):
            await channel.put(i)
        channel.close()

        assert len(await channel.collect()) == 1000

    @pytest.mark.asyncio
    async def test_async_iteration(self) -> None:
        """Test iterating while a producer is running."""
        channel: Channel[str] = Channel(maxsize=2)

        async def produce() -> None:
            for line in ("a", "b", "c", "d"):
                await channel.put(line)
            channel.close()

        producer = asyncio.create_task(produce())
        received = [line async for line in channel]
        await producer

        assert received == ["a", "b", "c", "d"]
