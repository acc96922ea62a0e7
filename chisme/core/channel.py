"""Bounded, closable async channels.

A :class:`Channel` carries items from one producer to one consumer.
``put`` blocks while the channel is full, which throttles the producer
to the speed of the consumer. ``close`` marks the end of the stream;
consumers see every item put before the close and then stop.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Generic, TypeVar

from .errors import ChannelClosedError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

T = TypeVar("T")

# Queue size for command output channels
DEFAULT_CHANNEL_SIZE = 100

_CLOSED = object()


class Channel(Generic[T]):
    """Async single-producer/single-consumer channel.

    Attributes:
        maxsize: Maximum number of buffered items, 0 for unbounded.
        closed: Whether close() has been called.
    """

    def __init__(self, maxsize: int = DEFAULT_CHANNEL_SIZE) -> None:
        """Initialize the channel.

        Args:
            maxsize: Maximum buffered items (default: 100). 0 means unbounded.
        """
        if maxsize < 0:
            raise ValueError(f"maxsize must be >= 0, got {maxsize}")
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._maxsize = maxsize
        self._closed = False

    @property
    def maxsize(self) -> int:
        """Maximum number of buffered items."""
        return self._maxsize

    @property
    def closed(self) -> bool:
        """Whether the channel has been closed."""
        return self._closed

    def qsize(self) -> int:
        """Return the number of buffered items."""
        return self._queue.qsize()

    async def put(self, item: T) -> None:
        """Put an item, waiting for free space if the channel is full.

        Raises:
            ChannelClosedError: If the channel is closed.
        """
        if self._closed:
            raise ChannelClosedError("put on closed channel")
        await self._queue.put(item)

    def close(self) -> None:
        """Signal that no more items will be put.

        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True
        # A full queue has no waiting consumer; it notices the close once drained.
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    async def get(self) -> T:
        """Get the next item.

        Raises:
            StopAsyncIteration: If the channel is closed and drained.
        """
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    def __aiter__(self) -> AsyncIterator[T]:
        """Iterate over items until the channel is closed and drained."""
        return self

    async def __anext__(self) -> T:
        """Get the next item from the channel."""
        return await self.get()

    async def collect(self) -> list[T]:
        """Consume the channel to the end and return every item."""
        return [item async for item in self]
