"""
Channel Buffer
==============

Async bounded queue for one producer output channel.

This module provides the ChannelBuffer class, which acts as the delivery
path between a ChannelDrainer and the pipeline orchestrator.

Design Rules:
    - Fixed maximum size, put() waits when full (back-pressure)
    - Never drops units; ordering is strictly FIFO
    - End of channel is signalled once, optionally with a read error
    - Does NOT process or modify units
"""

import asyncio
import logging
from typing import Generic, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

_END = object()


class ChannelClosedError(RuntimeError):
    """Raised when putting into a buffer that has already been closed."""


class ChannelBuffer(Generic[T]):
    """
    Async bounded FIFO queue between one drainer and one consumer.

    Back-pressure only applies to this path: a full buffer suspends the
    drainer feeding it and nothing else.

    Attributes:
        name: Channel name for logs
        maxsize: Maximum number of units to buffer
        error: Terminal read error, set when the channel closed abnormally

    Example:
        buffer = ChannelBuffer("stdout", maxsize=64)

        # Producer side
        await buffer.put(chunk)
        await buffer.close()

        # Consumer side
        while (chunk := await buffer.get()) is not None:
            handle(chunk)
    """

    def __init__(self, name: str, maxsize: int = 64) -> None:
        """
        Initialize channel buffer.

        Args:
            name: Channel name for logs
            maxsize: Maximum units to buffer. Must be >= 1.
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self.name = name
        self._maxsize = maxsize
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed: bool = False
        self._finished: bool = False
        self._total_put: int = 0
        self.error: Optional[BaseException] = None

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of buffered units."""
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        """Whether the producer side has closed the channel."""
        return self._closed

    @property
    def total_put(self) -> int:
        """Total units ever put into the buffer."""
        return self._total_put

    async def put(self, unit: T) -> None:
        """
        Add a unit, waiting while the buffer is full.

        Raises:
            ChannelClosedError: If the buffer was already closed
        """
        if self._closed:
            raise ChannelClosedError(f"channel {self.name} is closed")

        await self._queue.put(unit)
        self._total_put += 1

    async def close(self, error: Optional[BaseException] = None) -> None:
        """
        Signal end of channel. Only the first call has any effect.

        Waits behind buffered units like put(), so the end marker is
        always delivered after them.

        Args:
            error: Terminal read error, None for a clean end of file
        """
        if self._closed:
            return
        self._closed = True
        self.error = error
        if error is not None:
            logger.warning(f"Channel {self.name} closed with error: {error!r}")
        await self._queue.put(_END)

    async def get(self) -> Optional[T]:
        """
        Get the next unit, waiting until one is available.

        Returns:
            Next unit, or None at end of channel.
        """
        if self._finished:
            return None

        item = await self._queue.get()
        if item is _END:
            self._finished = True
            return None
        return item

    @property
    def finished(self) -> bool:
        """Whether the consumer has seen end of channel."""
        return self._finished

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with name, size, maxsize, total_put, closed
        """
        return {
            "name": self.name,
            "size": self.size,
            "maxsize": self._maxsize,
            "total_put": self._total_put,
            "closed": self._closed,
        }
