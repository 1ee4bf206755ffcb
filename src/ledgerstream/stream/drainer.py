"""
Channel Drainer
===============

Continuous reader for one producer output channel.

This module provides the ChannelDrainer class which:
    - Reads lines (diagnostics, base64 frames) or raw chunks (binary frames)
    - Forwards each unit to exactly one sink, in order
    - Closes the sink at end of file
    - Forwards a non-EOF read error once as the terminal signal, then stops

Design Rules:
    - One drainer per channel, each in its own asyncio task
    - Waiting on a slow sink only stalls this drainer's own source
    - Does NOT interpret the data it forwards
    - Exposes metrics for health monitoring
"""

import asyncio
import logging
from enum import Enum
from typing import Optional, Protocol, Union


logger = logging.getLogger(__name__)


class DrainMode(str, Enum):
    """Unit of forwarding for a drainer."""

    LINES = "lines"
    CHUNKS = "chunks"


class ChannelReadError(Exception):
    """
    Raised (and forwarded to the sink) when a channel fails before EOF.

    Attributes:
        channel: Name of the failed channel
    """

    def __init__(self, channel: str, cause: BaseException) -> None:
        super().__init__(f"read from {channel} failed: {cause!r}")
        self.channel = channel
        self.__cause__ = cause


class ChannelSink(Protocol):
    """Anything a drainer can forward units to."""

    async def put(self, unit) -> None:
        ...

    async def close(self, error: Optional[BaseException] = None) -> None:
        ...


class ChannelDrainerMetrics:
    """Metrics for ChannelDrainer observability."""

    __slots__ = (
        "units_forwarded",
        "bytes_read",
        "lines_dropped",
        "error",
    )

    def __init__(self) -> None:
        self.units_forwarded: int = 0
        self.bytes_read: int = 0
        self.lines_dropped: int = 0
        self.error: Optional[str] = None

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "units_forwarded": self.units_forwarded,
            "bytes_read": self.bytes_read,
            "lines_dropped": self.lines_dropped,
            "error": self.error,
        }


class ChannelDrainer:
    """
    Forwards one asyncio stream to one sink until end of file.

    Attributes:
        name: Channel name ("stdout", "stderr")
        source: Stream to read from, owned exclusively by this drainer
        sink: Destination for every unit read
        mode: LINES (str units, newline stripped) or CHUNKS (bytes units)
        metrics: Operational metrics

    Example:
        drainer = ChannelDrainer("stderr", handle.take_stderr(), log_sink,
                                 mode=DrainMode.LINES)
        task = asyncio.create_task(drainer.run(), name="drain_stderr")
    """

    def __init__(
        self,
        name: str,
        source: asyncio.StreamReader,
        sink: ChannelSink,
        mode: DrainMode = DrainMode.CHUNKS,
        chunk_size: int = 65536,
    ) -> None:
        """
        Initialize channel drainer.

        Args:
            name: Channel name for logs and errors
            source: Stream to drain
            sink: Destination for forwarded units
            mode: Forwarding unit
            chunk_size: Maximum bytes per chunk in CHUNKS mode
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        self.name = name
        self.source = source
        self.sink = sink
        self.mode = mode
        self.chunk_size = chunk_size
        self.metrics = ChannelDrainerMetrics()

    async def run(self) -> None:
        """
        Drain the source until end of file or a read error.

        The sink is always closed exactly once, with the read error if
        there was one.
        """
        logger.debug(f"Drainer {self.name} started ({self.mode.value})")
        error: Optional[ChannelReadError] = None

        while True:
            try:
                unit = await self._read_unit()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = ChannelReadError(self.name, e)
                self.metrics.error = str(error)
                logger.error(f"Drainer {self.name} stopped: {error}")
                break

            if unit is None:
                break

            await self.sink.put(unit)
            self.metrics.units_forwarded += 1

        await self.sink.close(error)
        logger.debug(
            f"Drainer {self.name} finished: "
            f"{self.metrics.units_forwarded} unit(s), "
            f"{self.metrics.bytes_read} byte(s)"
        )

    async def _read_unit(self) -> Optional[Union[str, bytes]]:
        """Read the next unit, or None at end of file."""
        if self.mode is DrainMode.CHUNKS:
            chunk = await self.source.read(self.chunk_size)
            if not chunk:
                return None
            self.metrics.bytes_read += len(chunk)
            return chunk

        while True:
            try:
                raw = await self.source.readline()
            except ValueError as e:
                # Over-long line: the stream discards it and stays usable.
                self.metrics.lines_dropped += 1
                logger.warning(f"Drainer {self.name} dropped an over-long line: {e}")
                continue

            if not raw:
                return None
            self.metrics.bytes_read += len(raw)
            return raw.rstrip(b"\r\n").decode("utf-8", errors="replace")
