"""
Line Sinks
==========

Append-only destinations for decoded records and producer diagnostics.

Every sink has a single owner task, which keeps each written line
intact. Writes run in a worker thread so a blocked pipe (a slow
downstream reader on stdout, a stalled terminal on stderr) suspends
only the task that owns the sink, never the event loop.

Sinks:
    - TextStreamSink: one line per unit to a text stream
    - NullSink: counts and discards units
"""

import asyncio
import logging
from typing import Optional, TextIO


logger = logging.getLogger(__name__)


class TextStreamSink:
    """
    Writes one line per unit to a text stream, flushing each line.

    Attributes:
        name: Sink name for logs
        marker: Text prefixed to every line (e.g. "stellar-core stderr: ")
        best_effort: Drop lines after the first write failure instead of
            raising
        lines_written: Number of lines successfully written

    Example:
        sink = TextStreamSink(sys.stdout, name="output")
        await sink.put('{"type":"v1"}')
        await sink.close()
    """

    def __init__(
        self,
        stream: TextIO,
        name: str,
        marker: str = "",
        best_effort: bool = False,
    ) -> None:
        self.stream = stream
        self.name = name
        self.marker = marker
        self.best_effort = best_effort
        self.lines_written: int = 0
        self.lines_dropped: int = 0
        self._broken: bool = False

    @property
    def broken(self) -> bool:
        """Whether a best-effort sink has given up after a write failure."""
        return self._broken

    def _write(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    async def put(self, line: str) -> None:
        """
        Write one line.

        Raises:
            OSError: On write failure, unless best_effort is set
        """
        if self._broken:
            self.lines_dropped += 1
            return

        try:
            await asyncio.to_thread(self._write, f"{self.marker}{line}\n")
        except (OSError, ValueError) as e:
            if not self.best_effort:
                raise
            self._broken = True
            self.lines_dropped += 1
            logger.warning(f"Sink {self.name} failed, dropping further lines: {e}")
            return

        self.lines_written += 1

    async def close(self, error: Optional[BaseException] = None) -> None:
        """Flush the stream. The stream itself stays open."""
        if self._broken:
            return
        try:
            await asyncio.to_thread(self.stream.flush)
        except (OSError, ValueError) as e:
            if not self.best_effort:
                raise
            logger.warning(f"Sink {self.name} flush failed: {e}")


class NullSink:
    """Discards every unit; used when producer diagnostics are not forwarded."""

    def __init__(self, name: str = "null") -> None:
        self.name = name
        self.lines_dropped: int = 0

    async def put(self, line: str) -> None:
        self.lines_dropped += 1

    async def close(self, error: Optional[BaseException] = None) -> None:
        pass
