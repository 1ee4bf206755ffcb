"""
Byte Cursor
===========

Growable input buffer over the binary channel.

The frame codec reads from a ByteCursor while the orchestrator keeps
feeding it chunks from the channel. Only the orchestrator loop owns a
cursor; it is never shared between tasks.
"""


class ByteCursor:
    """
    Growable byte buffer with a read position.

    Bytes are appended with feed() and consumed with advance(). Consumed
    bytes are released lazily on the next feed(), so advancing never
    copies the unconsumed tail.

    Attributes:
        offset: Absolute stream offset of the read position
        remaining: Number of buffered, unconsumed bytes

    Example:
        cursor = ByteCursor()
        cursor.feed(chunk)
        header = cursor.peek(0, 4)
        cursor.advance(4)
    """

    def __init__(self, data: bytes = b"") -> None:
        self._buffer = bytearray(data)
        self._position = 0
        self._base = 0

    @property
    def offset(self) -> int:
        """Absolute stream offset of the read position."""
        return self._base + self._position

    @property
    def remaining(self) -> int:
        """Buffered bytes not yet consumed."""
        return len(self._buffer) - self._position

    def feed(self, data: bytes) -> None:
        """Append bytes read from the channel."""
        if self._position:
            del self._buffer[:self._position]
            self._base += self._position
            self._position = 0
        self._buffer.extend(data)

    def peek(self, start: int, size: int) -> bytes:
        """
        Copy `size` bytes starting `start` bytes past the read position.

        Raises:
            ValueError: If the requested range is not buffered
        """
        begin = self._position + start
        end = begin + size
        if start < 0 or size < 0 or end > len(self._buffer):
            raise ValueError(
                f"range [{start}, {start + size}) outside {self.remaining} buffered bytes"
            )
        return bytes(self._buffer[begin:end])

    def advance(self, count: int) -> None:
        """Consume `count` bytes."""
        if count < 0 or count > self.remaining:
            raise ValueError(f"cannot advance {count} of {self.remaining} bytes")
        self._position += count

    def __len__(self) -> int:
        return self.remaining
