"""
Frame Codec
===========

Decoding of record-marked LedgerCloseMeta frames from the binary channel.

Wire Format:
    4 bytes   record mark (u32, big-endian)
                bit 31     last-fragment flag (must be set)
                bits 0-30  payload length
    N bytes   payload: one XDR-encoded LedgerCloseMeta, starting with
              its int32 version discriminant

Frames follow each other back-to-back with no delimiter.

Design Rules:
    - Pure and synchronous, no I/O
    - The cursor only moves on success, and then exactly past one frame
    - NeedMoreInput is a signal to read more bytes, not an error
    - Errors carry the frame size whenever the boundary is trustworthy:
      a final-fragment mark whose length is within the limit, or whose
      payload starts with a supported version

Example:
    cursor = ByteCursor()
    cursor.feed(chunk)
    try:
        frame = decode_frame(cursor, max_frame_bytes=64 * 1024 * 1024)
    except NeedMoreInput:
        ...  # read more, retry
"""

import struct
from dataclasses import dataclass
from typing import Optional

from stellar_sdk import xdr as stellar_xdr

from ledgerstream.xdr.cursor import ByteCursor
from ledgerstream.xdr.errors import (
    FrameTooLarge,
    MalformedPayload,
    NeedMoreInput,
    UnknownVariant,
)
from ledgerstream.xdr.ledger import (
    SUPPORTED_VERSIONS,
    decode_ledger_close_meta,
    encode_ledger_close_meta,
    ledger_body,
)


RECORD_MARK_SIZE = 4
VERSION_SIZE = 4
LAST_FRAGMENT = 0x80000000
LENGTH_MASK = 0x7FFFFFFF

_RECORD_MARK = struct.Struct(">I")
_VERSION = struct.Struct(">i")


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One decoded frame from the binary channel.

    Immutable once decoded; never retained past emission.

    Attributes:
        offset: Absolute stream offset of the record mark
        size: Total bytes consumed (record mark + payload)
        meta: Decoded LedgerCloseMeta union
    """

    offset: int
    size: int
    meta: stellar_xdr.LedgerCloseMeta

    @property
    def version(self) -> int:
        """LedgerCloseMeta version discriminant."""
        return self.meta.v

    @property
    def ledger_seq(self) -> int:
        """Ledger sequence number from the header."""
        return ledger_body(self.meta).ledger_header.header.ledger_seq.uint32

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the whole ledger."""
        return (
            f"Frame(offset={self.offset}, "
            f"size={self.size}, "
            f"version={self.version}, "
            f"ledger_seq={self.ledger_seq})"
        )


def decode_frame(
    cursor: ByteCursor,
    max_frame_bytes: Optional[int] = None,
) -> Frame:
    """
    Decode exactly one frame at the cursor's read position.

    Args:
        cursor: Buffered input; advanced past the frame on success only
        max_frame_bytes: Largest accepted payload length, None = unbounded

    Returns:
        The decoded Frame

    Raises:
        NeedMoreInput: Record mark, version or payload not fully buffered yet
        FrameTooLarge: Declared length above max_frame_bytes
        UnknownVariant: Unknown version or nested discriminant
        MalformedPayload: Unmarked fragment, or inconsistent payload
    """
    if cursor.remaining < RECORD_MARK_SIZE:
        raise NeedMoreInput(RECORD_MARK_SIZE - cursor.remaining)

    (mark,) = _RECORD_MARK.unpack(cursor.peek(0, RECORD_MARK_SIZE))
    length = mark & LENGTH_MASK
    frame_size = RECORD_MARK_SIZE + length
    within_limit = max_frame_bytes is None or length <= max_frame_bytes

    # Multi-fragment records are never produced for ledger metadata, so a
    # missing last-fragment flag means the record mark itself is suspect.
    if not mark & LAST_FRAGMENT:
        raise MalformedPayload(
            f"record mark 0x{mark:08x} is not a final fragment"
        )

    if length >= VERSION_SIZE:
        header_size = RECORD_MARK_SIZE + VERSION_SIZE
        if cursor.remaining < header_size:
            raise NeedMoreInput(header_size - cursor.remaining)
        (version,) = _VERSION.unpack(cursor.peek(RECORD_MARK_SIZE, VERSION_SIZE))
        if version not in SUPPORTED_VERSIONS:
            raise UnknownVariant(
                f"unknown LedgerCloseMeta version {version}",
                frame_size=frame_size if within_limit else None,
            )

    if not within_limit:
        raise FrameTooLarge(
            f"frame declares {length} bytes, limit is {max_frame_bytes}",
            frame_size=frame_size,
        )

    if cursor.remaining < frame_size:
        raise NeedMoreInput(frame_size - cursor.remaining)

    payload = cursor.peek(RECORD_MARK_SIZE, length)
    meta = decode_ledger_close_meta(payload, frame_size=frame_size)

    frame = Frame(offset=cursor.offset, size=frame_size, meta=meta)
    cursor.advance(frame_size)
    return frame


def encode_frame(meta: stellar_xdr.LedgerCloseMeta) -> bytes:
    """Encode a LedgerCloseMeta union as one record-marked frame."""
    payload = encode_ledger_close_meta(meta)
    if len(payload) > LENGTH_MASK:
        raise ValueError(f"payload of {len(payload)} bytes does not fit a record mark")
    return _RECORD_MARK.pack(LAST_FRAGMENT | len(payload)) + payload
