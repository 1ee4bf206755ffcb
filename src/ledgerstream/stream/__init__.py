"""
Stream Module
=============

Frame decoding, projection and channel plumbing.

This module provides the ingestion layer for ledgerstream:
    - Frame / decode_frame: record-marked LedgerCloseMeta codec
    - project_record / to_json_line: JSON projection
    - ChannelBuffer: bounded, ordered delivery path (never drops)
    - ChannelDrainer: per-channel reader task
    - TextStreamSink / NullSink: line sinks

Example:
    from ledgerstream.stream import ChannelBuffer, ChannelDrainer, DrainMode

    buffer = ChannelBuffer("stdout", maxsize=64)
    drainer = ChannelDrainer("stdout", reader, buffer, mode=DrainMode.CHUNKS)

    # Run drainer as background task
    task = asyncio.create_task(drainer.run())

    # Consume chunks until end of channel
    while (chunk := await buffer.get()) is not None:
        cursor.feed(chunk)
"""

from ledgerstream.stream.buffer import ChannelBuffer, ChannelClosedError
from ledgerstream.stream.drainer import (
    ChannelDrainer,
    ChannelDrainerMetrics,
    ChannelReadError,
    DrainMode,
)
from ledgerstream.stream.frame import Frame, decode_frame, encode_frame
from ledgerstream.stream.projector import project_record, to_json_line
from ledgerstream.stream.sinks import NullSink, TextStreamSink


__all__ = [
    "ChannelBuffer",
    "ChannelClosedError",
    "ChannelDrainer",
    "ChannelDrainerMetrics",
    "ChannelReadError",
    "DrainMode",
    "Frame",
    "NullSink",
    "TextStreamSink",
    "decode_frame",
    "encode_frame",
    "project_record",
    "to_json_line",
]
