"""
Failure Kinds
=============

Fixed set of machine-readable failure kinds reported by the pipeline.

Each skipped record or failed channel is reported with exactly ONE
failure kind, so diagnostics can be counted and grepped without parsing
free text.

Rules:
    - One clear cause per kind
    - Per-record kinds never stop the stream
    - Process-level kinds surface in the pipeline result
"""

from enum import Enum


class FailureKind(str, Enum):
    """
    Machine-readable failure kinds.

    Attributes:
        FRAME_TOO_LARGE: Declared frame length exceeds the configured limit
        UNKNOWN_VARIANT: Union or enum discriminant has no known arm
        MALFORMED_PAYLOAD: Truncated, inconsistent or trailing payload bytes
        TRUNCATED_STREAM: End of stream with undecoded bytes still buffered
        CHANNEL_READ_ERROR: A producer output channel failed (not EOF)
        SPAWN_FAILED: The producer executable could not be launched
    """

    # Per-record, recoverable
    FRAME_TOO_LARGE = "FRAME_TOO_LARGE"
    UNKNOWN_VARIANT = "UNKNOWN_VARIANT"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"

    # Stream-level, recoverable
    TRUNCATED_STREAM = "TRUNCATED_STREAM"
    CHANNEL_READ_ERROR = "CHANNEL_READ_ERROR"

    # Process-level, fatal
    SPAWN_FAILED = "SPAWN_FAILED"
