"""
Codec Errors
============

Exceptions raised while decoding frames from the binary channel.

NeedMoreInput is a control signal, not a failure: the caller reads more
bytes and retries from the same cursor position. Every FrameDecodeError
is local to one record.
"""

from typing import Optional

from ledgerstream.models.reason_codes import FailureKind


class NeedMoreInput(Exception):
    """
    Raised when the buffered bytes end before the current frame does.

    Attributes:
        needed: Minimum number of additional bytes required
    """

    def __init__(self, needed: int) -> None:
        super().__init__(f"need {needed} more byte(s)")
        self.needed = needed


class FrameDecodeError(Exception):
    """
    Base class for per-record decode failures.

    Attributes:
        kind: Failure kind used in diagnostics
        frame_size: Total bytes (prefix + payload) of the failed frame,
            or None when the frame boundary cannot be trusted
    """

    kind = FailureKind.MALFORMED_PAYLOAD

    def __init__(self, message: str, frame_size: Optional[int] = None) -> None:
        super().__init__(message)
        self.frame_size = frame_size

    @property
    def boundary_known(self) -> bool:
        """Whether the caller can skip exactly this frame."""
        return self.frame_size is not None


class FrameTooLarge(FrameDecodeError):
    """Raised when the declared frame length exceeds the configured limit."""

    kind = FailureKind.FRAME_TOO_LARGE


class UnknownVariant(FrameDecodeError):
    """Raised when a union or enum discriminant has no known arm."""

    kind = FailureKind.UNKNOWN_VARIANT


class MalformedPayload(FrameDecodeError):
    """
    Raised when a payload is truncated or internally inconsistent.

    Covers unmarked fragments, lengths running past the end of the
    frame and bytes left over after the record.
    """

    kind = FailureKind.MALFORMED_PAYLOAD
