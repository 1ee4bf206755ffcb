"""
XDR Module
==========

Wire-level input handling for LedgerCloseMeta payloads.

This module provides:
    - ByteCursor: growable input buffer with a read position
    - decode_ledger_close_meta / encode_ledger_close_meta: stellar-sdk
      binding for the payload of every frame
    - NeedMoreInput and the FrameDecodeError hierarchy
"""

from ledgerstream.xdr.cursor import ByteCursor
from ledgerstream.xdr.errors import (
    FrameDecodeError,
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


__all__ = [
    "ByteCursor",
    "FrameDecodeError",
    "FrameTooLarge",
    "MalformedPayload",
    "NeedMoreInput",
    "SUPPORTED_VERSIONS",
    "UnknownVariant",
    "decode_ledger_close_meta",
    "encode_ledger_close_meta",
    "ledger_body",
]
