"""
LedgerCloseMeta Codec
=====================

Decoding of frame payloads through the generated stellar-sdk XDR types.

Every payload is one XDR-encoded LedgerCloseMeta union:

    union LedgerCloseMeta switch (int v)
    {
    case 0: LedgerCloseMetaV0 v0;
    case 1: LedgerCloseMetaV1 v1;
    case 2: LedgerCloseMetaV2 v2;
    };

stellar-sdk reports every decode problem as a plain exception; this
module sorts them into the per-record failure kinds the pipeline uses.
"""

import re
from typing import Optional

from stellar_sdk import xdr as stellar_xdr
from xdrlib3 import Error as XdrLibError

from ledgerstream.xdr.errors import MalformedPayload, UnknownVariant


# LedgerCloseMeta versions with a decodable arm
SUPPORTED_VERSIONS = frozenset({0, 1, 2})

# stellar-sdk messages for a union discriminant without an arm, and for
# an enum value outside the enum ("Invalid v.", "9 is not a valid ...")
_UNKNOWN_DISCRIMINANT = re.compile(r"^Invalid \w+\.$|is not a valid \w+")


def decode_ledger_close_meta(
    payload: bytes,
    frame_size: Optional[int] = None,
) -> stellar_xdr.LedgerCloseMeta:
    """
    Decode one complete LedgerCloseMeta payload.

    Args:
        payload: XDR bytes of exactly one LedgerCloseMeta
        frame_size: Size of the enclosing frame, attached to errors

    Raises:
        UnknownVariant: Unknown version or nested discriminant
        MalformedPayload: Truncated payload, bad lengths or trailing bytes
    """
    try:
        return stellar_xdr.LedgerCloseMeta.from_xdr_bytes(payload)
    except (EOFError, XdrLibError) as e:
        raise MalformedPayload(
            f"payload truncated or invalid ({type(e).__name__}: {e})",
            frame_size=frame_size,
        ) from e
    except ValueError as e:
        if _UNKNOWN_DISCRIMINANT.search(str(e)):
            raise UnknownVariant(f"unknown discriminant: {e}", frame_size=frame_size) from e
        raise MalformedPayload(str(e), frame_size=frame_size) from e


def encode_ledger_close_meta(meta: stellar_xdr.LedgerCloseMeta) -> bytes:
    """Encode a LedgerCloseMeta union to its XDR payload."""
    return meta.to_xdr_bytes()


def ledger_body(meta: stellar_xdr.LedgerCloseMeta):
    """The active LedgerCloseMetaV<N> arm of the union."""
    return getattr(meta, f"v{meta.v}")
