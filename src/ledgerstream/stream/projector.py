"""
Record Projector
================

Maps decoded LedgerCloseMeta values to JSON documents.

A decoded value is a tree of generated stellar-sdk XDR classes. Each
generated class carries its XDR declaration in its docstring, which tells
the projector whether it is a struct, a union or a typedef; field order
is the constructor's parameter order, which is the declaration order.

JSON Projection Rules:
    - integers up to 32 bits are JSON numbers
    - int64 / uint64 (and typedefs of them) are decimal strings
    - opaque data and XDR strings are base64
    - enums are their member name
    - structs are objects in declaration order
    - unions are {"type": <name>, "value": <arm>}; void arms omit "value";
      int-switched unions use "v<N>" as the type
    - typedefs project as the type they name
    - absent optionals are null

Design Rules:
    - Pure: no I/O, no mutation of the decoded value
    - Compact output, one document per line, no trailing newline
"""

import base64
import enum
import functools
import inspect
import json
import re
from typing import Any, Dict, Tuple

from stellar_sdk import xdr as stellar_xdr

from ledgerstream.stream.frame import Frame


_DECLARATION = re.compile(r"XDR Source Code::\s+(struct|union|typedef)\b")


@functools.lru_cache(maxsize=None)
def _layout(cls: type) -> Tuple[str, Tuple[str, ...]]:
    """Declaration kind and field names of a generated XDR class."""
    match = _DECLARATION.search(cls.__doc__ or "")
    if match is None:
        raise TypeError(f"{cls.__name__} is not a generated XDR type")
    fields = tuple(inspect.signature(cls.__init__).parameters)[1:]
    return match.group(1), fields


def _union_tag(discriminant: Any) -> str:
    if isinstance(discriminant, enum.Enum):
        return discriminant.name
    return f"v{discriminant}"


def project_value(value: Any) -> Any:
    """Project any decoded XDR value to a JSON-compatible object."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, int):
        return value
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, list):
        return [project_value(item) for item in value]
    if isinstance(value, stellar_xdr.Int64):
        return str(value.int64)
    if isinstance(value, stellar_xdr.Uint64):
        return str(value.uint64)

    kind, fields = _layout(type(value))
    if kind == "typedef":
        return project_value(getattr(value, fields[0]))
    if kind == "union":
        document = {"type": _union_tag(getattr(value, fields[0]))}
        for name in fields[1:]:
            arm = getattr(value, name)
            if arm is not None:
                document["value"] = project_value(arm)
                break
        return document
    return {name: project_value(getattr(value, name)) for name in fields}


def project_meta(meta: stellar_xdr.LedgerCloseMeta) -> Dict[str, Any]:
    """
    Project a LedgerCloseMeta union to a JSON-compatible dict.

    Returns:
        {"type": "v<N>", "value": {...}}
    """
    return project_value(meta)


def project_record(frame: Frame) -> Dict[str, Any]:
    """Project the LedgerCloseMeta carried by a decoded frame."""
    return project_meta(frame.meta)


def to_json_line(document: Dict[str, Any]) -> str:
    """Serialize a projected document as one compact JSON line."""
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False)
