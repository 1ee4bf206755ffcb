"""
ledgerstream
============

Streams ledger-close metadata from a ledger-producing process as JSON lines.

This package supervises a producer (stellar-core in metadata mode),
decodes the record-marked XDR LedgerCloseMeta frames it writes to its
standard output, and re-emits each record as one JSON document per line.

Components:
    - xdr: input cursor and the stellar-sdk LedgerCloseMeta codec
    - stream: frame codec, projector, drainers, buffers, sinks
    - process: producer supervision
    - pipeline: the orchestrator state machine
    - models: failure kinds, states, pipeline result

Example:
    ledgerstream --config-path stellar-core-testnet.cfg -v > ledgers.jsonl
"""

__version__ = "0.1.0"
__author__ = "ledgerstream contributors"

__all__ = [
    "__version__",
]
