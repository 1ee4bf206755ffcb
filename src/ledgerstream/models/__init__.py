"""
Models Module
=============

Shared enums and result models for ledgerstream.

Models:
    - FailureKind: Machine-readable failure kinds for diagnostics
    - PipelineState: Orchestrator lifecycle states
    - PipelineResult: Final outcome of a pipeline run
"""

from ledgerstream.models.reason_codes import FailureKind
from ledgerstream.models.state import PipelineResult, PipelineState


__all__ = [
    "FailureKind",
    "PipelineResult",
    "PipelineState",
]
