"""
Pipeline Module
===============

Orchestration of producer, drainers, codec and projector.
"""

from ledgerstream.pipeline.orchestrator import PipelineMetrics, PipelineOrchestrator


__all__ = [
    "PipelineMetrics",
    "PipelineOrchestrator",
]
