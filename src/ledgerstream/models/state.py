"""
Pipeline State Models
=====================

This module defines the lifecycle states of the pipeline orchestrator and
the result it hands back to the caller.

Core Concepts:
    - PipelineState: Discrete orchestrator states
    - PipelineResult: Final outcome, exposed once the producer has exited

Transitions:
    STARTING → STREAMING:  producer spawned, drainers attached
    STREAMING → DRAINING:  binary channel reached end of stream
    DRAINING → TERMINATED: producer exited and drainers finished

Example:
    from ledgerstream.models.state import PipelineState, PipelineResult

    result = PipelineResult(exit_code=0, records_emitted=12)
    if not result.success:
        ...
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class PipelineState(str, Enum):
    """
    Lifecycle states for the pipeline orchestrator.

    States only move forward; there is no way back to STREAMING once
    the binary channel has ended.

    Attributes:
        STARTING: Spawning the producer and attaching drainers
        STREAMING: Decoding frames from the binary channel
        DRAINING: Waiting for producer exit and drainer completion
        TERMINATED: Final; the result is available
    """

    STARTING = "STARTING"
    STREAMING = "STREAMING"
    DRAINING = "DRAINING"
    TERMINATED = "TERMINATED"


class PipelineResult(BaseModel):
    """
    Final outcome of one pipeline run.

    Attributes:
        exit_code: Producer exit status (negative = killed by signal)
        pid: Producer process id, for diagnostics
        records_emitted: JSON lines written to the output sink
        records_skipped: Skipped records keyed by failure kind
        bytes_discarded: Undecodable input bytes dropped (skipped frames,
            resynchronization, truncated tail)
        truncated: Whether the stream ended inside a frame
        channel_errors: Channel name -> terminal read error text
    """

    exit_code: int = Field(..., description="Producer exit status")

    pid: Optional[int] = Field(
        default=None,
        description="Producer process id",
    )

    records_emitted: int = Field(
        default=0,
        ge=0,
        description="Number of JSON documents written to the output sink",
    )

    records_skipped: Dict[str, int] = Field(
        default_factory=dict,
        description="Skipped records per failure kind",
    )

    bytes_discarded: int = Field(
        default=0,
        ge=0,
        description="Undecodable input bytes dropped",
    )

    truncated: bool = Field(
        default=False,
        description="True if the stream ended with a partial frame buffered",
    )

    channel_errors: Dict[str, str] = Field(
        default_factory=dict,
        description="Terminal read errors per producer channel",
    )

    @property
    def success(self) -> bool:
        """Whether the producer exited cleanly."""
        return self.exit_code == 0

    @property
    def total_skipped(self) -> int:
        """Total skipped records across all failure kinds."""
        return sum(self.records_skipped.values())
