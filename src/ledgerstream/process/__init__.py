"""
Process Module
==============

Producer process supervision.
"""

from ledgerstream.process.supervisor import (
    ProcessSupervisor,
    ProducerHandle,
    SpawnFailed,
    exit_status_code,
)


__all__ = [
    "ProcessSupervisor",
    "ProducerHandle",
    "SpawnFailed",
    "exit_status_code",
]
