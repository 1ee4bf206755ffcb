"""
Test Configuration
==================

Pytest fixtures and test configuration for ledgerstream.

Fixtures build LedgerCloseMeta values from the stellar-sdk XDR types, and
simulate the producer with a small Python script run as a subprocess.
"""

import sys
from typing import List, Optional

import pytest

from ledgerstream.process import ProcessSupervisor
from ledgerstream.stream.frame import encode_frame

from builders import PRODUCER_SCRIPT, build_meta, unknown_version_frame


@pytest.fixture
def make_meta():
    """Factory fixture: make_meta(version=1, ledger_seq=100)."""
    return build_meta


@pytest.fixture
def make_frame():
    """Factory fixture: encoded frame bytes for make_meta arguments."""
    def _make(version: int = 1, ledger_seq: int = 100) -> bytes:
        return encode_frame(build_meta(version, ledger_seq))
    return _make


@pytest.fixture
def corrupt_frame():
    """A frame with an unknown LedgerCloseMeta version discriminant."""
    return unknown_version_frame()


@pytest.fixture
def fake_producer(tmp_path):
    """
    Factory fixture returning a ProcessSupervisor for a simulated producer.

    The producer writes `stderr_lines` to stderr, then `data` to stdout in
    small flushed chunks, optionally sleeps, then exits with `exit_code`.
    """
    def _make(
        data: bytes,
        exit_code: int = 0,
        stderr_lines: Optional[List[str]] = None,
        sleep_sec: float = 0.0,
    ) -> ProcessSupervisor:
        data_path = tmp_path / "producer-output.bin"
        data_path.write_bytes(data)
        return ProcessSupervisor(
            executable=sys.executable,
            args=[
                "-c",
                PRODUCER_SCRIPT,
                str(data_path),
                str(exit_code),
                str(sleep_sec),
                *(stderr_lines or []),
            ],
        )
    return _make
