"""
Process Supervisor
==================

Launches the ledger-producing process with both output channels captured.

This module provides:
    - ProcessSupervisor: spawns the producer
    - ProducerHandle: channel endpoints, exit wait, PID
    - SpawnFailed: the producer could not be launched

Design Rules:
    - stdout and stderr are always piped, never inherited
    - stdin is /dev/null
    - Each channel endpoint can be taken exactly once
    - No restart or retry; restart policy belongs to an outer supervisor
"""

import asyncio
import logging
import os
from typing import Optional, Sequence

from ledgerstream.models.reason_codes import FailureKind


logger = logging.getLogger(__name__)

# asyncio's default StreamReader limit (64 KiB) is too small for
# base64-encoded ledgers on one line.
DEFAULT_STREAM_LIMIT = 16 * 1024 * 1024


class SpawnFailed(Exception):
    """Raised when the producer executable cannot be launched."""

    kind = FailureKind.SPAWN_FAILED

    def __init__(self, executable: str, cause: BaseException) -> None:
        super().__init__(f"failed to start {executable}: {cause}")
        self.executable = executable
        self.__cause__ = cause


class ProducerHandle:
    """
    Running producer process.

    Owns the stdout and stderr endpoints until a drainer takes them.

    Attributes:
        pid: Process id
        returncode: Exit status once the process has exited, else None
    """

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self._stdout: Optional[asyncio.StreamReader] = process.stdout
        self._stderr: Optional[asyncio.StreamReader] = process.stderr

    @property
    def pid(self) -> int:
        """Producer process id."""
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        """Exit status, or None while running."""
        return self._process.returncode

    def take_stdout(self) -> asyncio.StreamReader:
        """
        Hand over the binary output channel.

        Raises:
            RuntimeError: If it was already taken
        """
        if self._stdout is None:
            raise RuntimeError("stdout already taken")
        stream, self._stdout = self._stdout, None
        return stream

    def take_stderr(self) -> asyncio.StreamReader:
        """
        Hand over the diagnostic output channel.

        Raises:
            RuntimeError: If it was already taken
        """
        if self._stderr is None:
            raise RuntimeError("stderr already taken")
        stream, self._stderr = self._stderr, None
        return stream

    async def wait(self) -> int:
        """Wait for the producer to exit and return its exit status."""
        return await self._process.wait()

    def terminate(self) -> None:
        """Ask the producer to stop (SIGTERM). No-op once it has exited."""
        if self._process.returncode is None:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass

    def kill(self) -> None:
        """Force the producer to stop (SIGKILL). No-op once it has exited."""
        if self._process.returncode is None:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass


class ProcessSupervisor:
    """
    Spawns the producer process.

    Example:
        supervisor = ProcessSupervisor(
            executable="stellar-core",
            args=["--conf", "stellar-core.cfg", "--metadata"],
        )
        handle = await supervisor.spawn()
        exit_code = await handle.wait()
    """

    def __init__(
        self,
        executable: str,
        args: Sequence[str] = (),
        working_dir: Optional[str] = None,
        stream_limit: int = DEFAULT_STREAM_LIMIT,
    ) -> None:
        """
        Initialize process supervisor.

        Args:
            executable: Path or name of the producer binary
            args: Arguments passed to the producer
            working_dir: Working directory, None = inherit
            stream_limit: Buffer limit for the captured channels
        """
        self.executable = executable
        self.args = list(args)
        self.working_dir = working_dir
        self.stream_limit = stream_limit

    @property
    def command(self) -> list:
        """Full command line."""
        return [self.executable, *self.args]

    async def spawn(self) -> ProducerHandle:
        """
        Launch the producer.

        Returns:
            Handle to the running process

        Raises:
            SpawnFailed: If the executable cannot be launched
        """
        logger.debug(f"Spawning producer: {' '.join(self.command)}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *self.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.working_dir,
                limit=self.stream_limit,
            )
        except (OSError, ValueError) as e:
            raise SpawnFailed(self.executable, e)

        logger.info(f"Producer started with PID: {process.pid}")
        return ProducerHandle(process)


def exit_status_code(returncode: int) -> int:
    """
    Map a subprocess return code to a shell-style exit status.

    Negative return codes (killed by signal N) become 128 + N.
    """
    if returncode < 0:
        return 128 - returncode
    return returncode


def resolve_executable(path: str) -> str:
    """Expand `~` and environment variables in an executable path."""
    return os.path.expandvars(os.path.expanduser(path))
