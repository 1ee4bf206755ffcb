"""
Pipeline Orchestrator
=====================

Composes supervisor, drainers, codec and projector into one run.

States:
    STARTING    spawn the producer, attach both drainers
    STREAMING   decode frames from the binary channel, emit JSON lines
    DRAINING    wait for producer exit and for both drainers
    TERMINATED  result available

Failure Handling:
    - NeedMoreInput: await the next chunk, retry at the same position
    - Error with a known frame boundary (including an oversized frame):
      one diagnostic, skip that frame as its bytes arrive
    - Error with an unknown boundary (unmarked record mark, or an unknown
      version behind an oversized length): one diagnostic, then
      resynchronize by sliding one byte at a time; failures while
      resynchronizing are silent
    - End of channel while resynchronizing: keep sliding over what is
      buffered, so frames already received are still decoded
    - End of channel inside a frame: TruncatedStream, then drain
    - Failure of the pipeline itself: terminate the producer, re-raise

Data-loss window: a resynchronization discards every byte between the
failed record mark and the next offset that decodes as a complete frame.
While resynchronizing, a candidate mark within max_frame_bytes holds
output back until its payload arrives or the channel ends.
"""

import asyncio
import base64
import binascii
import logging
from typing import Dict, List, Optional

from ledgerstream.config import StreamConfig, StreamEncoding
from ledgerstream.models.reason_codes import FailureKind
from ledgerstream.models.state import PipelineResult, PipelineState
from ledgerstream.process.supervisor import ProcessSupervisor, ProducerHandle
from ledgerstream.stream.buffer import ChannelBuffer
from ledgerstream.stream.drainer import ChannelDrainer, ChannelSink, DrainMode
from ledgerstream.stream.frame import Frame, decode_frame
from ledgerstream.stream.projector import project_record, to_json_line
from ledgerstream.xdr.cursor import ByteCursor
from ledgerstream.xdr.errors import FrameDecodeError, MalformedPayload, NeedMoreInput


logger = logging.getLogger(__name__)

# Grace period between SIGTERM and SIGKILL when aborting.
TERMINATE_TIMEOUT_SEC = 5.0


class PipelineMetrics:
    """Metrics for PipelineOrchestrator observability."""

    __slots__ = (
        "records_emitted",
        "records_skipped",
        "bytes_discarded",
        "truncated",
        "last_ledger_seq",
    )

    def __init__(self) -> None:
        self.records_emitted: int = 0
        self.records_skipped: Dict[str, int] = {}
        self.bytes_discarded: int = 0
        self.truncated: bool = False
        self.last_ledger_seq: int = -1

    def count_skip(self, kind: FailureKind) -> None:
        self.records_skipped[kind.value] = self.records_skipped.get(kind.value, 0) + 1

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "records_emitted": self.records_emitted,
            "records_skipped": dict(self.records_skipped),
            "bytes_discarded": self.bytes_discarded,
            "truncated": self.truncated,
            "last_ledger_seq": self.last_ledger_seq,
        }


class PipelineOrchestrator:
    """
    Runs one producer through the decode pipeline until it exits.

    Attributes:
        state: Current PipelineState
        metrics: Operational metrics

    Example:
        orchestrator = PipelineOrchestrator(
            supervisor=ProcessSupervisor("stellar-core", args),
            output_sink=TextStreamSink(sys.stdout, name="output"),
            log_sink=TextStreamSink(sys.stderr, name="diagnostics",
                                    best_effort=True),
        )
        result = await orchestrator.run()
        sys.exit(result.exit_code)
    """

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        output_sink: ChannelSink,
        log_sink: ChannelSink,
        stream_config: Optional[StreamConfig] = None,
    ) -> None:
        """
        Initialize pipeline orchestrator.

        Args:
            supervisor: Launches the producer
            output_sink: Receives one JSON line per decoded record
            log_sink: Receives producer diagnostic lines (best effort)
            stream_config: Decoding options, defaults if None
        """
        self.supervisor = supervisor
        self.output_sink = output_sink
        self.log_sink = log_sink
        self.config = stream_config or StreamConfig()
        self.metrics = PipelineMetrics()

        self._state = PipelineState.STARTING
        self._handle: Optional[ProducerHandle] = None
        self._binary: Optional[ChannelBuffer] = None
        self._drainers: List[ChannelDrainer] = []
        self._tasks: List[asyncio.Task] = []
        self._resyncing: bool = False
        self._resync_from: int = 0
        self._skip_pending: int = 0

    @property
    def state(self) -> PipelineState:
        """Current lifecycle state."""
        return self._state

    def _transition(self, new_state: PipelineState) -> None:
        logger.debug(f"Pipeline {self._state.value} -> {new_state.value}")
        self._state = new_state

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(self) -> PipelineResult:
        """
        Run the pipeline to completion.

        Returns:
            Final result, including the producer's exit status

        Raises:
            SpawnFailed: If the producer cannot be launched
        """
        await self._start()
        try:
            await self._stream()
        except BaseException:
            await self._abort()
            raise
        return await self._drain()

    async def _start(self) -> None:
        """STARTING: spawn the producer and attach both drainers."""
        self._handle = await self.supervisor.spawn()

        lines = self.config.encoding is StreamEncoding.BASE64_LINES
        self._binary = ChannelBuffer("stdout", maxsize=self.config.max_queue_size)
        self._drainers = [
            ChannelDrainer(
                "stderr",
                self._handle.take_stderr(),
                self.log_sink,
                mode=DrainMode.LINES,
            ),
            ChannelDrainer(
                "stdout",
                self._handle.take_stdout(),
                self._binary,
                mode=DrainMode.LINES if lines else DrainMode.CHUNKS,
                chunk_size=self.config.read_chunk_size,
            ),
        ]
        self._tasks = [
            asyncio.create_task(drainer.run(), name=f"drain_{drainer.name}")
            for drainer in self._drainers
        ]
        self._transition(PipelineState.STREAMING)

    async def _drain(self) -> PipelineResult:
        """DRAINING: wait for producer exit and both drainers."""
        self._transition(PipelineState.DRAINING)

        exit_code = await self._handle.wait()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for drainer, outcome in zip(self._drainers, results):
            if isinstance(outcome, BaseException):
                logger.error(f"Drainer {drainer.name} failed: {outcome!r}")

        self._transition(PipelineState.TERMINATED)
        logger.debug(f"Pipeline metrics: {self.metrics.to_dict()}")
        logger.debug(f"Binary channel: {self._binary.metrics()}")
        for drainer in self._drainers:
            logger.debug(f"Drainer {drainer.name}: {drainer.metrics.to_dict()}")
        if exit_code != 0:
            logger.warning(f"Producer exited with status {exit_code}")
        else:
            logger.info("Producer exited cleanly")

        return PipelineResult(
            exit_code=exit_code,
            pid=self._handle.pid,
            records_emitted=self.metrics.records_emitted,
            records_skipped=dict(self.metrics.records_skipped),
            bytes_discarded=self.metrics.bytes_discarded,
            truncated=self.metrics.truncated,
            channel_errors={
                drainer.name: drainer.metrics.error
                for drainer in self._drainers
                if drainer.metrics.error
            },
        )

    async def _abort(self) -> None:
        """Stop the producer and drainers after the pipeline itself failed."""
        logger.error("Pipeline failed, terminating producer")
        self._handle.terminate()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

        try:
            await asyncio.wait_for(self._handle.wait(), timeout=TERMINATE_TIMEOUT_SEC)
        except asyncio.TimeoutError:
            logger.error("Producer ignored SIGTERM, killing it")
            self._handle.kill()
            await self._handle.wait()
        self._transition(PipelineState.TERMINATED)

    # =========================================================================
    # Streaming
    # =========================================================================

    async def _stream(self) -> None:
        """STREAMING: decode until the binary channel ends."""
        if self.config.encoding is StreamEncoding.BASE64_LINES:
            await self._stream_lines()
        else:
            await self._stream_raw()

        if self._binary.error is not None:
            logger.error(
                f"{FailureKind.CHANNEL_READ_ERROR.value}: {self._binary.error}"
            )

    async def _stream_raw(self) -> None:
        cursor = ByteCursor()
        while True:
            self._consume_skip(cursor)
            if self._skip_pending:
                if await self._read_more(cursor):
                    continue
                break

            try:
                frame = decode_frame(cursor, self.config.max_frame_bytes)
            except NeedMoreInput:
                if await self._read_more(cursor):
                    continue
                if self._resyncing and cursor.remaining:
                    # Nothing more will arrive; scan what is buffered.
                    self._slide(cursor)
                    continue
                break
            except FrameDecodeError as e:
                self._recover(cursor, e)
                continue

            if self._resyncing:
                self._finish_resync(frame.offset)
            await self._emit(frame)

        self._end_of_stream(cursor)

    async def _read_more(self, cursor: ByteCursor) -> bool:
        """Feed the next chunk into the cursor; False once the channel ended."""
        chunk = await self._binary.get()
        if chunk is None:
            return False
        cursor.feed(chunk)
        return True

    async def _stream_lines(self) -> None:
        line_no = 0
        while (line := await self._binary.get()) is not None:
            line_no += 1
            line = line.strip()
            if not line:
                continue

            try:
                data = base64.b64decode(line, validate=True)
            except (binascii.Error, ValueError) as e:
                self._report_skip(
                    MalformedPayload(f"line is not valid base64: {e}"),
                    f"line {line_no}",
                )
                continue

            cursor = ByteCursor(data)
            try:
                frame = decode_frame(cursor, self.config.max_frame_bytes)
                if cursor.remaining:
                    raise MalformedPayload(
                        f"{cursor.remaining} byte(s) after the frame"
                    )
            except NeedMoreInput as e:
                self._report_skip(
                    MalformedPayload(f"line holds an incomplete frame ({e})"),
                    f"line {line_no}",
                )
                continue
            except FrameDecodeError as e:
                self._report_skip(e, f"line {line_no}")
                continue

            await self._emit(frame)

    async def _emit(self, frame: Frame) -> None:
        logger.debug(
            f"Received frame: {frame.size} bytes, "
            f"ledger {frame.ledger_seq} (v{frame.version})"
        )
        await self.output_sink.put(to_json_line(project_record(frame)))
        self.metrics.records_emitted += 1
        self.metrics.last_ledger_seq = frame.ledger_seq

    # =========================================================================
    # Failure handling
    # =========================================================================

    def _report_skip(self, error: FrameDecodeError, where: str) -> None:
        """Emit the single diagnostic for one skipped record."""
        self.metrics.count_skip(error.kind)
        logger.warning(f"Skipped record at {where}: {error.kind.value}: {error}")

    def _recover(self, cursor: ByteCursor, error: FrameDecodeError) -> None:
        """Move the cursor past a record that failed to decode."""
        if self._resyncing:
            self._slide(cursor)
            return

        self._report_skip(error, f"offset {cursor.offset}")
        if error.boundary_known:
            self._skip_pending = error.frame_size
            self._consume_skip(cursor)
            return

        self._resyncing = True
        self._resync_from = cursor.offset
        self._slide(cursor)

    def _consume_skip(self, cursor: ByteCursor) -> None:
        """Discard what is buffered of a frame being skipped."""
        if not self._skip_pending:
            return
        count = min(self._skip_pending, cursor.remaining)
        cursor.advance(count)
        self._skip_pending -= count
        self.metrics.bytes_discarded += count

    def _slide(self, cursor: ByteCursor) -> None:
        cursor.advance(1)
        self.metrics.bytes_discarded += 1

    def _finish_resync(self, offset: int) -> None:
        self._resyncing = False
        logger.info(
            f"Resynchronized at offset {offset} after discarding "
            f"{offset - self._resync_from} byte(s)"
        )

    def _end_of_stream(self, cursor: ByteCursor) -> None:
        """Handle end of the binary channel with bytes possibly pending."""
        if self._resyncing:
            self._resyncing = False
            logger.warning(
                f"Stream ended while resynchronizing, discarded "
                f"{cursor.offset - self._resync_from} byte(s) "
                f"from offset {self._resync_from}"
            )

        if self._skip_pending:
            self.metrics.truncated = True
            logger.warning(
                f"{FailureKind.TRUNCATED_STREAM.value}: stream ended "
                f"{self._skip_pending} byte(s) short of a skipped frame"
            )
        elif cursor.remaining:
            self.metrics.truncated = True
            self.metrics.bytes_discarded += cursor.remaining
            logger.warning(
                f"{FailureKind.TRUNCATED_STREAM.value}: stream ended with "
                f"{cursor.remaining} undecoded byte(s) at offset {cursor.offset}"
            )
