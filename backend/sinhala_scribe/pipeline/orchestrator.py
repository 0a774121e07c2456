import asyncio
from typing import Callable, Iterable, Optional

from loguru import logger

from sinhala_scribe.audio.chunker import AudioChunk, Chunker
from sinhala_scribe.audio.decoder import AudioDecoder, PydubDecoder
from sinhala_scribe.audio.source import AudioSource
from sinhala_scribe.audio.wav import to_base64
from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import (
    DecodeError,
    EstimationError,
    InsufficientCredit,
    PersistenceError,
    PipelineStateError,
    TranscriptionFailed,
)
from sinhala_scribe.pipeline.gateway import CreditGateway
from sinhala_scribe.pipeline.models import (
    TERMINAL_STATES,
    CreditEstimate,
    PipelineRun,
    PipelineState,
    RunContext,
    SegmentResult,
    TranscriptionUnit,
)
from sinhala_scribe.pipeline.retry import RETRYABLE_ERRORS, segment_retrying

# (chunks completed, total chunks, text so far)
ProgressCallback = Callable[[int, int, str], None]
CompleteCallback = Callable[[str, Optional[int]], None]


class ChunkPipeline:
    """
    Drives one recording through estimate, chunking, metered transcription
    and persistence.

    States: IDLE -> ANALYZING -> READY -> PROCESSING -> DONE | PARTIAL, with
    CANCELLED reachable from ANALYZING, READY and PROCESSING. Segments are
    submitted strictly one at a time in index order. A pipeline object drives
    at most one run at a time; a terminal state may start a new run.
    """

    def __init__(
            self,
            gateway: CreditGateway,
            decoder: Optional[AudioDecoder] = None,
            chunker: Optional[Chunker] = None,
            max_retries: int = settings.MAX_RETRIES,
            retry_delay: float = settings.RETRY_DELAY,
            on_progress: Optional[ProgressCallback] = None,
            on_complete: Optional[CompleteCallback] = None,
    ):
        self.gateway = gateway
        self.decoder = decoder or (chunker.decoder if chunker else PydubDecoder())
        self.chunker = chunker or Chunker(decoder=self.decoder)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.on_progress = on_progress
        self.on_complete = on_complete

        self._state = PipelineState.IDLE
        self._context: Optional[RunContext] = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def estimate(self) -> Optional[CreditEstimate]:
        return self._context.estimate if self._context else None

    @property
    def run(self) -> Optional[PipelineRun]:
        return self._context.run if self._context else None

    def _transition(self, target: PipelineState, allowed_from: Iterable[PipelineState]) -> None:
        if self._state not in allowed_from:
            raise PipelineStateError(f"Cannot move from {self._state.value} to {target.value}")
        logger.debug(f"Pipeline {self._state.value} -> {target.value}")
        self._state = target

    def _fail_to_idle(self, context: RunContext) -> None:
        # A cancelled run keeps its terminal state
        if not context.cancelled:
            self._state = PipelineState.IDLE

    async def analyze(self, source: AudioSource) -> CreditEstimate:
        """
        Discover the source duration and fetch the pre-flight estimate.

        Raises:
            DecodeError: If the duration cannot be determined
            EstimationError: If the estimate call fails
        """
        self._transition(PipelineState.ANALYZING, {PipelineState.IDLE, *TERMINAL_STATES})
        context = RunContext(source)
        self._context = context

        loop = asyncio.get_running_loop()
        try:
            duration = await loop.run_in_executor(None, self.decoder.probe_duration, source)
            estimate = await self.gateway.estimate(duration)
        except (DecodeError, EstimationError) as e:
            logger.error(f"Analysis of {source.filename} failed: {e}")
            self._fail_to_idle(context)
            raise

        context.estimate = estimate
        if context.cancelled:
            return estimate

        logger.info(
            f"{source.filename}: {estimate.duration_seconds:.1f}s needs {estimate.required_credits} "
            f"credit(s), {estimate.current_credits} available"
        )
        self._transition(PipelineState.READY, {PipelineState.ANALYZING})
        return estimate

    def reset(self) -> None:
        """Drop an estimate or finished run and go back to IDLE"""
        if self._state in (PipelineState.ANALYZING, PipelineState.PROCESSING):
            raise PipelineStateError(f"Cannot reset while {self._state.value}; cancel instead")
        self._context = None
        self._state = PipelineState.IDLE

    def cancel(self) -> None:
        """
        Cancel the active run.

        Takes effect at the next segment boundary; a segment call already in
        flight finishes and its result is discarded. Nothing is persisted.
        """
        if self._state not in (PipelineState.ANALYZING, PipelineState.READY, PipelineState.PROCESSING):
            return
        logger.info(f"Pipeline cancelled while {self._state.value}")
        self._context.cancel()
        self._state = PipelineState.CANCELLED

    async def start(self) -> PipelineRun:
        """
        Chunk the source and transcribe every segment in order.

        Returns:
            The finished run: DONE, PARTIAL, or cancelled (``run.cancelled``)

        Raises:
            InsufficientCredit: If the estimate forbids starting, or the first
                segment is refused for lack of credit
            DecodeError: If the source cannot be decoded
            TranscriptionFailed: If the run ends without any text
        """
        if self._state != PipelineState.READY:
            raise PipelineStateError(f"Cannot start while {self._state.value}")

        context = self._context
        estimate = context.estimate
        if not estimate.can_proceed:
            raise InsufficientCredit(
                f"{estimate.required_credits} credit(s) required, {estimate.current_credits} available"
            )

        self._transition(PipelineState.PROCESSING, {PipelineState.READY})
        run = PipelineRun(duration_seconds=estimate.duration_seconds, credits_remaining=estimate.current_credits)
        context.run = run

        loop = asyncio.get_running_loop()
        try:
            stream = await loop.run_in_executor(None, self.chunker.split, context.source)
        except DecodeError:
            self._fail_to_idle(context)
            raise

        run.total_chunks = len(stream)
        return await self._process(context, stream)

    async def _process(self, context: RunContext, chunks: Iterable[AudioChunk]) -> PipelineRun:
        run = context.run
        failure: Optional[Exception] = None

        for chunk in chunks:
            if context.cancelled:
                return self._abandon(run)

            self._notify_progress(chunk.index, run)
            unit = TranscriptionUnit(chunk_index=chunk.index, request_payload=to_base64(chunk.payload))
            run.units.append(unit)

            try:
                result = await self._submit(context, unit, run.total_chunks)
            except InsufficientCredit as e:
                logger.warning(f"Out of credit at chunk {chunk.index + 1}/{run.total_chunks}: {e}")
                failure = e
            except RETRYABLE_ERRORS as e:
                logger.error(
                    f"Chunk {chunk.index + 1}/{run.total_chunks} failed after {unit.attempts} attempt(s): {e}"
                )
                failure = e
            finally:
                unit.request_payload = None

            if context.cancelled:
                return self._abandon(run)
            if failure is not None:
                break

            run.record(unit, result)
            self._notify_progress(chunk.index + 1, run)

        if not run.accumulated_text:
            self._fail_to_idle(context)
            if isinstance(failure, InsufficientCredit):
                raise failure
            if failure is not None:
                raise TranscriptionFailed(f"Transcription failed: {failure}", cause=failure) from failure
            raise TranscriptionFailed("No speech was transcribed")

        run.is_partial = failure is not None
        self._state = PipelineState.PARTIAL if run.is_partial else PipelineState.DONE
        logger.info(
            f"Run {self._state.value}: {run.credits_used}/{run.total_chunks} chunk(s), "
            f"{len(run.accumulated_text)} chars"
        )

        await self._persist(run)
        if self.on_complete:
            self.on_complete(run.accumulated_text, run.credits_remaining)
        return run

    async def _submit(
            self, context: RunContext, unit: TranscriptionUnit, total_chunks: int
    ) -> Optional[SegmentResult]:
        """Returns None if the run was cancelled during a retry pause"""
        retrying = segment_retrying(self.max_retries, self.retry_delay, cancelled=lambda: context.cancelled)
        async for attempt in retrying:
            # Attempts are billed; none may start once the run is cancelled
            if context.cancelled:
                logger.info(f"Chunk {unit.chunk_index + 1}/{total_chunks} not retried after cancellation")
                return None
            with attempt:
                unit.attempts = attempt.retry_state.attempt_number
                result = await self.gateway.transcribe_segment(unit.request_payload, unit.chunk_index, total_chunks)
        return result

    async def _persist(self, run: PipelineRun) -> None:
        try:
            run.transcript_id = await self.gateway.persist_transcript(
                run.accumulated_text, run.duration_seconds, run.credits_used, run.is_partial
            )
            run.persisted = True
            logger.info(f"Transcript saved as {run.transcript_id}")
        except PersistenceError as e:
            # The text is still handed back to the caller
            logger.error(f"Failed to save transcript ({run.credits_used} credits used): {e}")

    def _abandon(self, run: PipelineRun) -> PipelineRun:
        run.cancelled = True
        logger.info(f"Run abandoned after {run.credits_used} chunk(s); nothing saved")
        return run

    def _notify_progress(self, completed: int, run: PipelineRun) -> None:
        if self.on_progress:
            self.on_progress(completed, run.total_chunks, run.accumulated_text)
