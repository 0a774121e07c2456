from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from sinhala_scribe.audio.source import AudioSource


class PipelineState(str, Enum):
    """States of one transcription pipeline"""
    IDLE = "idle"
    ANALYZING = "analyzing"
    READY = "ready"
    PROCESSING = "processing"
    DONE = "done"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


TERMINAL_STATES = {PipelineState.DONE, PipelineState.PARTIAL, PipelineState.CANCELLED}


@dataclass(frozen=True)
class CreditEstimate:
    """Pre-flight answer from the metering service"""
    duration_seconds: float
    required_credits: int
    current_credits: int
    can_proceed: bool


@dataclass(frozen=True)
class SegmentResult:
    """Metering service answer for one transcribed segment"""
    text: str
    credits_remaining: int
    chunk_index: int
    credits_estimated: bool = False


@dataclass
class TranscriptionUnit:
    """One segment's request/response pair; the payload is held only while in flight"""
    chunk_index: int
    request_payload: Optional[str] = None
    text: str = ""
    credits_remaining_after: Optional[int] = None
    credits_estimated: bool = False
    attempts: int = 0
    succeeded: bool = False


@dataclass
class PipelineRun:
    """Aggregate of one end-to-end attempt to transcribe a source"""
    duration_seconds: float
    total_chunks: int = 0
    units: List[TranscriptionUnit] = field(default_factory=list)
    accumulated_text: str = ""
    credits_used: int = 0
    credits_remaining: Optional[int] = None
    is_partial: bool = False
    cancelled: bool = False
    transcript_id: Optional[str] = None
    persisted: bool = False

    def record(self, unit: TranscriptionUnit, result: SegmentResult) -> None:
        """Fold a successful segment into the run"""
        unit.text = result.text
        unit.credits_remaining_after = result.credits_remaining
        unit.credits_estimated = result.credits_estimated
        unit.succeeded = True

        if self.accumulated_text and result.text:
            self.accumulated_text += " "
        self.accumulated_text += result.text
        self.credits_used += 1
        self.credits_remaining = result.credits_remaining


class RunContext:
    """
    Handle for one run, passed through every pipeline step.

    Cancellation is recorded here and observed at segment boundaries.
    """

    def __init__(self, source: AudioSource):
        self.source = source
        self.estimate: Optional[CreditEstimate] = None
        self.run: Optional[PipelineRun] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self.run is not None:
            self.run.cancelled = True
