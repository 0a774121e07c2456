from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, model_validator

from sinhala_scribe.schemas.base import CamelModel


class AnalyzeRequest(CamelModel):
    """Pre-flight estimate request"""
    duration_seconds: float = Field(..., gt=0, description="Total audio duration in seconds")


class AnalyzeResponse(CamelModel):
    """Pre-flight estimate"""
    duration_seconds: float
    required_credits: int
    current_credits: int
    can_proceed: bool


class ChunkTranscribeRequest(CamelModel):
    """One encoded segment to transcribe"""
    audio: str = Field(..., min_length=1, description="Base64 encoded WAV segment")
    chunk_index: int = Field(..., ge=0)
    total_chunks: int = Field(..., ge=1)

    @model_validator(mode="after")
    def check_index_in_range(self) -> "ChunkTranscribeRequest":
        if self.chunk_index >= self.total_chunks:
            raise ValueError("chunkIndex must be lower than totalChunks")
        return self


class ChunkTranscribeResponse(CamelModel):
    """Transcript for one segment and the balance after billing it"""
    text: str
    credits_remaining: int
    chunk_index: int
    # True when the balance is a local estimate because the deduction failed
    credits_estimated: bool = False


class SaveTranscriptRequest(CamelModel):
    """Finished (or partial) transcript to persist"""
    text: str = Field(..., min_length=1)
    duration_seconds: float = Field(..., ge=0)
    credits_used: int = Field(..., ge=0)
    is_partial: bool = False
    title: Optional[str] = Field(None, max_length=200)


class SaveTranscriptResponse(CamelModel):
    transcription_id: UUID


class TranscriptionOut(CamelModel):
    """Stored transcript"""
    id: UUID
    title: Optional[str] = None
    transcription_text: str
    audio_duration_seconds: Optional[int] = None
    credits_used: int
    is_partial: bool
    created_at: Optional[datetime] = None


class DeleteResponse(CamelModel):
    success: bool = True
