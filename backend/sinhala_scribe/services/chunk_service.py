import math
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import (
    DatabaseError,
    ExternalServiceError,
    GatewayTimeoutError,
    InsufficientCreditsError,
    PayloadTooLargeError,
    ServiceMisconfiguredError,
    TranscriptionProviderError,
    TranscriptionTimeout,
)
from sinhala_scribe.crud.crud_profile import profile_crud
from sinhala_scribe.models.models import Profile
from sinhala_scribe.schemas.transcription import (
    AnalyzeResponse,
    ChunkTranscribeRequest,
    ChunkTranscribeResponse,
)
from sinhala_scribe.services.transcription_provider import TranscriptionProvider


def required_credits(duration_seconds: float) -> int:
    """Credits needed for a recording, one per started billing unit"""
    return math.ceil(duration_seconds / settings.SECONDS_PER_CREDIT)


def base64_decoded_size(audio_base64: str) -> int:
    padding = audio_base64.count("=", max(0, len(audio_base64) - 2))
    return (len(audio_base64) * 3) // 4 - padding


class ChunkTranscriptionService:
    """Meters and transcribes one segment per request"""

    def __init__(self, provider: TranscriptionProvider, api_key: Optional[str] = None):
        self.provider = provider
        self.api_key = api_key if api_key is not None else settings.GOOGLE_CLOUD_API_KEY

    async def analyze(self, db: AsyncSession, *, profile: Profile, duration_seconds: float) -> AnalyzeResponse:
        """Pre-flight estimate against the current balance"""
        current = await profile_crud.get_balance(db, user_id=profile.id)
        if current is None:
            raise DatabaseError("Failed to fetch profile")

        needed = required_credits(duration_seconds)
        return AnalyzeResponse(
            duration_seconds=duration_seconds,
            required_credits=needed,
            current_credits=current,
            can_proceed=current >= needed,
        )

    async def transcribe_chunk(
            self, db: AsyncSession, *, profile: Profile, request: ChunkTranscribeRequest
    ) -> ChunkTranscribeResponse:
        """
        Transcribe one segment and bill it.

        The provider is called exactly once; retries are the client's job.
        The credit is taken only after usable text came back, and a failed
        deduction never discards that text.

        Raises:
            PayloadTooLargeError: If the decoded audio exceeds MAX_UPLOAD_SIZE
            ServiceMisconfiguredError: If no provider API key is configured
            InsufficientCreditsError: If the balance is below one credit
            GatewayTimeoutError: If the provider timed out
            ExternalServiceError: If the provider failed
        """
        chunk_label = f"{request.chunk_index + 1}/{request.total_chunks}"

        if base64_decoded_size(request.audio) > settings.MAX_UPLOAD_SIZE:
            raise PayloadTooLargeError(
                f"Audio chunk exceeds {settings.MAX_UPLOAD_SIZE // (1024 * 1024)} MB limit"
            )

        if not self.api_key:
            logger.error("GOOGLE_CLOUD_API_KEY is not configured")
            raise ServiceMisconfiguredError("API key not configured")

        balance = await profile_crud.get_balance(db, user_id=profile.id)
        if balance is None or balance < 1:
            logger.info(f"Refusing chunk {chunk_label} for {profile.id}: insufficient credits")
            raise InsufficientCreditsError()

        try:
            text = await self.provider.transcribe(
                self.api_key,
                request.audio,
                mime_type="audio/wav",
                sample_rate=settings.TARGET_SAMPLE_RATE,
            )
        except TranscriptionTimeout as e:
            logger.warning(f"Chunk {chunk_label} for {profile.id} timed out: {e}")
            raise GatewayTimeoutError(self.provider.name, str(e))
        except TranscriptionProviderError as e:
            logger.error(f"Chunk {chunk_label} for {profile.id} failed: {e} ({e.detail})")
            raise ExternalServiceError(self.provider.name, f"Failed to transcribe audio chunk: {e}")

        credits_remaining = balance - 1
        estimated = False
        try:
            result = await profile_crud.deduct_credit(
                db,
                user_id=profile.id,
                description=f"Transcription chunk {chunk_label}",
            )
            if result.success:
                credits_remaining = result.remaining_credits
            else:
                estimated = True
                logger.warning(
                    f"Credit deduction refused after transcribing chunk {chunk_label} "
                    f"for {profile.id}: {result.error_message}"
                )
        except DatabaseError as e:
            estimated = True
            logger.warning(f"Credit deduction failed after transcribing chunk {chunk_label} for {profile.id}: {e.detail}")

        logger.info(
            f"Chunk {chunk_label} for {profile.id} transcribed ({len(text)} chars), "
            f"{credits_remaining} credits left"
        )
        return ChunkTranscribeResponse(
            text=text,
            credits_remaining=max(credits_remaining, 0),
            chunk_index=request.chunk_index,
            credits_estimated=estimated,
        )
