from typing import Any, Dict, Optional, Protocol

import httpx
from loguru import logger

from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import (
    EstimationError,
    InsufficientCredit,
    PersistenceError,
    TranscriptionProviderError,
    TranscriptionTimeout,
)
from sinhala_scribe.pipeline.models import CreditEstimate, SegmentResult


class CreditGateway(Protocol):
    """Remote metering/transcription operations the pipeline depends on"""

    async def estimate(self, duration_seconds: float) -> CreditEstimate:
        ...

    async def transcribe_segment(self, audio_base64: str, chunk_index: int, total_chunks: int) -> SegmentResult:
        ...

    async def persist_transcript(
            self, text: str, duration_seconds: float, credits_used: int, is_partial: bool
    ) -> str:
        ...

    async def fetch_credit_balance(self) -> int:
        ...


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)


class ApiGateway:
    """
    CreditGateway over the service's HTTP API.

    Usage:
        async with ApiGateway("http://localhost:8000", token) as gateway:
            estimate = await gateway.estimate(125.0)
    """

    def __init__(
            self,
            base_url: str,
            token: str,
            timeout: float = 120.0,
            api_prefix: str = settings.API_V1_STR,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + api_prefix,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def estimate(self, duration_seconds: float) -> CreditEstimate:
        """
        Raises:
            EstimationError: If the estimate cannot be obtained
        """
        data = await self._request_or(
            EstimationError, "POST", "/transcribe/analyze", json={"durationSeconds": duration_seconds}
        )
        return CreditEstimate(
            duration_seconds=float(data["durationSeconds"]),
            required_credits=int(data["requiredCredits"]),
            current_credits=int(data["currentCredits"]),
            can_proceed=bool(data["canProceed"]),
        )

    async def transcribe_segment(self, audio_base64: str, chunk_index: int, total_chunks: int) -> SegmentResult:
        """
        Raises:
            InsufficientCredit: On the reserved 402 answer
            TranscriptionTimeout: If the request or the upstream provider timed out
            TranscriptionProviderError: On any other failure
        """
        payload = {"audio": audio_base64, "chunkIndex": chunk_index, "totalChunks": total_chunks}
        try:
            response = await self._client.post("/transcribe/chunk", json=payload)
        except httpx.TimeoutException as e:
            raise TranscriptionTimeout(f"Chunk {chunk_index + 1}/{total_chunks} request timed out") from e
        except httpx.HTTPError as e:
            raise TranscriptionProviderError(f"Chunk {chunk_index + 1}/{total_chunks} request failed: {e}") from e

        if response.status_code == 402:
            raise InsufficientCredit(_error_detail(response))
        if response.status_code == 504:
            raise TranscriptionTimeout(_error_detail(response))
        if response.is_error:
            raise TranscriptionProviderError(
                f"Chunk {chunk_index + 1}/{total_chunks} failed ({response.status_code})",
                status_code=response.status_code,
                detail=_error_detail(response),
            )

        # A malformed success body is retried like any other provider failure
        try:
            data = response.json()
            return SegmentResult(
                text=data.get("text") or "",
                credits_remaining=int(data["creditsRemaining"]),
                chunk_index=int(data.get("chunkIndex", chunk_index)),
                credits_estimated=bool(data.get("creditsEstimated", False)),
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Chunk {chunk_index + 1}/{total_chunks} returned an unreadable body: {e}")
            raise TranscriptionProviderError(
                f"Chunk {chunk_index + 1}/{total_chunks} returned an unreadable response",
                status_code=response.status_code,
                detail=response.text[:200],
            ) from e

    async def persist_transcript(
            self, text: str, duration_seconds: float, credits_used: int, is_partial: bool
    ) -> str:
        """
        Raises:
            PersistenceError: If the transcript could not be saved
        """
        data = await self._request_or(PersistenceError, "POST", "/transcribe/save", json={
            "text": text,
            "durationSeconds": duration_seconds,
            "creditsUsed": credits_used,
            "isPartial": is_partial,
        })
        return str(data["transcriptionId"])

    async def fetch_credit_balance(self) -> int:
        """
        Raises:
            EstimationError: If the balance cannot be read
        """
        data = await self._request_or(EstimationError, "GET", "/credits/balance")
        return int(data["credits"])

    async def _request_or(self, error_cls, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {e}")
            raise error_cls(f"{method} {url} failed: {e}") from e

        if response.is_error:
            detail = _error_detail(response)
            logger.error(f"{method} {url} returned {response.status_code}: {detail}")
            raise error_cls(detail)

        try:
            return response.json()
        except ValueError as e:
            raise error_cls(f"{method} {url} returned invalid JSON") from e
