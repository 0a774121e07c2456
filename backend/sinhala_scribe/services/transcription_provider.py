import asyncio
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import TranscriptionProviderError, TranscriptionTimeout


SINHALA_TRANSCRIPTION_PROMPT = (
    "Please transcribe the following audio recording into Sinhala text accurately. "
    "Do not add any interpretations or summaries, just provide the exact transcription "
    "of the spoken Sinhala words."
)


class TranscriptionProvider(ABC):
    """
    A backend that accepts base64 PCM/WAV audio and returns best-effort text.

    Every call is bounded by ``timeout``; when it expires the in-flight
    request is cancelled and ``TranscriptionTimeout`` is raised.
    """

    name: str = "provider"
    default_timeout: float = 60.0

    def __init__(
            self,
            timeout: Optional[float] = None,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or self.default_timeout
        self._transport = transport

    async def transcribe(
            self,
            api_key: str,
            audio_base64: str,
            mime_type: str = "audio/wav",
            sample_rate: int = settings.TARGET_SAMPLE_RATE,
    ) -> str:
        """
        Transcribe one audio segment

        Args:
            api_key: Provider API key
            audio_base64: Base64 encoded audio
            mime_type: MIME type of the audio
            sample_rate: Sample rate of the PCM data in Hz

        Returns:
            Transcript text, empty for silence

        Raises:
            TranscriptionTimeout: If the call exceeds the timeout
            TranscriptionProviderError: On a non-2xx response or transport failure
        """
        if not api_key:
            raise TranscriptionProviderError(f"{self.name}: API key is missing")

        try:
            return await asyncio.wait_for(
                self._transcribe(api_key, audio_base64, mime_type, sample_rate),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"{self.name} transcription timed out after {self.timeout}s")
            raise TranscriptionTimeout(f"{self.name} transcription timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error with {self.name}: {e}")
            raise TranscriptionProviderError(f"{self.name}: connection error: {e}") from e

    @abstractmethod
    async def _transcribe(self, api_key: str, audio_base64: str, mime_type: str, sample_rate: int) -> str:
        ...

    async def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        # The client-level timeout is a safety net; wait_for enforces the real deadline
        async with httpx.AsyncClient(timeout=self.timeout + 5, transport=self._transport) as client:
            response = await client.post(url, json=payload, headers=headers)

        if response.status_code < 200 or response.status_code >= 300:
            detail = response.text
            logger.error(f"{self.name} returned {response.status_code}: {detail[:500]}")
            if settings.is_production:
                detail = f"Error code: {response.status_code}"
            raise TranscriptionProviderError(
                f"{self.name} API error ({response.status_code})",
                status_code=response.status_code,
                detail=detail,
            )

        try:
            return response.json()
        except ValueError as e:
            raise TranscriptionProviderError(
                f"{self.name} returned invalid JSON", status_code=response.status_code
            ) from e


class GeminiProvider(TranscriptionProvider):
    """Multimodal generation backend with a verbatim-transcription prompt"""

    name = "gemini"
    default_timeout = 60.0
    base_url = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(self, model: str = settings.GEMINI_MODEL, **kwargs):
        super().__init__(**kwargs)
        self.model = model

    async def _transcribe(self, api_key: str, audio_base64: str, mime_type: str, sample_rate: int) -> str:
        payload = {
            "contents": [{
                "role": "user",
                "parts": [
                    {"inline_data": {"mime_type": mime_type, "data": audio_base64}},
                    {"text": SINHALA_TRANSCRIPTION_PROMPT},
                ],
            }],
            "generationConfig": {
                "temperature": 0.1,
                "topP": 0.8,
                "topK": 40,
            },
        }
        data = await self._post(
            f"{self.base_url}/models/{self.model}:generateContent",
            payload,
            headers={"x-goog-api-key": api_key},
        )

        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts).strip()


class SpeechToTextProvider(TranscriptionProvider):
    """Dedicated speech recognition backend"""

    name = "speech-to-text"
    default_timeout = 90.0
    url = "https://speech.googleapis.com/v1/speech:recognize"

    def __init__(self, language_code: str = settings.TRANSCRIPTION_LANGUAGE, **kwargs):
        super().__init__(**kwargs)
        self.language_code = language_code

    async def _transcribe(self, api_key: str, audio_base64: str, mime_type: str, sample_rate: int) -> str:
        payload = {
            "config": {
                "encoding": "LINEAR16",
                "sampleRateHertz": sample_rate,
                "languageCode": self.language_code,
                "enableAutomaticPunctuation": True,
            },
            "audio": {"content": audio_base64},
        }
        data = await self._post(self.url, payload, headers={"x-goog-api-key": api_key})

        results = data.get("results") or []
        return " ".join(
            ((result.get("alternatives") or [{}])[0]).get("transcript", "")
            for result in results
        )


PROVIDERS = {
    GeminiProvider.name: GeminiProvider,
    SpeechToTextProvider.name: SpeechToTextProvider,
}


def build_transcription_provider(name: str, **kwargs) -> TranscriptionProvider:
    """Instantiate a provider by its configured name"""
    try:
        provider_cls = PROVIDERS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown transcription provider: {name}")
    return provider_cls(**kwargs)


@lru_cache()
def get_transcription_provider() -> TranscriptionProvider:
    """The process-wide provider selected by TRANSCRIPTION_PROVIDER"""
    provider = build_transcription_provider(
        settings.TRANSCRIPTION_PROVIDER, timeout=settings.TRANSCRIPTION_TIMEOUT
    )
    logger.info(f"Transcription provider: {provider.name} (timeout {provider.timeout}s)")
    return provider
