import uuid

import numpy as np
from jose import jwt

from sinhala_scribe.audio.decoder import DecodedAudio
from sinhala_scribe.audio.source import AudioSource
from sinhala_scribe.audio.wav import encode_wav
from sinhala_scribe.core.config import settings
from sinhala_scribe.services.transcription_provider import TranscriptionProvider


class FakeProvider(TranscriptionProvider):
    """Provider returning canned text, or raising a canned error"""

    name = "fake"

    def __init__(self, texts=None, error=None):
        super().__init__(timeout=5)
        self.texts = list(texts or [])
        self.error = error
        self.calls = 0

    async def _transcribe(self, api_key, audio_base64, mime_type, sample_rate):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.texts.pop(0) if self.texts else "ආයුබෝවන්"


def make_token(user_id: uuid.UUID, **claims) -> str:
    payload = {"sub": str(user_id), "email": "user@example.com", **claims}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def sine_wav(seconds: float, sample_rate: int = 16000, freq: float = 440.0) -> bytes:
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    return encode_wav(0.5 * np.sin(2 * np.pi * freq * t), sample_rate)


class StaticDecoder:
    """Decoder returning fixed samples regardless of the source bytes"""

    def __init__(self, samples: np.ndarray, sample_rate: int, error: Exception = None) -> None:
        self.decoded = DecodedAudio(samples=np.atleast_2d(samples).astype(np.float32), sample_rate=sample_rate)
        self.error = error

    def probe_duration(self, source: AudioSource) -> float:
        if self.error is not None:
            raise self.error
        return self.decoded.duration_seconds

    def decode(self, source: AudioSource) -> DecodedAudio:
        if self.error is not None:
            raise self.error
        return self.decoded
