import math
from dataclasses import dataclass
from typing import Iterator, Optional

import librosa
import numpy as np
from loguru import logger

from sinhala_scribe.audio.decoder import AudioDecoder, PydubDecoder
from sinhala_scribe.audio.source import AudioSource
from sinhala_scribe.audio.wav import encode_wav
from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import DecodeError


@dataclass(frozen=True)
class AudioChunk:
    """One fixed-duration WAV segment of a source"""

    payload: bytes
    duration_seconds: float
    index: int


def downmix(samples: np.ndarray) -> np.ndarray:
    """Average all channels into one"""
    if samples.ndim == 1:
        return samples
    return samples.mean(axis=0, dtype=np.float32)


def resample(samples: np.ndarray, orig_sr: int, target_sr: int) -> np.ndarray:
    """Resample the whole mono buffer in one pass"""
    if orig_sr == target_sr:
        return samples
    return librosa.resample(samples, orig_sr=orig_sr, target_sr=target_sr).astype(np.float32)


class SegmentStream(Iterator[AudioChunk]):
    """
    Single-pass iterator over the chunks of one decoded source.

    The number of chunks is known up front; each window is WAV-encoded only
    when it is requested.
    """

    def __init__(self, samples: np.ndarray, sample_rate: int, chunk_duration: float):
        self._samples = samples
        self.sample_rate = sample_rate
        self.window = int(round(chunk_duration * sample_rate))
        self.total_chunks = math.ceil(samples.shape[-1] / self.window)
        self._offset = 0
        self._index = 0

    @property
    def duration_seconds(self) -> float:
        return self._samples.shape[-1] / self.sample_rate

    def __len__(self) -> int:
        return self.total_chunks

    def __iter__(self) -> "SegmentStream":
        return self

    def __next__(self) -> AudioChunk:
        if self._offset >= self._samples.shape[-1]:
            raise StopIteration

        window = self._samples[self._offset:self._offset + self.window]
        chunk = AudioChunk(
            payload=encode_wav(window, self.sample_rate),
            duration_seconds=window.shape[-1] / self.sample_rate,
            index=self._index,
        )
        self._offset += window.shape[-1]
        self._index += 1
        return chunk


class Chunker:
    """Split an audio source into contiguous mono WAV chunks"""

    def __init__(
            self,
            decoder: Optional[AudioDecoder] = None,
            chunk_duration: float = settings.CHUNK_DURATION_SECONDS,
            sample_rate: int = settings.TARGET_SAMPLE_RATE,
    ):
        if chunk_duration <= 0:
            raise ValueError("chunk_duration must be positive")
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.decoder = decoder or PydubDecoder()
        self.chunk_duration = chunk_duration
        self.sample_rate = sample_rate

    def split(self, source: AudioSource) -> SegmentStream:
        """
        Decode, downmix and resample the source, then return its chunk stream.

        Raises:
            DecodeError: If the source cannot be decoded
        """
        decoded = self.decoder.decode(source)
        mono = downmix(decoded.samples)
        if mono.size == 0:
            raise DecodeError(f"Audio source {source.filename} is empty")
        mono = resample(mono, decoded.sample_rate, self.sample_rate)

        stream = SegmentStream(mono, self.sample_rate, self.chunk_duration)
        logger.info(
            f"Split {source.filename} ({stream.duration_seconds:.2f}s) into "
            f"{stream.total_chunks} chunk(s) of up to {self.chunk_duration}s at {self.sample_rate} Hz"
        )
        return stream
