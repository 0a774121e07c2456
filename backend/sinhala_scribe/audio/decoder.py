import io
import tempfile
from dataclasses import dataclass
from typing import Protocol

import ffmpeg
import numpy as np
from loguru import logger
from pydub import AudioSegment

from sinhala_scribe.audio.source import AudioSource
from sinhala_scribe.core.exceptions import DecodeError


@dataclass
class DecodedAudio:
    """Raw float samples shaped (channels, frames) at the source's native rate"""

    samples: np.ndarray
    sample_rate: int

    @property
    def channels(self) -> int:
        return self.samples.shape[0]

    @property
    def frames(self) -> int:
        return self.samples.shape[-1]

    @property
    def duration_seconds(self) -> float:
        return self.frames / self.sample_rate


class AudioDecoder(Protocol):
    """Platform decoding capability used by the chunker and the pipeline"""

    def probe_duration(self, source: AudioSource) -> float:
        ...

    def decode(self, source: AudioSource) -> DecodedAudio:
        ...


class PydubDecoder:
    """Decoder backed by pydub for samples and ffprobe for metadata"""

    def probe_duration(self, source: AudioSource) -> float:
        """
        Discover the total duration without decoding every sample.

        Falls back to a full decode when the container carries no duration
        (browser WebM recordings often don't) or ffprobe is unavailable.

        Raises:
            DecodeError: If the container cannot be parsed or has no duration
        """
        suffix = f".{source.format}" if source.format else ""
        try:
            with tempfile.NamedTemporaryFile(suffix=suffix) as tmp:
                tmp.write(source.data)
                tmp.flush()
                info = ffmpeg.probe(tmp.name)
        except ffmpeg.Error as e:
            stderr = e.stderr.decode(errors="replace") if e.stderr else "no details"
            logger.error(f"ffprobe could not parse {source.filename}: {stderr}")
            raise DecodeError(f"Failed to load audio metadata for {source.filename}") from e
        except FileNotFoundError:
            logger.warning("ffprobe not found, discovering duration by decoding")
            return self.decode(source).duration_seconds

        duration = _duration_from_probe(info)
        if duration is None:
            logger.debug(f"No duration in container metadata for {source.filename}, decoding")
            return self.decode(source).duration_seconds
        if duration <= 0:
            raise DecodeError(f"Audio source {source.filename} is empty")
        return duration

    def decode(self, source: AudioSource) -> DecodedAudio:
        """
        Decode the whole source into float samples in [-1.0, 1.0].

        Raises:
            DecodeError: If the source cannot be decoded or holds no samples
        """
        # WAV is parsed natively; anything else goes through ffmpeg with container sniffing
        container = "wav" if source.format == "wav" else None
        try:
            segment = AudioSegment.from_file(io.BytesIO(source.data), format=container)
        except Exception as e:
            logger.error(f"Error decoding {source.filename}: {e}")
            raise DecodeError(f"Failed to decode audio {source.filename}: {e}") from e

        if segment.frame_count() == 0:
            raise DecodeError(f"Audio source {source.filename} is empty")

        raw = np.array(segment.get_array_of_samples(), dtype=np.float32)
        scale = float(1 << (8 * segment.sample_width - 1))
        samples = raw.reshape((-1, segment.channels)).T / scale

        logger.debug(
            f"Decoded {source.filename}: {segment.channels} channel(s) at {segment.frame_rate} Hz, "
            f"{segment.duration_seconds:.2f}s"
        )
        return DecodedAudio(samples=samples.astype(np.float32), sample_rate=segment.frame_rate)


def _duration_from_probe(info: dict):
    candidates = [info.get("format", {}).get("duration")]
    candidates += [s.get("duration") for s in info.get("streams", []) if s.get("codec_type") == "audio"]
    for value in candidates:
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None
