"""
Canonical wire format for audio segments: mono 16-bit little-endian PCM
in a 44-byte RIFF/WAVE container, plus base64 for JSON transport.
"""
import base64
import struct

import numpy as np


WAV_HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
NUM_CHANNELS = 1
BLOCK_ALIGN = NUM_CHANNELS * BITS_PER_SAMPLE // 8
PCM_FORMAT = 1

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


def quantize(samples: np.ndarray) -> np.ndarray:
    """
    Map float samples to int16.

    Values are clamped to [-1.0, 1.0]; negatives scale by 32768 and
    positives by 32767, then truncate toward zero. NaN becomes silence.
    """
    s = np.asarray(samples, dtype=np.float32).astype(np.float64)
    s = np.nan_to_num(s, nan=0.0)
    s = np.clip(s, -1.0, 1.0)
    scaled = np.where(s < 0, s * 32768.0, s * 32767.0)
    return np.trunc(scaled).astype(np.int16)


def wav_header(num_samples: int, sample_rate: int) -> bytes:
    data_size = num_samples * BLOCK_ALIGN
    byte_rate = sample_rate * BLOCK_ALIGN
    return _HEADER.pack(
        b"RIFF", 36 + data_size, b"WAVE",
        b"fmt ", 16, PCM_FORMAT, NUM_CHANNELS, sample_rate, byte_rate, BLOCK_ALIGN, BITS_PER_SAMPLE,
        b"data", data_size,
    )


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """Encode one window of mono float samples as a PCM WAV byte string."""
    if sample_rate <= 0:
        raise ValueError("sample_rate must be positive")

    pcm = quantize(np.ravel(samples))
    return wav_header(pcm.size, sample_rate) + pcm.astype("<i2").tobytes()


def to_base64(payload: bytes) -> str:
    """Standard base64 text for embedding a payload in a JSON body."""
    return base64.b64encode(payload).decode("ascii")
