from sinhala_scribe.audio.chunker import AudioChunk, Chunker, SegmentStream
from sinhala_scribe.audio.decoder import AudioDecoder, DecodedAudio, PydubDecoder
from sinhala_scribe.audio.source import AudioSource
from sinhala_scribe.audio.wav import encode_wav, to_base64

__all__ = [
    "AudioChunk",
    "AudioDecoder",
    "AudioSource",
    "Chunker",
    "DecodedAudio",
    "PydubDecoder",
    "SegmentStream",
    "encode_wav",
    "to_base64",
]
