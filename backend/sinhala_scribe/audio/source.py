import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from sinhala_scribe.core.config import settings
from sinhala_scribe.core.exceptions import AudioValidationError


@dataclass(frozen=True)
class AudioSource:
    """Captured or uploaded audio, immutable once created"""

    data: bytes
    filename: str = "recording.webm"
    mime_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()

    @property
    def format(self) -> Optional[str]:
        """Container hint for the decoder (``wav``, ``webm``...), if known"""
        if self.extension:
            return self.extension.lstrip(".")
        if self.mime_type:
            guessed = mimetypes.guess_extension(self.mime_type)
            if guessed:
                return guessed.lstrip(".")
        return None

    @classmethod
    def from_bytes(
            cls,
            data: bytes,
            filename: str = "recording.webm",
            mime_type: Optional[str] = "audio/webm",
            max_size: Optional[int] = None,
    ) -> "AudioSource":
        """Wrap an already captured stream"""
        source = cls(data=bytes(data), filename=filename, mime_type=mime_type)
        source.validate(max_size=max_size)
        return source

    @classmethod
    def from_path(
            cls,
            path: Union[str, Path],
            max_size: Optional[int] = None,
            allowed_extensions: Optional[Iterable[str]] = None,
    ) -> "AudioSource":
        """Load an uploaded file, rejecting unsupported or oversized input"""
        path = Path(path)
        allowed = [e.lower() for e in (allowed_extensions or settings.SUPPORTED_AUDIO_EXTENSIONS)]
        if path.suffix.lower() not in allowed:
            raise AudioValidationError(
                f"Unsupported audio format '{path.suffix}'. Supported: {', '.join(allowed)}"
            )

        limit = max_size if max_size is not None else settings.MAX_UPLOAD_SIZE
        if path.stat().st_size > limit:
            raise AudioValidationError(f"Audio file exceeds {limit // (1024 * 1024)} MB limit")

        mime_type, _ = mimetypes.guess_type(path.name)
        source = cls(data=path.read_bytes(), filename=path.name, mime_type=mime_type)
        source.validate(max_size=limit)
        return source

    def validate(self, max_size: Optional[int] = None) -> None:
        limit = max_size if max_size is not None else settings.MAX_UPLOAD_SIZE
        if not self.data:
            raise AudioValidationError("Audio source is empty")
        if self.size > limit:
            raise AudioValidationError(f"Audio exceeds {limit // (1024 * 1024)} MB limit")
