"""Audio capture collaborators."""

import mimetypes
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from ..memory.errors import DeviceUnavailable
from ..memory.models import AudioArtifact


@dataclass(frozen=True)
class CaptureHandle:
    """Opaque token for an in-progress recording."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.monotonic)


class AudioCapture(ABC):
    """Source of recorded audio."""

    @abstractmethod
    def start_capture(self) -> CaptureHandle:
        """Start recording. Raises DeviceUnavailable if the device cannot open."""
        ...

    @abstractmethod
    def stop_capture(self, handle: CaptureHandle) -> AudioArtifact:
        """Stop recording and return the finished artifact."""
        ...


class FileAudioCapture(AudioCapture):
    """Treats an existing recording on disk as the capture device.

    Useful for importing notes recorded elsewhere and for driving the
    pipeline from the command line.
    """

    def __init__(self, path: Path, content_type: str | None = None) -> None:
        self.path = path
        self.content_type = content_type or self._guess_content_type(path)

    @staticmethod
    def _guess_content_type(path: Path) -> str:
        if path.suffix.lower() == ".webm":
            return "audio/webm"
        guessed, _ = mimetypes.guess_type(path.name)
        return guessed or "application/octet-stream"

    def start_capture(self) -> CaptureHandle:
        if not self.path.is_file():
            raise DeviceUnavailable(f"No recording at {self.path}")
        return CaptureHandle()

    def stop_capture(self, handle: CaptureHandle) -> AudioArtifact:
        try:
            data = self.path.read_bytes()
        except OSError as e:
            raise DeviceUnavailable(f"Cannot read {self.path}: {e}") from e
        return AudioArtifact(data=data, content_type=self.content_type)
