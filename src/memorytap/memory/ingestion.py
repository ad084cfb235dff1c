"""Capture-to-memory pipeline.

One pipeline instance drives one capture attempt at a time through
idle -> capturing -> processing -> persisting -> done, with failed
reachable from every active state. Collaborator and storage failures end
the attempt in the failed state; nothing is persisted or cached for a
failed attempt.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from ..logging import JSONLLogger, get_logger
from .cache import MemoryCache
from .errors import DeviceUnavailable, ProcessingError, StorageError, TooShort
from .models import AudioArtifact, Memory, utc_now
from .store import MemoryStore

if TYPE_CHECKING:
    from ..services.capture import AudioCapture, CaptureHandle
    from ..services.processor import AudioProcessor

DEFAULT_MIN_AUDIO_BYTES = 1000


class CaptureState(str, Enum):
    """States of a single capture attempt."""

    IDLE = "idle"
    CAPTURING = "capturing"
    PROCESSING = "processing"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a capture attempt ended in the failed state."""

    DEVICE_UNAVAILABLE = "device_unavailable"
    TOO_SHORT = "too_short"
    PROCESSING_ERROR = "processing_error"
    STORAGE_ERROR = "storage_error"


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """A short, non-blocking message for the user."""

    message: str
    level: NoticeLevel = NoticeLevel.SUCCESS


Notifier = Callable[[Notice], None]


@dataclass(frozen=True)
class CaptureOutcome:
    """Result of one capture attempt."""

    state: CaptureState
    memory: Memory | None = None
    reason: FailureReason | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state == CaptureState.DONE


FAILURE_MESSAGES = {
    FailureReason.DEVICE_UNAVAILABLE: "Microphone access denied",
    FailureReason.TOO_SHORT: "Recording too short",
    FailureReason.PROCESSING_ERROR: "Failed to process memory",
    FailureReason.STORAGE_ERROR: "Failed to save memory",
}


class IngestionPipeline:
    """Turns a finished recording into a persisted, cached Memory."""

    def __init__(
        self,
        store: MemoryStore,
        cache: MemoryCache,
        processor: AudioProcessor,
        owner_id: str,
        *,
        capture: AudioCapture | None = None,
        min_audio_bytes: int = DEFAULT_MIN_AUDIO_BYTES,
        notifier: Notifier | None = None,
        logger: JSONLLogger | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        """Initialize the pipeline.

        Args:
            store: Where new memories are persisted.
            cache: Session cache that receives persisted memories.
            processor: Transcription/classification collaborator.
            owner_id: Owner of every memory this pipeline creates.
            capture: Optional audio capture collaborator for
                start_capture/stop_capture.
            min_audio_bytes: Artifacts smaller than this never reach the
                processor.
            notifier: Receives success and failure notices.
            logger: Structured event log. Defaults to the global logger.
            clock: Source of created_at timestamps.
            id_factory: Source of new memory ids.
        """
        self.store = store
        self.cache = cache
        self.processor = processor
        self.owner_id = owner_id
        self.capture = capture
        self.min_audio_bytes = min_audio_bytes
        self.notifier = notifier
        self.logger = logger or get_logger()
        self.clock = clock
        self.id_factory = id_factory

        self.state = CaptureState.IDLE
        self.transitions: list[CaptureState] = [CaptureState.IDLE]
        self._handle: CaptureHandle | None = None
        self._started = 0.0

    def _transition(self, state: CaptureState, memory_id: str | None = None) -> None:
        previous = self.state
        self.state = state
        self.transitions.append(state)
        self.logger.log_transition(
            state.value,
            previous=previous.value,
            user_id=self.owner_id,
            memory_id=memory_id,
        )

    def _notify(self, message: str, level: NoticeLevel) -> None:
        if self.notifier is not None:
            self.notifier(Notice(message, level))

    def _fail(self, reason: FailureReason, error: Exception | None = None) -> CaptureOutcome:
        self._handle = None
        self._transition(CaptureState.FAILED)
        self.logger.log_capture_failed(
            reason.value,
            user_id=self.owner_id,
            error=str(error) if error else None,
            duration_ms=self._elapsed_ms(),
        )
        self._notify(FAILURE_MESSAGES[reason], NoticeLevel.ERROR)
        return CaptureOutcome(
            state=CaptureState.FAILED,
            reason=reason,
            error=str(error) if error else FAILURE_MESSAGES[reason],
        )

    def _elapsed_ms(self) -> float:
        return round((time.monotonic() - self._started) * 1000, 1)

    def reset(self) -> None:
        """Return to idle after a finished attempt."""
        self._handle = None
        if self.state != CaptureState.IDLE:
            self._transition(CaptureState.IDLE)

    def start_capture(self) -> CaptureOutcome | None:
        """Ask the capture collaborator to start recording.

        Returns:
            None when recording started, or a failed outcome if the device
            is unavailable.
        """
        if self.capture is None:
            raise RuntimeError("No capture collaborator configured")

        self.reset()
        self._started = time.monotonic()
        self._transition(CaptureState.CAPTURING)
        try:
            self._handle = self.capture.start_capture()
        except DeviceUnavailable as e:
            return self._fail(FailureReason.DEVICE_UNAVAILABLE, e)
        return None

    async def stop_capture(self) -> CaptureOutcome:
        """Stop recording and run the finished artifact through the pipeline."""
        if self.capture is None or self._handle is None or self.state != CaptureState.CAPTURING:
            raise RuntimeError("No capture in progress")

        handle, self._handle = self._handle, None
        try:
            artifact = self.capture.stop_capture(handle)
        except DeviceUnavailable as e:
            return self._fail(FailureReason.DEVICE_UNAVAILABLE, e)
        return await self._process(artifact)

    async def ingest(self, artifact: AudioArtifact) -> CaptureOutcome:
        """Run an already recorded artifact through the pipeline."""
        self.reset()
        self._started = time.monotonic()
        self._transition(CaptureState.CAPTURING)
        return await self._process(artifact)

    async def _process(self, artifact: AudioArtifact) -> CaptureOutcome:
        if artifact.size < self.min_audio_bytes:
            return self._fail(
                FailureReason.TOO_SHORT,
                TooShort(f"Recording is {artifact.size} bytes, minimum is {self.min_audio_bytes}"),
            )

        self._transition(CaptureState.PROCESSING)
        try:
            result = await self.processor.process(artifact)
        except ProcessingError as e:
            return self._fail(FailureReason.PROCESSING_ERROR, e)

        memory = Memory(
            id=self.id_factory(),
            owner_id=self.owner_id,
            title=result.title,
            summary=result.summary,
            content=result.transcript,
            category=result.category,
            created_at=self.clock(),
            duration_sec=artifact.duration_sec,
        )

        self._transition(CaptureState.PERSISTING, memory_id=memory.id)
        try:
            stored = self.store.insert(memory, audio=artifact)
        except StorageError as e:
            return self._fail(FailureReason.STORAGE_ERROR, e)

        self.cache.prepend(stored)
        self._transition(CaptureState.DONE, memory_id=stored.id)
        self.logger.log(
            "memory_saved",
            user_id=self.owner_id,
            memory_id=stored.id,
            duration_ms=self._elapsed_ms(),
            category=stored.category.value,
        )
        self._notify("Memory saved successfully!", NoticeLevel.SUCCESS)
        return CaptureOutcome(state=CaptureState.DONE, memory=stored)
