"""Data models for the memory system."""

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import ProcessingError


class Category(str, Enum):
    """Closed set of memory categories assigned at ingestion."""

    TASK = "task"
    REMINDER = "reminder"
    IDEA = "idea"
    NOTE = "note"


ACTIONABLE_CATEGORIES = frozenset({Category.TASK, Category.REMINDER})

# Fields a mutation may change after creation.
MUTABLE_FIELDS = {
    "title": str,
    "summary": str,
    "content": str,
    "is_favorite": bool,
    "is_completed": bool,
}


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO timestamp, assuming UTC when no offset is present."""
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def validate_patch(fields: dict[str, Any]) -> dict[str, Any]:
    """Check a partial update against MUTABLE_FIELDS.

    Args:
        fields: Attribute name to new value.

    Returns:
        The same mapping, for chaining.

    Raises:
        ValueError: If the patch is empty, names an immutable or unknown
            field, or carries a value of the wrong type.
    """
    if not fields:
        raise ValueError("Patch must contain at least one field")
    for name, value in fields.items():
        expected = MUTABLE_FIELDS.get(name)
        if expected is None:
            raise ValueError(f"Field '{name}' cannot be changed")
        if not isinstance(value, expected):
            raise ValueError(f"Field '{name}' must be a {expected.__name__}")
    return fields


@dataclass(frozen=True)
class Memory:
    """A captured voice note after transcription and classification.

    Attributes:
        id: Opaque unique identifier, generated at creation.
        owner_id: The user who owns the memory.
        title: Short title produced by the classifier.
        summary: One or two sentence summary.
        content: Full transcript.
        category: One of the four fixed categories.
        created_at: Capture time (aware UTC), the sort key.
        audio_ref: URL or path of the stored audio, if any.
        is_favorite: User-toggled favorite flag.
        is_completed: User-toggled completion flag (tasks and reminders).
        duration_sec: Length of the recording when known.
    """

    id: str
    owner_id: str
    title: str
    summary: str
    content: str
    category: Category
    created_at: datetime
    audio_ref: str | None = None
    is_favorite: bool = False
    is_completed: bool = False
    duration_sec: float | None = None

    @property
    def is_actionable(self) -> bool:
        """True for tasks and reminders."""
        return self.category in ACTIONABLE_CATEGORIES

    def to_dict(self) -> dict[str, Any]:
        """Convert to the canonical persisted record shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "ownerId": self.owner_id,
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "category": self.category.value,
            "isFavorite": self.is_favorite,
            "isCompleted": self.is_completed,
            "createdAt": self.created_at.isoformat(),
        }
        if self.audio_ref is not None:
            data["audioRef"] = self.audio_ref
        if self.duration_sec is not None:
            data["durationSec"] = self.duration_sec
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Memory":
        """Create from a canonical record."""
        return cls(
            id=str(data["id"]),
            owner_id=str(data["ownerId"]),
            title=data["title"],
            summary=data["summary"],
            content=data["content"],
            category=Category(data["category"]),
            created_at=parse_timestamp(data["createdAt"]),
            audio_ref=data.get("audioRef"),
            is_favorite=bool(data.get("isFavorite", False)),
            is_completed=bool(data.get("isCompleted", False)),
            duration_sec=data.get("durationSec"),
        )


@dataclass(frozen=True)
class ProcessingResult:
    """Validated output of the transcription/classification service."""

    title: str
    summary: str
    transcript: str
    category: Category

    @classmethod
    def from_payload(cls, payload: Any, transcript: str | None = None) -> "ProcessingResult":
        """Build a result from a decoded service response.

        Args:
            payload: Decoded JSON from the service.
            transcript: Transcript obtained separately, if the payload
                does not carry one.

        Raises:
            ProcessingError: If a required field is missing, empty or not a
                string, or the category is outside the fixed set.
        """
        if not isinstance(payload, dict):
            raise ProcessingError("Response is not a JSON object")

        if transcript is None:
            transcript = payload.get("transcript", payload.get("transcription"))

        values = {
            "title": payload.get("title"),
            "summary": payload.get("summary"),
            "transcript": transcript,
        }
        for name, value in values.items():
            if not isinstance(value, str) or not value.strip():
                raise ProcessingError(f"Response field '{name}' is missing or empty")

        raw_category = payload.get("category")
        try:
            category = Category(str(raw_category).strip().lower())
        except ValueError:
            raise ProcessingError(f"Unknown category: {raw_category!r}") from None

        return cls(
            title=values["title"].strip(),
            summary=values["summary"].strip(),
            transcript=values["transcript"].strip(),
            category=category,
        )


@dataclass(frozen=True)
class AudioArtifact:
    """A finished recording handed over by the capture collaborator."""

    data: bytes = field(repr=False)
    content_type: str = "audio/webm"
    duration_sec: float | None = None

    @property
    def size(self) -> int:
        """Size of the payload in bytes."""
        return len(self.data)

    @property
    def extension(self) -> str:
        """File extension matching the content type, without the dot."""
        base = self.content_type.split(";")[0].strip()
        if base == "audio/webm":
            return "webm"
        guessed = mimetypes.guess_extension(base)
        return guessed.lstrip(".") if guessed else "bin"

    @property
    def filename(self) -> str:
        """Upload filename for services that need one."""
        return f"audio.{self.extension}"
