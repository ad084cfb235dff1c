"""Memory collection: models, storage, cache, ingestion, mutations and queries."""

from .cache import MemoryCache
from .errors import (
    DeviceUnavailable,
    DuplicateId,
    InsightUnavailable,
    MemoryTapError,
    NotFound,
    ProcessingError,
    StorageError,
    StorageUnavailable,
    TooShort,
)
from .ingestion import (
    CaptureOutcome,
    CaptureState,
    FailureReason,
    IngestionPipeline,
    Notice,
    NoticeLevel,
)
from .models import AudioArtifact, Category, Memory, ProcessingResult
from .mutations import MutationRouter
from .store import LocalMemoryStore, MemoryStore, SQLiteMemoryStore

__all__ = [
    "AudioArtifact",
    "CaptureOutcome",
    "CaptureState",
    "Category",
    "DeviceUnavailable",
    "DuplicateId",
    "FailureReason",
    "IngestionPipeline",
    "InsightUnavailable",
    "LocalMemoryStore",
    "Memory",
    "MemoryCache",
    "MemoryStore",
    "MemoryTapError",
    "MutationRouter",
    "NotFound",
    "Notice",
    "NoticeLevel",
    "ProcessingError",
    "ProcessingResult",
    "SQLiteMemoryStore",
    "StorageError",
    "StorageUnavailable",
    "TooShort",
]
