"""Error taxonomy for the memory core."""


class MemoryTapError(Exception):
    """Base class for all memorytap errors."""


class DeviceUnavailable(MemoryTapError):
    """The audio capture device could not be opened or read."""


class TooShort(MemoryTapError):
    """The captured audio is below the configured minimum size."""


class ProcessingError(MemoryTapError):
    """The transcription/classification service failed or returned garbage."""


class StorageError(MemoryTapError):
    """Base class for persistence failures."""


class StorageUnavailable(StorageError):
    """The backing medium could not be read or written."""


class DuplicateId(StorageError):
    """A record with the same id already exists."""

    def __init__(self, memory_id: str) -> None:
        super().__init__(f"Memory already exists: {memory_id}")
        self.memory_id = memory_id


class NotFound(StorageError):
    """No record exists with the given id."""

    def __init__(self, memory_id: str) -> None:
        super().__init__(f"Memory not found: {memory_id}")
        self.memory_id = memory_id


class InsightUnavailable(MemoryTapError):
    """The insight service failed. Callers degrade to a fallback payload."""
