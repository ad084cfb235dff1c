"""In-process mirror of the persisted memories for the active session."""

import logging
from collections.abc import Iterator
from dataclasses import replace
from typing import Any

from .models import Memory, validate_patch
from .store import MemoryStore

logger = logging.getLogger(__name__)


def _newest_first(memories: list[Memory]) -> list[Memory]:
    return sorted(memories, key=lambda m: m.created_at, reverse=True)


class MemoryCache:
    """Ordered collection of memories, newest first.

    The cache only ever holds records that were persisted; it is filled by
    load() and updated after each successful store write. Ids are unique.
    """

    def __init__(self, store: MemoryStore) -> None:
        self.store = store
        self.owner_id: str | None = None
        self._items: list[Memory] = []

    def load(self, owner_id: str) -> None:
        """Replace the cache content with everything the store holds for owner_id.

        Raises:
            StorageUnavailable: If the store cannot be read. The previous
                content is kept in that case.
        """
        memories = self.store.list_all(owner_id)

        unique: dict[str, Memory] = {}
        for memory in memories:
            if memory.id in unique:
                logger.warning("Duplicate memory id %s in store, keeping one", memory.id)
            unique[memory.id] = memory

        self._items = _newest_first(list(unique.values()))
        self.owner_id = owner_id

    def clear(self) -> None:
        """Drop all cached records, e.g. on sign-out."""
        self._items = []
        self.owner_id = None

    def prepend(self, memory: Memory) -> None:
        """Insert a freshly persisted memory at the front."""
        self._items = [m for m in self._items if m.id != memory.id]
        if self._items and memory.created_at < self._items[0].created_at:
            # Clock went backwards; keep the ordering invariant.
            self._items = _newest_first([memory, *self._items])
        else:
            self._items.insert(0, memory)

    def patch(self, memory_id: str, fields: dict[str, Any]) -> None:
        """Update fields of a cached memory. No-op if it is not cached."""
        validate_patch(fields)
        for index, memory in enumerate(self._items):
            if memory.id == memory_id:
                self._items[index] = replace(memory, **fields)
                return

    def remove_by_id(self, memory_id: str) -> None:
        """Remove a memory from the cache. No-op if it is not cached."""
        self._items = [m for m in self._items if m.id != memory_id]

    def get(self, memory_id: str) -> Memory | None:
        for memory in self._items:
            if memory.id == memory_id:
                return memory
        return None

    def snapshot(self) -> tuple[Memory, ...]:
        """Immutable view of the current content, newest first."""
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Memory]:
        return iter(self.snapshot())

    def __contains__(self, memory_id: object) -> bool:
        return any(m.id == memory_id for m in self._items)
