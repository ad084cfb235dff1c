"""Favorite, completion, edit and delete mutations.

Every mutation writes to the store first and only touches the cache once
the store accepted the change, so a failed write never leaves the cache
ahead of persisted state.
"""

from dataclasses import replace
from typing import Any

from ..logging import JSONLLogger, get_logger
from .cache import MemoryCache
from .errors import StorageError
from .models import Memory
from .store import MemoryStore


class MutationRouter:
    """Applies user mutations to the store and then the cache."""

    def __init__(
        self,
        store: MemoryStore,
        cache: MemoryCache,
        logger: JSONLLogger | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.logger = logger or get_logger()

    def _current(self, memory_id: str) -> Memory:
        """Read a memory from the cache, falling back to the store."""
        memory = self.cache.get(memory_id)
        if memory is None:
            memory = self.store.get(memory_id)
        return memory

    def _apply(self, action: str, memory_id: str, fields: dict[str, Any]) -> None:
        try:
            self.store.apply_patch(memory_id, fields)
        except StorageError as e:
            self.logger.log_mutation(action, memory_id, False, error=str(e))
            raise
        self.cache.patch(memory_id, fields)
        self.logger.log_mutation(action, memory_id, True, **fields)

    def toggle_favorite(self, memory_id: str) -> bool:
        """Flip is_favorite and return the new value.

        Raises:
            NotFound: If the memory does not exist.
            StorageUnavailable: If the store rejected the write.
        """
        value = not self._current(memory_id).is_favorite
        self._apply("toggle_favorite", memory_id, {"is_favorite": value})
        return value

    def toggle_completion(self, memory_id: str) -> bool:
        """Flip is_completed and return the new value.

        Meaningful for tasks and reminders; other categories are not
        rejected here.
        """
        value = not self._current(memory_id).is_completed
        self._apply("toggle_completion", memory_id, {"is_completed": value})
        return value

    def edit(
        self,
        memory_id: str,
        *,
        title: str | None = None,
        summary: str | None = None,
        content: str | None = None,
    ) -> Memory:
        """Replace text fields of a memory and return the updated record."""
        fields = {
            name: value
            for name, value in (("title", title), ("summary", summary), ("content", content))
            if value is not None
        }
        if not fields:
            raise ValueError("Nothing to edit")

        current = self._current(memory_id)
        self._apply("edit", memory_id, fields)
        return self.cache.get(memory_id) or replace(current, **fields)

    def delete(self, memory_id: str) -> None:
        """Hard-delete a memory. Deleting a missing memory is not an error."""
        try:
            removed = self.store.remove(memory_id)
        except StorageError as e:
            self.logger.log_mutation("delete", memory_id, False, error=str(e))
            raise
        self.cache.remove_by_id(memory_id)
        self.logger.log_mutation("delete", memory_id, True, removed=removed)
