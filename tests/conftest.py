"""Shared fixtures."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from memorytap.logging import JSONLLogger, configure_logger
from memorytap.memory import Category, Memory, MemoryCache, SQLiteMemoryStore

BASE_TIME = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def jsonl_logger(tmp_path: Path) -> JSONLLogger:
    """Keep event logs out of the home directory."""
    return configure_logger(tmp_path / "logs")


def _make_memory(
    memory_id: str,
    minutes: int = 0,
    category: Category = Category.NOTE,
    owner_id: str = "user-1",
    **kwargs,
) -> Memory:
    """Create a memory captured `minutes` after BASE_TIME."""
    defaults = {
        "title": f"Title {memory_id}",
        "summary": f"Summary {memory_id}",
        "content": f"Transcript {memory_id}",
    }
    defaults.update(kwargs)
    return Memory(
        id=memory_id,
        owner_id=owner_id,
        category=category,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **defaults,
    )


def _make_response(content: str) -> Mock:
    """Create a mock chat completion response."""
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def store(tmp_path: Path) -> SQLiteMemoryStore:
    """Create a SQLiteMemoryStore with a temporary database."""
    store = SQLiteMemoryStore(tmp_path / "test_memories.db", tmp_path / "audio")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def cache(store: SQLiteMemoryStore) -> MemoryCache:
    return MemoryCache(store)


@pytest.fixture
def mock_client() -> AsyncMock:
    """Create a mock Groq client."""
    return AsyncMock()


@pytest.fixture
def make_memory():
    """Factory for memories at fixed offsets from BASE_TIME."""
    return _make_memory


@pytest.fixture
def make_response():
    """Factory for mock chat completion responses."""
    return _make_response
