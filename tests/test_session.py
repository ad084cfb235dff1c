"""Tests for MemorySession."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from memorytap.config import AppConfig
from memorytap.memory import (
    AudioArtifact,
    Category,
    NoticeLevel,
    ProcessingResult,
    SQLiteMemoryStore,
    StorageUnavailable,
)
from memorytap.services.capture import FileAudioCapture
from memorytap.services.insights import HABIT_FALLBACK, Briefing, HabitAnalysis
from memorytap.session import MemorySession, NotSignedIn


@pytest.fixture
def notices() -> list:
    return []


@pytest.fixture
def processor() -> AsyncMock:
    processor = AsyncMock()
    processor.process.return_value = ProcessingResult(
        title="Buy milk",
        summary="Buy milk today",
        transcript="I need to buy milk today",
        category=Category.TASK,
    )
    return processor


@pytest.fixture
def insights() -> AsyncMock:
    insights = AsyncMock()
    insights.briefing.return_value = Briefing(analysis="Focus!", priority_ids=["r1", "gone", "t1"])
    insights.habit_analysis.return_value = HabitAnalysis("Mornings", "Batch tasks", 77)
    return insights


@pytest.fixture
def session(
    store: SQLiteMemoryStore, processor: AsyncMock, insights: AsyncMock, notices: list, tmp_path: Path
) -> MemorySession:
    config = AppConfig(data_dir=tmp_path / "data", user_id="user-1", reminders_limit=2)
    return MemorySession(store, processor, insights, config=config, notifier=notices.append)


@pytest.fixture
def seeded(store: SQLiteMemoryStore, make_memory) -> SQLiteMemoryStore:
    store.insert(make_memory("t1", 0, Category.TASK, title="Call plumber"))
    store.insert(make_memory("r1", 1, Category.REMINDER, title="Dentist"))
    store.insert(make_memory("n1", 2, Category.NOTE, title="Groceries", summary="milk"))
    store.insert(make_memory("x1", 3, Category.TASK, owner_id="user-2"))
    return store


class TestLifecycle:
    def test_sign_in_loads_own_memories(self, session: MemorySession, seeded):
        session.sign_in("user-1")
        assert session.is_authenticated
        assert [m.id for m in session.cache] == ["n1", "r1", "t1"]

    def test_sign_out_clears_everything(self, session: MemorySession, seeded):
        session.sign_in("user-1")
        cache = session.cache
        session.sign_out()

        assert not session.is_authenticated
        assert session.cache is None
        assert len(cache) == 0

    def test_switching_users(self, session: MemorySession, seeded):
        """Signing in as someone else never leaks the previous cache."""
        session.sign_in("user-1")
        session.sign_in("user-2")
        assert [m.id for m in session.cache] == ["x1"]

    def test_requires_sign_in(self, session: MemorySession):
        with pytest.raises(NotSignedIn):
            session.timeline()
        with pytest.raises(NotSignedIn):
            session.handle_toggle_favorite("t1")

    @pytest.mark.asyncio
    async def test_ingest_requires_sign_in(self, session: MemorySession):
        with pytest.raises(NotSignedIn):
            await session.ingest(AudioArtifact(b"x" * 2000))

    def test_sign_in_storage_failure(self, session: MemorySession):
        with patch.object(session.store, "list_all", side_effect=StorageUnavailable("locked")):
            with pytest.raises(StorageUnavailable):
                session.sign_in("user-1")
        assert not session.is_authenticated

    def test_reload_picks_up_external_writes(self, session: MemorySession, seeded, make_memory):
        session.sign_in("user-1")
        seeded.insert(make_memory("i1", 10, Category.IDEA))
        session.reload()
        assert session.cache.snapshot()[0].id == "i1"


class TestCapture:
    @pytest.mark.asyncio
    async def test_ingest_adds_to_timeline(self, session: MemorySession, notices: list):
        session.sign_in("user-1")
        outcome = await session.ingest(AudioArtifact(b"x" * 2000))

        assert outcome.ok
        assert session.timeline()[0].title == "Buy milk"
        assert notices[-1].message == "Memory saved successfully!"

    @pytest.mark.asyncio
    async def test_min_audio_bytes_from_config(self, session: MemorySession):
        session.sign_in("user-1")
        outcome = await session.ingest(AudioArtifact(b"x" * 999))
        assert not outcome.ok

    @pytest.mark.asyncio
    async def test_capture_from_file(self, session: MemorySession, tmp_path: Path):
        recording = tmp_path / "note.webm"
        recording.write_bytes(b"x" * 2000)
        session.sign_in("user-1")

        outcome = await session.capture(FileAudioCapture(recording))
        assert outcome.ok

    @pytest.mark.asyncio
    async def test_no_processor(self, store: SQLiteMemoryStore, tmp_path: Path):
        """Browsing works without a processor but capture does not."""
        session = MemorySession(store, None, config=AppConfig(data_dir=tmp_path))
        session.sign_in("user-1")
        assert session.timeline() == []
        with pytest.raises(RuntimeError):
            await session.ingest(AudioArtifact(b"x" * 2000))

    @pytest.mark.asyncio
    async def test_capture_missing_file(self, session: MemorySession, tmp_path: Path, notices: list):
        session.sign_in("user-1")
        outcome = await session.capture(FileAudioCapture(tmp_path / "missing.webm"))
        assert outcome.reason == "device_unavailable"
        assert notices[-1].message == "Microphone access denied"


class TestHandlers:
    def test_toggle_favorite(self, session: MemorySession, seeded):
        session.sign_in("user-1")
        assert session.handle_toggle_favorite("t1") is True
        assert session.cache.get("t1").is_favorite is True

    def test_toggle_complete_failure_notifies(self, session: MemorySession, seeded, notices: list):
        """A rejected write is reported and the cache keeps its old value."""
        session.sign_in("user-1")
        with patch.object(session.store, "apply_patch", side_effect=StorageUnavailable("offline")):
            assert session.handle_toggle_complete("t1") is None

        assert session.cache.get("t1").is_completed is False
        assert notices[-1].message == "Failed to update completion"
        assert notices[-1].level == NoticeLevel.ERROR

    def test_missing_memory_notifies(self, session: MemorySession, seeded, notices: list):
        session.sign_in("user-1")
        assert session.handle_toggle_favorite("missing") is None
        assert notices[-1].message == "Memory not found"

    def test_edit(self, session: MemorySession, seeded, notices: list):
        session.sign_in("user-1")
        memory = session.handle_edit("t1", title="Call the plumber")
        assert memory.title == "Call the plumber"
        assert notices[-1].message == "Memory updated"

    def test_delete(self, session: MemorySession, seeded, notices: list):
        session.sign_in("user-1")
        assert session.handle_delete("t1") is True
        assert "t1" not in session.cache
        assert notices[-1].message == "Memory deleted"

    def test_delete_failure(self, session: MemorySession, seeded, notices: list):
        session.sign_in("user-1")
        with patch.object(session.store, "remove", side_effect=StorageUnavailable("offline")):
            assert session.handle_delete("t1") is False
        assert "t1" in session.cache
        assert notices[-1].message == "Failed to delete memory"


class TestViews:
    def test_timeline_filters(self, session: MemorySession, seeded):
        session.sign_in("user-1")
        assert [m.id for m in session.timeline("task")] == ["t1"]
        assert [m.id for m in session.timeline(search="MILK")] == ["n1"]

    @pytest.mark.asyncio
    async def test_focus(self, session: MemorySession, seeded, insights: AsyncMock):
        """Priorities follow the briefing order, skipping unknown ids."""
        session.sign_in("user-1")
        view = await session.focus()

        assert view.briefing.analysis == "Focus!"
        assert [m.id for m in view.priorities] == ["r1", "t1"]
        assert [m.id for m in view.actionable] == ["r1", "t1"]
        assert [m.id for m in view.reminders] == ["r1"]
        insights.briefing.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_focus_without_insights(self, store: SQLiteMemoryStore, processor, seeded, tmp_path):
        session = MemorySession(store, processor, config=AppConfig(data_dir=tmp_path))
        session.sign_in("user-1")
        view = await session.focus()
        assert view.priorities == []
        assert [m.id for m in view.actionable] == ["r1", "t1"]

    @pytest.mark.asyncio
    async def test_analytics(self, session: MemorySession, seeded):
        session.sign_in("user-1")
        view = await session.analytics()

        assert view.summary.total == 3
        assert view.summary.task_completion_rate == 0
        assert view.habits.productivity_score == 77

    @pytest.mark.asyncio
    async def test_analytics_without_insights(
        self, store: SQLiteMemoryStore, processor, seeded, tmp_path
    ):
        session = MemorySession(store, processor, config=AppConfig(data_dir=tmp_path))
        session.sign_in("user-1")
        assert (await session.analytics()).habits == HABIT_FALLBACK
