"""Per-user session: owns the cache and the components built around it."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .config import AppConfig
from .logging import JSONLLogger, get_logger
from .memory import (
    AudioArtifact,
    CaptureOutcome,
    IngestionPipeline,
    Memory,
    MemoryCache,
    MemoryStore,
    MutationRouter,
    Notice,
    NoticeLevel,
    NotFound,
    StorageError,
)
from .memory import query
from .memory.query import ALL_CATEGORIES, AnalyticsSummary
from .services.capture import AudioCapture
from .services.insights import HABIT_FALLBACK, Briefing, HabitAnalysis, InsightGenerator
from .services.processor import AudioProcessor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FocusView:
    """Everything the focus screen shows."""

    briefing: Briefing
    priorities: list[Memory]
    actionable: list[Memory]
    reminders: list[Memory]


@dataclass(frozen=True)
class AnalyticsView:
    """Everything the analytics screen shows."""

    summary: AnalyticsSummary
    habits: HabitAnalysis


class NotSignedIn(RuntimeError):
    """An operation needs a signed-in user."""


class MemorySession:
    """Lifecycle of the memory collection for one signed-in user.

    sign_in() builds the cache, mutation router and ingestion pipeline and
    loads the user's memories; sign_out() clears and drops them. The
    handle_* methods catch storage failures and turn them into notices,
    the way the UI reports them.
    """

    def __init__(
        self,
        store: MemoryStore,
        processor: AudioProcessor | None,
        insights: InsightGenerator | None = None,
        config: AppConfig | None = None,
        notifier: Callable[[Notice], None] | None = None,
        logger: JSONLLogger | None = None,
    ) -> None:
        self.store = store
        self.processor = processor
        self.insights = insights
        self.config = config or AppConfig()
        self.notifier = notifier
        self.logger = logger or get_logger()

        self.user_id: str | None = None
        self.cache: MemoryCache | None = None
        self.router: MutationRouter | None = None
        self.pipeline: IngestionPipeline | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def _require_cache(self) -> MemoryCache:
        if self.cache is None:
            raise NotSignedIn("Sign in first")
        return self.cache

    def _notify(self, message: str, level: NoticeLevel = NoticeLevel.SUCCESS) -> None:
        if self.notifier is not None:
            self.notifier(Notice(message, level))

    def sign_in(self, user_id: str) -> None:
        """Start a session for user_id and load their memories.

        Signing in again (also as another user) discards the previous
        cache first.

        Raises:
            StorageUnavailable: If the memories cannot be loaded.
        """
        if self.is_authenticated:
            self.sign_out()

        cache = MemoryCache(self.store)
        cache.load(user_id)

        self.user_id = user_id
        self.cache = cache
        self.router = MutationRouter(self.store, cache, logger=self.logger)
        self.pipeline = IngestionPipeline(
            self.store,
            cache,
            self.processor,  # type: ignore[arg-type]
            user_id,
            min_audio_bytes=self.config.min_audio_bytes,
            notifier=self.notifier,
            logger=self.logger,
        )
        self.logger.set_user_id(user_id)
        self.logger.log("session_start", user_id=user_id, memories=len(cache))

    def sign_out(self) -> None:
        """End the session and drop all cached state."""
        if self.cache is not None:
            self.cache.clear()
        if self.user_id is not None:
            self.logger.log("session_end", user_id=self.user_id)
        self.logger.set_user_id(None)
        self.user_id = None
        self.cache = None
        self.router = None
        self.pipeline = None

    def reload(self) -> None:
        """Reload the cache from the store."""
        cache = self._require_cache()
        assert self.user_id is not None
        cache.load(self.user_id)

    def close(self) -> None:
        """Sign out and release the store."""
        self.sign_out()
        self.store.close()

    # Capture

    def _require_pipeline(self) -> IngestionPipeline:
        self._require_cache()
        if self.processor is None:
            raise RuntimeError("No audio processor configured")
        assert self.pipeline is not None
        return self.pipeline

    async def capture(self, capture: AudioCapture) -> CaptureOutcome:
        """Record through a capture collaborator and ingest the result."""
        pipeline = self._require_pipeline()
        pipeline.capture = capture
        failed = pipeline.start_capture()
        if failed is not None:
            return failed
        return await pipeline.stop_capture()

    async def ingest(self, artifact: AudioArtifact) -> CaptureOutcome:
        """Ingest an already recorded artifact."""
        return await self._require_pipeline().ingest(artifact)

    # Mutations

    def _mutate(self, action: Callable[[], object], failure: str) -> object | None:
        try:
            return action()
        except NotFound:
            self._notify("Memory not found", NoticeLevel.ERROR)
        except StorageError as e:
            logger.warning("%s: %s", failure, e)
            self._notify(failure, NoticeLevel.ERROR)
        return None

    def handle_toggle_favorite(self, memory_id: str) -> bool | None:
        """Toggle favorite, returning the new value or None on failure."""
        self._require_cache()
        assert self.router is not None
        return self._mutate(  # type: ignore[return-value]
            lambda: self.router.toggle_favorite(memory_id),
            "Failed to update favorite",
        )

    def handle_toggle_complete(self, memory_id: str) -> bool | None:
        """Toggle completion, returning the new value or None on failure."""
        self._require_cache()
        assert self.router is not None
        return self._mutate(  # type: ignore[return-value]
            lambda: self.router.toggle_completion(memory_id),
            "Failed to update completion",
        )

    def handle_edit(
        self,
        memory_id: str,
        *,
        title: str | None = None,
        summary: str | None = None,
        content: str | None = None,
    ) -> Memory | None:
        """Edit text fields, returning the updated memory or None on failure."""
        self._require_cache()
        assert self.router is not None
        memory = self._mutate(
            lambda: self.router.edit(memory_id, title=title, summary=summary, content=content),
            "Failed to update memory",
        )
        if memory is not None:
            self._notify("Memory updated")
        return memory  # type: ignore[return-value]

    def handle_delete(self, memory_id: str) -> bool:
        """Delete a memory. Returns True when the cache converged."""
        self._require_cache()
        assert self.router is not None
        try:
            self.router.delete(memory_id)
        except StorageError as e:
            logger.warning("Failed to delete memory: %s", e)
            self._notify("Failed to delete memory", NoticeLevel.ERROR)
            return False
        self._notify("Memory deleted")
        return True

    # Views

    def timeline(self, category: str = ALL_CATEGORIES, search: str = "") -> list[Memory]:
        """Memories for the list view, filtered and searched."""
        return query.filter_and_search(self._require_cache().snapshot(), category, search)

    async def focus(self) -> FocusView:
        """Build the focus view, asking the insight service for priorities."""
        snapshot = self._require_cache().snapshot()
        if self.insights is None:
            briefing = Briefing(analysis="Insights are not configured.")
        else:
            briefing = await self.insights.briefing(
                query.recent(snapshot, self.config.briefing_window)
            )
        return FocusView(
            briefing=briefing,
            priorities=query.resolve_priorities(snapshot, briefing.priority_ids),
            actionable=query.actionable(snapshot),
            reminders=query.reminders(snapshot, limit=self.config.reminders_limit),
        )

    async def analytics(self) -> AnalyticsView:
        """Build the analytics view with an AI habit analysis."""
        snapshot = self._require_cache().snapshot()
        if self.insights is None:
            habits = HABIT_FALLBACK
        else:
            habits = await self.insights.habit_analysis(snapshot)
        return AnalyticsView(summary=query.summarize(snapshot), habits=habits)
