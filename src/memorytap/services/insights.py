"""Briefings and habit analysis generated by an LLM.

Both calls are best effort. Any failure is logged and replaced by a static
fallback so the focus and analytics views always render.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from groq import AsyncGroq

from ..memory.errors import InsightUnavailable
from ..memory.models import Memory
from ..memory.query import actionable
from .processor import decode_json_object

logger = logging.getLogger(__name__)

BRIEFING_PROMPT = """Analyze these tasks/reminders and:
1. Identify the top 3 most urgent/important items (return their IDs)
2. Write a friendly, motivational briefing (max 50 words)

Respond with JSON:
{
  "priorityIds": ["id1", "id2", "id3"],
  "analysis": "..."
}"""

HABIT_PROMPT = """As a productivity coach, analyze the user's memory patterns:
1. Identify a behavioral pattern (e.g., "You capture most ideas in the morning")
2. Provide one actionable suggestion
3. Give a productivity score (1-100) based on capture and completion balance

Respond with JSON:
{
  "pattern": "...",
  "suggestion": "...",
  "productivityScore": 75
}"""


@dataclass(frozen=True)
class Briefing:
    """Priorities and a short motivational summary for the focus view."""

    analysis: str
    priority_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class HabitAnalysis:
    """Coaching output for the analytics view."""

    pattern: str
    suggestion: str
    productivity_score: int


ALL_CAUGHT_UP = Briefing(analysis="You're all caught up! No pending tasks or reminders.")
BRIEFING_FALLBACK = Briefing(analysis="Unable to generate insights at this time.")
HABIT_FALLBACK = HabitAnalysis(
    pattern="Analysis unavailable",
    suggestion="Keep capturing your thoughts!",
    productivity_score=50,
)


def parse_briefing(payload: dict[str, Any]) -> Briefing:
    """Validate a briefing payload.

    Raises:
        InsightUnavailable: If required fields are missing or mistyped.
    """
    ids = payload.get("priorityIds")
    analysis = payload.get("analysis")
    if not isinstance(ids, list) or not isinstance(analysis, str) or not analysis.strip():
        raise InsightUnavailable("Invalid briefing payload")
    return Briefing(analysis=analysis.strip(), priority_ids=[str(i) for i in ids])


def parse_habit_analysis(payload: dict[str, Any]) -> HabitAnalysis:
    """Validate a habit analysis payload, clamping the score to 0-100.

    Raises:
        InsightUnavailable: If required fields are missing or mistyped.
    """
    pattern = payload.get("pattern")
    suggestion = payload.get("suggestion")
    score = payload.get("productivityScore")
    if not isinstance(pattern, str) or not isinstance(suggestion, str):
        raise InsightUnavailable("Invalid habit analysis payload")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise InsightUnavailable("Invalid productivity score")
    return HabitAnalysis(
        pattern=pattern.strip(),
        suggestion=suggestion.strip(),
        productivity_score=max(0, min(100, int(round(score)))),
    )


class InsightGenerator(ABC):
    """Produces non-critical AI insights over memories."""

    @abstractmethod
    async def briefing(self, recent: Sequence[Memory]) -> Briefing:
        """Pick priorities among recent memories. Never raises."""
        ...

    @abstractmethod
    async def habit_analysis(self, memories: Sequence[Memory]) -> HabitAnalysis:
        """Describe capture habits. Never raises."""
        ...


class GroqInsightGenerator(InsightGenerator):
    """InsightGenerator backed by Groq chat completions in JSON mode."""

    def __init__(
        self,
        client: AsyncGroq,
        model: str = "llama-3.3-70b-versatile",
    ) -> None:
        self.client = client
        self.model = model

    async def _complete_json(self, system: str, user: str, temperature: float) -> dict[str, Any]:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                response_format={"type": "json_object"},
            )
            return decode_json_object(response.choices[0].message.content or "")
        except Exception as e:
            raise InsightUnavailable(str(e)) from e

    async def briefing(self, recent: Sequence[Memory]) -> Briefing:
        pending = actionable(recent)
        if not pending:
            return ALL_CAUGHT_UP

        context = "\n".join(f"ID: {m.id} | {m.title} | {m.summary}" for m in pending)
        try:
            payload = await self._complete_json(BRIEFING_PROMPT, context, temperature=0.5)
            return parse_briefing(payload)
        except InsightUnavailable as e:
            logger.warning(f"Briefing generation failed: {e}")
            return BRIEFING_FALLBACK

    async def habit_analysis(self, memories: Sequence[Memory]) -> HabitAnalysis:
        if not memories:
            return HABIT_FALLBACK

        context = "\n".join(
            f"{m.category.value} | {m.created_at.isoformat()} | {m.is_completed}" for m in memories
        )
        try:
            payload = await self._complete_json(HABIT_PROMPT, context, temperature=0.7)
            return parse_habit_analysis(payload)
        except InsightUnavailable as e:
            logger.warning(f"Habit analysis failed: {e}")
            return HABIT_FALLBACK
