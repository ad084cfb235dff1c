"""Read-only views and analytics over a cache snapshot.

Every function here is pure: it takes a sequence of memories (newest
first, as the cache holds them) and returns a new value without touching
storage or external services.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from .models import Category, Memory

ALL_CATEGORIES = "all"


class CompletionScope(str, Enum):
    """Which records count towards a completion rate."""

    TASKS = "tasks"  # tasks and reminders only
    ALL = "all"


@dataclass(frozen=True)
class AnalyticsSummary:
    """Aggregate numbers shown on the analytics view."""

    total: int
    actionable: int
    completed_actionable: int
    task_completion_rate: int
    overall_completion_rate: int
    histogram: dict[Category, int]


def filter_and_search(
    snapshot: Sequence[Memory],
    category: Category | str = ALL_CATEGORIES,
    query: str = "",
) -> list[Memory]:
    """Filter by category, then keep records whose text contains query.

    Args:
        snapshot: Memories in cache order.
        category: A Category, its value, or "all".
        query: Case-insensitive substring matched against title, summary
            and content. Empty matches everything.

    Returns:
        Matching memories in their original order.
    """
    if category != ALL_CATEGORIES:
        category = Category(category)

    needle = query.lower()
    results = []
    for memory in snapshot:
        if category != ALL_CATEGORIES and memory.category != category:
            continue
        if needle and not (
            needle in memory.title.lower()
            or needle in memory.summary.lower()
            or needle in memory.content.lower()
        ):
            continue
        results.append(memory)
    return results


def actionable(snapshot: Sequence[Memory]) -> list[Memory]:
    """Uncompleted tasks and reminders."""
    return [m for m in snapshot if m.is_actionable and not m.is_completed]


def reminders(snapshot: Sequence[Memory], limit: int | None = None) -> list[Memory]:
    """Uncompleted reminders, optionally capped at limit."""
    pending = [m for m in snapshot if m.category == Category.REMINDER and not m.is_completed]
    return pending if limit is None else pending[:limit]


def recent(snapshot: Sequence[Memory], limit: int) -> list[Memory]:
    """The newest limit memories."""
    return list(snapshot[:limit])


def category_histogram(snapshot: Iterable[Memory]) -> dict[Category, int]:
    """Count memories per category, including zero counts."""
    counts = {category: 0 for category in Category}
    for memory in snapshot:
        counts[memory.category] += 1
    return counts


def completion_rate(
    snapshot: Sequence[Memory],
    scope: CompletionScope = CompletionScope.TASKS,
) -> int:
    """Percentage of completed records in scope, rounded; 0 when scope is empty."""
    if scope == CompletionScope.TASKS:
        in_scope = [m for m in snapshot if m.is_actionable]
    else:
        in_scope = list(snapshot)

    if not in_scope:
        return 0
    completed = sum(1 for m in in_scope if m.is_completed)
    # Half-up rounding, not Python's banker's rounding.
    return int(100 * completed / len(in_scope) + 0.5)


def resolve_priorities(snapshot: Sequence[Memory], priority_ids: Iterable[str]) -> list[Memory]:
    """Map priority ids from the insight service back to live records.

    Ids that are unknown, duplicated, or point at completed records are
    dropped. The result follows the order of priority_ids.
    """
    by_id = {m.id: m for m in snapshot}
    seen: set[str] = set()
    resolved = []
    for memory_id in priority_ids:
        memory = by_id.get(memory_id)
        if memory is None or memory.is_completed or memory_id in seen:
            continue
        seen.add(memory_id)
        resolved.append(memory)
    return resolved


def summarize(snapshot: Sequence[Memory]) -> AnalyticsSummary:
    """Compute every number the analytics view needs in one pass."""
    tasks = [m for m in snapshot if m.is_actionable]
    return AnalyticsSummary(
        total=len(snapshot),
        actionable=len(tasks),
        completed_actionable=sum(1 for m in tasks if m.is_completed),
        task_completion_rate=completion_rate(snapshot, CompletionScope.TASKS),
        overall_completion_rate=completion_rate(snapshot, CompletionScope.ALL),
        histogram=category_histogram(snapshot),
    )
