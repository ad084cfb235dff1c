"""Command-line interface for memorytap.

Provides subcommands for capturing recordings, browsing the timeline,
toggling and editing memories, and viewing the focus and analytics
screens.
"""

import argparse
import asyncio
import os
import random
import sys
from pathlib import Path

from groq import AsyncGroq

from .config import AppConfig, load_config
from .logging import configure_logger
from .memory import Category, LocalMemoryStore, Memory, MemoryStore, Notice, NoticeLevel, SQLiteMemoryStore
from .memory.errors import StorageError
from .memory.query import ALL_CATEGORIES
from .services import FileAudioCapture, GroqAudioProcessor, GroqInsightGenerator
from .session import MemorySession

DAILY_PROMPTS = [
    "What's the most important thing you learned today?",
    "What's a random idea you had recently?",
    "What are you grateful for right now?",
    "What's one thing you need to get done tomorrow?",
    "Describe a moment that made you smile today.",
]

CATEGORY_ICONS = {
    Category.TASK: "☐",
    Category.REMINDER: "⏰",
    Category.IDEA: "💡",
    Category.NOTE: "📝",
}


def print_notice(notice: Notice) -> None:
    """Show a notice the way the app shows a toast."""
    if notice.level == NoticeLevel.ERROR:
        print(f"\033[31m✗ {notice.message}\033[0m", file=sys.stderr)
    else:
        print(f"\033[32m✓ {notice.message}\033[0m")


def build_store(config: AppConfig) -> MemoryStore:
    """Create the store selected by config.backend."""
    if config.backend == "local":
        return LocalMemoryStore(config.local_store_path, config.data_dir / "audio-cache")

    store = SQLiteMemoryStore(config.db_path, config.audio_dir)
    store.init_db()
    return store


def build_session(config: AppConfig, client: AsyncGroq | None = None) -> MemorySession:
    """Wire a session with Groq-backed collaborators.

    Without a client or GROQ_API_KEY the session can still browse and
    edit memories, but capture and insights are unavailable.
    """
    api_key = os.getenv("GROQ_API_KEY")
    if client is None and api_key:
        client = AsyncGroq(api_key=api_key)

    processor = None
    insights = None
    if client is not None:
        processor = GroqAudioProcessor(
            client,
            model=config.model,
            transcription_model=config.transcription_model,
            language=config.language,
        )
        insights = GroqInsightGenerator(client, model=config.model)

    return MemorySession(
        build_store(config),
        processor,
        insights=insights,
        config=config,
        notifier=print_notice,
    )


def format_memory(memory: Memory, verbose: bool = False) -> str:
    """Format a memory as one or more display lines."""
    icon = CATEGORY_ICONS[memory.category]
    flags = ""
    if memory.is_favorite:
        flags += " ★"
    if memory.is_completed:
        flags += " ✓"
    when = memory.created_at.astimezone().strftime("%Y-%m-%d %H:%M")

    line = f"{icon} {memory.title}{flags}  \033[2m{when}  {memory.id}\033[0m"
    if not verbose:
        return f"{line}\n    {memory.summary}"

    parts = [line, f"    {memory.summary}", "", f"    {memory.content}"]
    if memory.audio_ref:
        parts.append(f"    audio: {memory.audio_ref}")
    return "\n".join(parts)


def cmd_capture(session: MemorySession, args: argparse.Namespace) -> int:
    """Process a recording into a new memory."""
    capture = FileAudioCapture(Path(args.file), content_type=args.content_type)
    outcome = asyncio.run(session.capture(capture))
    if not outcome.ok:
        return 1
    assert outcome.memory is not None
    print(format_memory(outcome.memory, verbose=True))
    return 0


def cmd_list(session: MemorySession, args: argparse.Namespace) -> int:
    """List memories, newest first."""
    memories = session.timeline(args.category, args.query or "")
    if not memories:
        print("No memories found.")
        return 0

    for memory in memories:
        print(format_memory(memory, verbose=args.verbose))
    print(f"\nTotal: {len(memories)} memor{'y' if len(memories) == 1 else 'ies'}")
    return 0


def cmd_favorite(session: MemorySession, args: argparse.Namespace) -> int:
    """Toggle the favorite flag."""
    value = session.handle_toggle_favorite(args.id)
    if value is None:
        return 1
    print("★ Favorited" if value else "☆ Unfavorited")
    return 0


def cmd_complete(session: MemorySession, args: argparse.Namespace) -> int:
    """Toggle the completion flag."""
    value = session.handle_toggle_complete(args.id)
    if value is None:
        return 1
    print("✓ Completed" if value else "○ Reopened")
    return 0


def cmd_edit(session: MemorySession, args: argparse.Namespace) -> int:
    """Edit the text of a memory."""
    if args.title is None and args.summary is None and args.content is None:
        print("Nothing to edit: pass --title, --summary or --content", file=sys.stderr)
        return 1
    memory = session.handle_edit(
        args.id, title=args.title, summary=args.summary, content=args.content
    )
    if memory is None:
        return 1
    print(format_memory(memory, verbose=True))
    return 0


def cmd_delete(session: MemorySession, args: argparse.Namespace) -> int:
    """Delete a memory."""
    if not args.yes:
        confirm = input("Delete this memory? (y/n): ").strip().lower()
        if confirm not in ("y", "yes"):
            return 0
    return 0 if session.handle_delete(args.id) else 1


def cmd_focus(session: MemorySession, args: argparse.Namespace) -> int:
    """Show the AI briefing, priorities and pending reminders."""
    view = asyncio.run(session.focus())

    print(f"\n🧠 {view.briefing.analysis}\n")
    if view.priorities:
        print("Top priorities")
        for index, memory in enumerate(view.priorities, start=1):
            print(f"  {index}. {memory.title}  \033[2m{memory.id}\033[0m")
    print(f"\nPending tasks & reminders: {len(view.actionable)}")
    if view.reminders:
        print("Reminders")
        for memory in view.reminders:
            print(f"  ⏰ {memory.title}: {memory.summary}")
    return 0


def cmd_analytics(session: MemorySession, args: argparse.Namespace) -> int:
    """Show counts, completion rates and the habit analysis."""
    view = asyncio.run(session.analytics())
    summary = view.summary

    print(f"\nTotal memories: {summary.total}")
    print(f"Task completion: {summary.task_completion_rate}% "
          f"({summary.completed_actionable}/{summary.actionable})")
    print(f"Overall completion: {summary.overall_completion_rate}%\n")

    peak = max(summary.histogram.values()) or 1
    for category, count in summary.histogram.items():
        bar = "█" * round(20 * count / peak)
        print(f"  {category.value:<9} {bar} {count}")

    habits = view.habits
    print(f"\nProductivity score: {habits.productivity_score}/100")
    print(f"Pattern: {habits.pattern}")
    print(f"Suggestion: {habits.suggestion}")
    return 0


def cmd_prompt(session: MemorySession | None, args: argparse.Namespace) -> int:
    """Print a random prompt to talk about."""
    print(random.choice(DAILY_PROMPTS))
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the memorytap CLI."""
    parser = argparse.ArgumentParser(
        prog="memorytap",
        description="Capture voice notes and turn them into organized memories",
    )
    parser.add_argument("--user", help="User id to act as (default: from config)")
    parser.add_argument("--backend", choices=["sqlite", "local"], help="Storage backend")
    parser.add_argument("--data-dir", type=Path, help="Directory for data and logs")

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    # capture command
    capture_parser = subparsers.add_parser("capture", help="Process a recording")
    capture_parser.add_argument("file", help="Path to the audio file")
    capture_parser.add_argument("--content-type", help="MIME type of the recording")

    # list command
    list_parser = subparsers.add_parser("list", help="List memories")
    list_parser.add_argument(
        "-c", "--category",
        choices=[ALL_CATEGORIES, *(c.value for c in Category)],
        default=ALL_CATEGORIES,
        help="Only show this category",
    )
    list_parser.add_argument("-q", "--query", help="Search title, summary and transcript")
    list_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show full transcripts",
    )

    # favorite / complete commands
    favorite_parser = subparsers.add_parser("favorite", help="Toggle favorite")
    favorite_parser.add_argument("id", help="Memory id")
    complete_parser = subparsers.add_parser("complete", help="Toggle completion")
    complete_parser.add_argument("id", help="Memory id")

    # edit command
    edit_parser = subparsers.add_parser("edit", help="Edit a memory's text")
    edit_parser.add_argument("id", help="Memory id")
    edit_parser.add_argument("--title")
    edit_parser.add_argument("--summary")
    edit_parser.add_argument("--content")

    # delete command
    delete_parser = subparsers.add_parser("delete", help="Delete a memory")
    delete_parser.add_argument("id", help="Memory id")
    delete_parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")

    subparsers.add_parser("focus", help="Show briefing and priorities")
    subparsers.add_parser("analytics", help="Show stats and habit analysis")
    subparsers.add_parser("prompt", help="Suggest something to record")

    return parser


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.user:
        config.user_id = args.user
    if args.backend:
        config.backend = args.backend
    if args.data_dir:
        config.data_dir = args.data_dir.expanduser()
    return config


def run_cli(
    argv: list[str] | None = None,
    config: AppConfig | None = None,
    session: MemorySession | None = None,
) -> int:
    """Run the CLI with given arguments.

    Args:
        argv: Command-line arguments. Uses sys.argv[1:] if None.
        config: Configuration to use instead of loading it.
        session: Pre-built session, mainly for tests.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "prompt":
        return cmd_prompt(None, args)

    commands = {
        "capture": cmd_capture,
        "list": cmd_list,
        "favorite": cmd_favorite,
        "complete": cmd_complete,
        "edit": cmd_edit,
        "delete": cmd_delete,
        "focus": cmd_focus,
        "analytics": cmd_analytics,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    config = _apply_overrides(config or load_config(), args)

    if session is None:
        if args.command in ("capture", "focus", "analytics") and not os.getenv("GROQ_API_KEY"):
            print("❌ Error: GROQ_API_KEY environment variable not set", file=sys.stderr)
            print("Please set it in your .env file or environment", file=sys.stderr)
            return 1
        try:
            configure_logger(config.log_dir)
            session = build_session(config)
        except (OSError, StorageError) as e:
            print(f"❌ Cannot use data directory {config.data_dir}: {e}", file=sys.stderr)
            return 1

    try:
        session.sign_in(config.user_id)
    except StorageError as e:
        print(f"❌ Failed to load memories: {e}", file=sys.stderr)
        session.store.close()
        return 1

    try:
        return handler(session, args)
    finally:
        session.close()
