"""Tests for JSONL logging."""

import json
from pathlib import Path

import pytest

from memorytap.logging import JSONLLogger, LogEntry, configure_logger, get_logger


@pytest.fixture
def logger(tmp_path: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=tmp_path / "logs")


def read_entries(logger: JSONLLogger) -> list[dict]:
    with open(logger.log_path) as f:
        return [json.loads(line) for line in f]


def test_log_entry_to_dict():
    """Test LogEntry excludes None values."""
    entry = LogEntry(timestamp="2026-01-01T00:00:00Z", event="test")
    data = entry.to_dict()

    assert "timestamp" in data
    assert "event" in data
    assert "memory_id" not in data  # None excluded
    assert "extra" not in data  # Empty dict excluded


def test_log_creates_file(logger: JSONLLogger):
    """Test that logging creates the log file."""
    logger.log("test_event")

    assert logger.log_path.exists()


def test_log_writes_jsonl(logger: JSONLLogger):
    """Test that logs are written in JSONL format."""
    logger.log("event1", user_id="alice")
    logger.log("event2", memory_id="m1")

    entries = read_entries(logger)

    assert len(entries) == 2
    assert entries[0]["event"] == "event1"
    assert entries[0]["user_id"] == "alice"
    assert entries[1]["memory_id"] == "m1"


def test_log_transition(logger: JSONLLogger):
    """Test logging an ingestion state change."""
    logger.log_transition("processing", previous="capturing", user_id="alice", memory_id="m1")

    entry = read_entries(logger)[0]

    assert entry["event"] == "capture_state"
    assert entry["state"] == "processing"
    assert entry["extra"]["previous"] == "capturing"
    assert entry["memory_id"] == "m1"


def test_log_capture_failed(logger: JSONLLogger):
    """Test logging a failed capture."""
    logger.log_capture_failed("too_short", error="Recording is 500 bytes", duration_ms=12.5)

    entry = read_entries(logger)[0]

    assert entry["event"] == "capture_failed"
    assert entry["reason"] == "too_short"
    assert entry["error"] == "Recording is 500 bytes"
    assert entry["duration_ms"] == 12.5


def test_log_mutation_drops_error_on_success(logger: JSONLLogger):
    """Test that successful mutations carry their changes but no error."""
    logger.log_mutation("favorite", "m1", True, error="ignored", is_favorite=True)
    logger.log_mutation("delete", "m2", False, error="disk full")

    success, failure = read_entries(logger)

    assert "error" not in success
    assert success["extra"] == {"action": "favorite", "success": True, "is_favorite": True}
    assert failure["error"] == "disk full"
    assert failure["extra"]["success"] is False


def test_set_user_id(logger: JSONLLogger):
    """Test that set_user_id applies to subsequent logs."""
    logger.set_user_id("alice")
    logger.log("event1")
    logger.log("event2", user_id="bob")

    first, second = read_entries(logger)
    assert first["user_id"] == "alice"
    assert second["user_id"] == "bob"


def test_rotation(tmp_path: Path):
    """Test log rotation when max size is exceeded."""
    logger = JSONLLogger(log_dir=tmp_path, max_size_mb=0.001)  # ~1KB

    # Write enough to trigger rotation
    for i in range(100):
        logger.log(f"event_{i}", data="x" * 100)

    log_files = list(tmp_path.glob("logs*.jsonl"))
    assert len(log_files) >= 2


def test_non_json_values_stringified(logger: JSONLLogger):
    logger.log("custom", path=Path("/tmp/audio.webm"), another=123)

    entry = read_entries(logger)[0]

    assert entry["extra"]["path"] == "/tmp/audio.webm"
    assert entry["extra"]["another"] == 123


def test_configure_logger_replaces_global(tmp_path: Path):
    configured = configure_logger(tmp_path / "global")
    assert get_logger() is configured
    assert configured.log_dir == tmp_path / "global"
