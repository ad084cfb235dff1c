"""Persistent storage for memories.

Two backends share the MemoryStore interface: a SQLite table (the
"remote database" layout, snake_case columns, audio uploaded as files)
and a single JSON document (the "local storage" layout, canonical
records with audio inlined as base64).
"""

import base64
import binascii
import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Any

from .errors import DuplicateId, NotFound, StorageUnavailable
from .models import AudioArtifact, Category, Memory, parse_timestamp, validate_patch

logger = logging.getLogger(__name__)

STORAGE_KEY = "memory_tap_data"

_COLUMNS = (
    "id, owner_id, title, content, summary, category, audio_url, "
    "is_favorite, is_completed, created_at, duration_sec"
)

_COLUMN_NAMES = {
    "title": "title",
    "summary": "summary",
    "content": "content",
    "is_favorite": "is_favorite",
    "is_completed": "is_completed",
}


class MemoryStore(ABC):
    """Durable persistence of Memory records keyed by id."""

    @abstractmethod
    def list_all(self, owner_id: str) -> list[Memory]:
        """Return every memory of an owner, in no particular order."""
        ...

    @abstractmethod
    def get(self, memory_id: str) -> Memory:
        """Return a single memory or raise NotFound."""
        ...

    @abstractmethod
    def insert(self, memory: Memory, audio: AudioArtifact | None = None) -> Memory:
        """Persist a new memory and return the stored record."""
        ...

    @abstractmethod
    def apply_patch(self, memory_id: str, fields: dict[str, Any]) -> None:
        """Merge a partial update into a stored memory."""
        ...

    @abstractmethod
    def remove(self, memory_id: str) -> bool:
        """Delete a memory. Returns False if it was already gone."""
        ...

    def close(self) -> None:
        """Release any held resources."""


class SQLiteMemoryStore(MemoryStore):
    """Memories in a SQLite table, audio written as files next to it."""

    def __init__(self, db_path: Path, audio_dir: Path | None = None) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
            audio_dir: Directory for uploaded recordings. Defaults to an
                ``audio`` directory beside the database.
        """
        self.db_path = db_path
        self.audio_dir = audio_dir or db_path.parent / "audio"
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(self.db_path)
            except (OSError, sqlite3.Error) as e:
                raise StorageUnavailable(f"Cannot open {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the memories table if it doesn't exist."""
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS memories (
                    id            TEXT PRIMARY KEY,
                    owner_id      TEXT NOT NULL,
                    title         TEXT NOT NULL,
                    content       TEXT NOT NULL,
                    summary       TEXT NOT NULL,
                    category      TEXT NOT NULL
                                  CHECK (category IN ('task', 'reminder', 'idea', 'note')),
                    audio_url     TEXT,
                    is_favorite   INTEGER NOT NULL DEFAULT 0,
                    is_completed  INTEGER NOT NULL DEFAULT 0,
                    created_at    TEXT NOT NULL,
                    duration_sec  REAL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_owner_created "
                "ON memories(owner_id, created_at)"
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot initialize {self.db_path}: {e}") from e

    def list_all(self, owner_id: str) -> list[Memory]:
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                f"SELECT {_COLUMNS} FROM memories WHERE owner_id = ?",
                (owner_id,),
            )
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot read memories: {e}") from e
        return [self._row_to_memory(row) for row in rows]

    def get(self, memory_id: str) -> Memory:
        conn = self._get_connection()
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM memories WHERE id = ?",
                (memory_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot read memory {memory_id}: {e}") from e
        if row is None:
            raise NotFound(memory_id)
        return self._row_to_memory(row)

    def insert(self, memory: Memory, audio: AudioArtifact | None = None) -> Memory:
        """Save a new memory.

        If audio is given and the memory has no audio_ref yet, the bytes
        are written to ``audio_dir/<owner_id>/<epoch_ms>.<ext>`` and the
        stored record references that file.

        Args:
            memory: The memory to save.
            audio: Optional recording to upload alongside.

        Returns:
            The memory as stored.

        Raises:
            DuplicateId: If a memory with the same id exists.
            StorageUnavailable: On database or file I/O failure.
        """
        conn = self._get_connection()
        uploaded: Path | None = None
        if audio is not None and memory.audio_ref is None:
            uploaded = self._upload_audio(memory, audio)
            memory = replace(memory, audio_ref=str(uploaded))

        try:
            conn.execute(
                f"INSERT INTO memories ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    memory.id,
                    memory.owner_id,
                    memory.title,
                    memory.content,
                    memory.summary,
                    memory.category.value,
                    memory.audio_ref,
                    int(memory.is_favorite),
                    int(memory.is_completed),
                    memory.created_at.isoformat(),
                    memory.duration_sec,
                ),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            self._discard_upload(uploaded)
            if "UNIQUE" in str(e) or "PRIMARY KEY" in str(e):
                raise DuplicateId(memory.id) from e
            raise StorageUnavailable(f"Cannot save memory: {e}") from e
        except sqlite3.Error as e:
            self._discard_upload(uploaded)
            raise StorageUnavailable(f"Cannot save memory: {e}") from e
        return memory

    def apply_patch(self, memory_id: str, fields: dict[str, Any]) -> None:
        validate_patch(fields)
        assignments = ", ".join(f"{_COLUMN_NAMES[name]} = ?" for name in fields)
        values = [int(v) if isinstance(v, bool) else v for v in fields.values()]

        conn = self._get_connection()
        try:
            cursor = conn.execute(
                f"UPDATE memories SET {assignments} WHERE id = ?",
                (*values, memory_id),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot update memory {memory_id}: {e}") from e
        if cursor.rowcount == 0:
            raise NotFound(memory_id)

    def remove(self, memory_id: str) -> bool:
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
            conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot delete memory {memory_id}: {e}") from e
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _upload_audio(self, memory: Memory, audio: AudioArtifact) -> Path:
        """Write the recording to the audio directory."""
        epoch_ms = int(memory.created_at.timestamp() * 1000)
        path = self.audio_dir / memory.owner_id / f"{epoch_ms}.{audio.extension}"
        if path.exists():
            path = path.with_name(f"{epoch_ms}-{memory.id[:8]}.{audio.extension}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(audio.data)
        except OSError as e:
            raise StorageUnavailable(f"Cannot upload audio: {e}") from e
        return path

    def _discard_upload(self, path: Path | None) -> None:
        if path is not None:
            path.unlink(missing_ok=True)

    def _row_to_memory(self, row: sqlite3.Row) -> Memory:
        """Convert a database row to a Memory."""
        return Memory(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            summary=row["summary"],
            content=row["content"],
            category=Category(row["category"]),
            created_at=parse_timestamp(row["created_at"]),
            audio_ref=row["audio_url"],
            is_favorite=bool(row["is_favorite"]),
            is_completed=bool(row["is_completed"]),
            duration_sec=row["duration_sec"],
        )


class LocalMemoryStore(MemoryStore):
    """Memories in one JSON document, audio inlined as base64.

    The document maps STORAGE_KEY to a list of canonical records, newest
    first. Inline audio is re-hydrated into a playable file under
    ``audio_cache_dir`` whenever a record is read.
    """

    def __init__(self, path: Path, audio_cache_dir: Path | None = None) -> None:
        self.path = path
        self.audio_cache_dir = audio_cache_dir or path.parent / "audio-cache"

    def _read_records(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageUnavailable(f"Corrupt storage file {self.path}: {e}") from e
        except OSError as e:
            raise StorageUnavailable(f"Cannot read {self.path}: {e}") from e

        records = data.get(STORAGE_KEY, []) if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise StorageUnavailable(f"Unexpected storage layout in {self.path}")
        return records

    def _write_records(self, records: list[dict[str, Any]]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump({STORAGE_KEY: records}, f)
            tmp_path.replace(self.path)
        except OSError as e:
            raise StorageUnavailable(f"Cannot write {self.path}: {e}") from e

    def _find(self, records: list[dict[str, Any]], memory_id: str) -> dict[str, Any]:
        for record in records:
            if record.get("id") == memory_id:
                return record
        raise NotFound(memory_id)

    def list_all(self, owner_id: str) -> list[Memory]:
        memories = []
        for record in self._read_records():
            if record.get("ownerId") != owner_id:
                continue
            try:
                memories.append(self._record_to_memory(record))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping malformed record %s: %s", record.get("id"), e)
        return memories

    def get(self, memory_id: str) -> Memory:
        record = self._find(self._read_records(), memory_id)
        try:
            return self._record_to_memory(record)
        except (KeyError, ValueError) as e:
            raise StorageUnavailable(f"Malformed record {memory_id}: {e}") from e

    def insert(self, memory: Memory, audio: AudioArtifact | None = None) -> Memory:
        records = self._read_records()
        if any(record.get("id") == memory.id for record in records):
            raise DuplicateId(memory.id)

        record = memory.to_dict()
        if audio is not None and memory.audio_ref is None:
            record["audioBlob"] = base64.b64encode(audio.data).decode("ascii")
            record["audioType"] = audio.content_type

        self._write_records([record, *records])
        return self._record_to_memory(record)

    def apply_patch(self, memory_id: str, fields: dict[str, Any]) -> None:
        validate_patch(fields)
        records = self._read_records()
        record = self._find(records, memory_id)
        # Round-trip through the model so keys land in canonical form.
        patched = replace(Memory.from_dict(record), **fields).to_dict()
        record.update(patched)
        self._write_records(records)

    def remove(self, memory_id: str) -> bool:
        records = self._read_records()
        remaining = [record for record in records if record.get("id") != memory_id]
        if len(remaining) == len(records):
            return False
        self._write_records(remaining)
        self._discard_cached_audio(memory_id)
        return True

    def _record_to_memory(self, record: dict[str, Any]) -> Memory:
        memory = Memory.from_dict(record)
        blob = record.get("audioBlob")
        if blob and memory.audio_ref is None:
            memory = replace(memory, audio_ref=self._rehydrate_audio(record))
        return memory

    def _rehydrate_audio(self, record: dict[str, Any]) -> str | None:
        """Decode an inline blob into a playable file and return its path.

        Returns None when the blob is invalid or the file cannot be
        written; the inline copy stays authoritative.
        """
        artifact_type = record.get("audioType") or "audio/webm"
        extension = AudioArtifact(b"", content_type=artifact_type).extension
        path = self.audio_cache_dir / f"{record['id']}.{extension}"
        if path.exists():
            return str(path)
        try:
            data = base64.b64decode(record["audioBlob"], validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning("Invalid inline audio for %s: %s", record["id"], e)
            return None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.warning("Cannot rehydrate audio for %s: %s", record["id"], e)
            return None
        return str(path)

    def _discard_cached_audio(self, memory_id: str) -> None:
        if not self.audio_cache_dir.exists():
            return
        for path in self.audio_cache_dir.glob(f"{memory_id}.*"):
            path.unlink(missing_ok=True)
