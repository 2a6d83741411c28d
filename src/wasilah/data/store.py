"""
Durable key-value storage and export history persistence.

Provides memory, JSON file and SQLite key-value backends. The export history
is one JSON list of job snapshots stored under a single key.
"""

from __future__ import annotations

import json
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Generator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from wasilah.config.settings import FlatSettings, get_settings
from wasilah.core.exceptions import PersistenceError
from wasilah.data.models import ExportJob
from wasilah.utils.logging import get_logger

logger = get_logger("export.store")


class StorageBackend(str, Enum):
    """Available storage backends."""

    JSON = "json"
    SQLITE = "sqlite"
    MEMORY = "memory"


class KeyValueStore(ABC):
    """String key to string value storage."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key; returns whether it existed."""
        ...

    def close(self) -> None:
        """Close the store and release resources."""


class MemoryKeyValueStore(KeyValueStore):
    """In-memory storage for testing."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def close(self) -> None:
        self._data.clear()


class JSONFileKeyValueStore(KeyValueStore):
    """All keys in one JSON object file, rewritten atomically on each change."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or Path.home() / ".wasilah" / "store.json"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path} does not hold a JSON object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> bool:
        with self._lock:
            data = self._read()
            if key not in data:
                return False
            del data[key]
            self._write(data)
            return True


class SQLiteKeyValueStore(KeyValueStore):
    """SQLite-based key-value storage."""

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS kv (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path or Path.home() / ".wasilah" / "store.db"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._lock = threading.Lock()
        self._conn.executescript(self.SCHEMA)
        self._conn.commit()

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Cursor, None, None]:
        """Context manager for database transactions."""
        with self._lock:
            cursor = self._conn.cursor()
            try:
                yield cursor
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise PersistenceError(f"SQLite error on {self.db_path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        with self._transaction() as cursor:
            cursor.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cursor.fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._transaction() as cursor:
            cursor.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value)
            )

    def delete(self, key: str) -> bool:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM kv WHERE key = ?", (key,))
            return cursor.rowcount > 0

    def close(self) -> None:
        self._conn.close()


def create_store(
    backend: StorageBackend | str | None = None, data_dir: Path | None = None
) -> KeyValueStore:
    """Factory function to create a key-value store based on settings."""
    settings = FlatSettings(get_settings())
    backend = StorageBackend(backend or settings.storage_backend)
    base_dir = data_dir or (Path(settings.data_dir) if settings.data_dir else None)

    if backend == StorageBackend.MEMORY:
        return MemoryKeyValueStore()
    elif backend == StorageBackend.JSON:
        return JSONFileKeyValueStore(path=base_dir / "store.json" if base_dir else None)
    elif backend == StorageBackend.SQLITE:
        return SQLiteKeyValueStore(db_path=base_dir / "store.db" if base_dir else None)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")


class HistoryStore:
    """Persists the export job list, newest first, under one key."""

    def __init__(self, store: KeyValueStore, key: str | None = None) -> None:
        self.store = store
        self.key = key or FlatSettings(get_settings()).history_key

    def load(self) -> list[ExportJob]:
        """Read the job list back; entries that do not validate are skipped."""
        raw = self.store.get(self.key)
        if raw is None:
            return []
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("history.unreadable", key=self.key, error=str(exc))
            return []
        if not isinstance(entries, list):
            logger.warning("history.unreadable", key=self.key, error="not a list")
            return []

        jobs: list[ExportJob] = []
        for index, entry in enumerate(entries):
            try:
                jobs.append(ExportJob.model_validate(entry))
            except ValidationError as exc:
                logger.warning(
                    "history.entry_skipped",
                    index=index,
                    errors=exc.error_count(),
                )
        return jobs

    def save(self, jobs: list[ExportJob]) -> None:
        payload = json.dumps([job.to_wire() for job in jobs])
        self.store.set(self.key, payload)

    def clear(self) -> None:
        self.store.delete(self.key)
