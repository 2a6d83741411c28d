"""Record sources and download targets used by the export service."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from wasilah.data.models import EntityType
from wasilah.utils.logging import get_logger

logger = get_logger("export.providers")


class RecordProvider(ABC):
    """Returns the raw records of an entity type."""

    @abstractmethod
    def fetch(self, entity_type: EntityType) -> list[dict[str, Any]]:
        ...


class StaticRecordProvider(RecordProvider):
    """In-memory records keyed by entity type."""

    def __init__(self, records: dict[EntityType | str, list[dict[str, Any]]] | None = None):
        self._records: dict[EntityType, list[dict[str, Any]]] = {
            EntityType(key): list(value) for key, value in (records or {}).items()
        }

    def fetch(self, entity_type: EntityType) -> list[dict[str, Any]]:
        return list(self._records.get(EntityType(entity_type), []))

    def set(self, entity_type: EntityType | str, records: list[dict[str, Any]]) -> None:
        self._records[EntityType(entity_type)] = list(records)


class JSONDirectoryRecordProvider(RecordProvider):
    """Reads ``<entity_type>.json`` (a JSON list of objects) from a directory.

    A missing file means no records. A file that is not a list of objects
    raises ``ValueError``.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, entity_type: EntityType) -> Path:
        return self.directory / f"{EntityType(entity_type).value}.json"

    def fetch(self, entity_type: EntityType) -> list[dict[str, Any]]:
        path = self.path_for(entity_type)
        if not path.exists():
            logger.debug("records.file_missing", path=str(path))
            return []
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict) and isinstance(data.get("data"), list):
            # Accept a previous JSON export as input
            data = data["data"]
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise ValueError(f"{path} must contain a JSON list of objects")
        return data


class DownloadTarget(ABC):
    """Receives a finished artifact."""

    @abstractmethod
    def deliver(self, content: bytes, filename: str, mime_type: str) -> str | None:
        """Hand the artifact over; returns where it went, if anywhere."""
        ...


class MemoryDownloader(DownloadTarget):
    def __init__(self) -> None:
        self.deliveries: list[tuple[str, str, bytes]] = []

    def deliver(self, content: bytes, filename: str, mime_type: str) -> str | None:
        self.deliveries.append((filename, mime_type, content))
        return None

    @property
    def last(self) -> tuple[str, str, bytes] | None:
        return self.deliveries[-1] if self.deliveries else None


class DirectoryDownloader(DownloadTarget):
    """Writes artifacts into a directory.

    An existing file of the same name gets a ``-1``, ``-2`` ... suffix rather
    than being overwritten.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.last_path: Path | None = None

    def deliver(self, content: bytes, filename: str, mime_type: str) -> str | None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / filename
        counter = 1
        while path.exists():
            path = self.directory / f"{Path(filename).stem}-{counter}{Path(filename).suffix}"
            counter += 1
        path.write_bytes(content)
        self.last_path = path
        logger.info("export.delivered", path=str(path), bytes=len(content), mime_type=mime_type)
        return str(path)
