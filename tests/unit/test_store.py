"""Unit tests for the key-value backends and the export history store."""

from __future__ import annotations

import json
from datetime import datetime

import pytest

from wasilah.core.exceptions import PersistenceError
from wasilah.data.models import ExportConfig, ExportJob, JobStatus
from wasilah.data.store import (
    HistoryStore,
    JSONFileKeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
    StorageBackend,
    create_store,
)

pytestmark = pytest.mark.unit


def _job(job_id: str = "EXP-1", **kwargs) -> ExportJob:
    return ExportJob(
        id=job_id,
        name="Projects",
        config=ExportConfig(format="csv", entity_type="projects", include_columns=["id"]),
        created_at=datetime(2024, 6, 15, 12, 0),
        **kwargs,
    )


@pytest.fixture(params=["memory", "json", "sqlite"])
def kv_store(request, temp_dir):
    if request.param == "memory":
        store = MemoryKeyValueStore()
    elif request.param == "json":
        store = JSONFileKeyValueStore(temp_dir / "store.json")
    else:
        store = SQLiteKeyValueStore(temp_dir / "store.db")
    yield store
    store.close()


class TestKeyValueStores:
    def test_get_missing(self, kv_store):
        assert kv_store.get("nope") is None

    def test_set_get_overwrite(self, kv_store):
        kv_store.set("k", "v1")
        kv_store.set("k", "v2")
        assert kv_store.get("k") == "v2"

    def test_delete(self, kv_store):
        kv_store.set("k", "v")
        assert kv_store.delete("k") is True
        assert kv_store.get("k") is None
        assert kv_store.delete("k") is False


class TestFileBackends:
    def test_json_file_survives_reopen(self, temp_dir):
        path = temp_dir / "store.json"
        JSONFileKeyValueStore(path).set("k", "v")
        assert JSONFileKeyValueStore(path).get("k") == "v"
        assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v"}

    def test_sqlite_survives_reopen(self, temp_dir):
        path = temp_dir / "store.db"
        first = SQLiteKeyValueStore(path)
        first.set("k", "v")
        first.close()
        second = SQLiteKeyValueStore(path)
        assert second.get("k") == "v"
        second.close()

    def test_corrupt_json_file_raises_persistence_error(self, temp_dir):
        path = temp_dir / "store.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceError):
            JSONFileKeyValueStore(path).get("k")

    @pytest.mark.parametrize(
        "backend, kind",
        [
            (StorageBackend.MEMORY, MemoryKeyValueStore),
            ("json", JSONFileKeyValueStore),
            ("sqlite", SQLiteKeyValueStore),
        ],
    )
    def test_create_store(self, backend, kind, temp_dir):
        store = create_store(backend, data_dir=temp_dir)
        assert isinstance(store, kind)
        store.close()


class TestHistoryStore:
    def test_empty(self):
        assert HistoryStore(MemoryKeyValueStore(), "history").load() == []

    def test_save_and_load_keeps_order(self):
        history = HistoryStore(MemoryKeyValueStore(), "history")
        jobs = [_job("EXP-2", status=JobStatus.FAILED, error="boom"), _job("EXP-1")]
        history.save(jobs)

        loaded = history.load()
        assert [job.id for job in loaded] == ["EXP-2", "EXP-1"]
        assert loaded[0].status == JobStatus.FAILED
        assert loaded[0].error == "boom"
        assert loaded[1].config.include_columns == ["id"]

    def test_stored_with_camel_case_keys(self):
        store = MemoryKeyValueStore()
        HistoryStore(store, "history").save([_job(row_count=3)])
        entry = json.loads(store.get("history"))[0]
        assert entry["rowCount"] == 3
        assert entry["config"]["entityType"] == "projects"
        assert entry["createdAt"] == "2024-06-15T12:00:00"

    def test_invalid_entries_are_skipped(self):
        store = MemoryKeyValueStore()
        good = _job().to_wire()
        store.set("history", json.dumps([{"id": "broken"}, good, "junk"]))
        assert [job.id for job in HistoryStore(store, "history").load()] == ["EXP-1"]

    @pytest.mark.parametrize("payload", ["{not json", '{"a": 1}'])
    def test_unreadable_history_is_empty(self, payload):
        store = MemoryKeyValueStore()
        store.set("history", payload)
        assert HistoryStore(store, "history").load() == []

    def test_clear_removes_key(self):
        store = MemoryKeyValueStore()
        history = HistoryStore(store, "history")
        history.save([_job()])
        history.clear()
        assert store.get("history") is None
        assert history.load() == []

    def test_default_key_from_settings(self):
        assert HistoryStore(MemoryKeyValueStore()).key == "wasilah_export_history"
