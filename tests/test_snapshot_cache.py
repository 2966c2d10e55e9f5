# tests/test_snapshot_cache.py

from __future__ import annotations

from pathlib import Path

from tandem_tasks.tasks.snapshot_cache import JsonSnapshotCache
from tandem_tasks.tasks.task_store import TaskStore


def test_json_cache_roundtrip(tmp_path: Path) -> None:
    store = TaskStore()
    task = store.propose("Buy milk", "2L", "Alice")
    store.validate(task.id, "Bob")
    store.propose("Water plants", "", "Bob")
    cache = JsonSnapshotCache(tmp_path / "nested" / "cache.json")

    cache.save(store.snapshot())

    assert cache.load() == store.snapshot()
    assert not (tmp_path / "nested" / "cache.json.tmp").exists()


def test_json_cache_missing_or_corrupt(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    cache = JsonSnapshotCache(path)
    assert cache.load() is None

    path.write_text("{not json", "utf-8")
    assert cache.load() is None

    path.write_text('{"tasks": [{"title": "no id"}]}', "utf-8")
    assert cache.load() is None
