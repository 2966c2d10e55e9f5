# tests/test_task_api.py

from __future__ import annotations

import pytest

from tandem_tasks.tasks.task_api import handle_request
from tandem_tasks.tasks.task_errors import NotFoundError, ValidationError
from tandem_tasks.tasks.task_store import TaskStore


def test_request_shapes(store: TaskStore) -> None:
    created = handle_request(store, "propose", {"title": "Buy milk", "description": "", "proposedBy": "Alice"})
    assert created["status"] == "pending"
    assert created["proposedBy"] == "Alice"
    assert created["validations"] == ["Alice"]

    validated = handle_request(store, "validate", {"taskId": created["id"], "userId": "Bob"})
    assert validated["approved"] is True
    assert validated["validationsCount"] == 2
    assert validated["task"]["status"] == "active"

    completed = handle_request(store, "complete", {"taskId": created["id"], "userId": "Bob"})
    assert completed["task"]["completedBy"] == "Bob"

    snapshot = handle_request(store, "read")
    assert set(snapshot) == {"tasks", "pendingTasks", "revision", "epoch"}
    assert snapshot["epoch"] == store.epoch
    assert snapshot["tasks"][0]["id"] == created["id"]

    deleted = handle_request(store, "DELETE", {"taskId": created["id"], "userId": "Alice"})
    assert deleted["task"]["id"] == created["id"]
    with pytest.raises(NotFoundError):
        handle_request(store, "complete", {"taskId": created["id"], "userId": "Bob"})


def test_read_since_current_revision_is_unchanged(store: TaskStore) -> None:
    store.propose("Buy milk", "", "Alice")
    rev = store.revision

    assert handle_request(store, "read", {"since": rev, "epoch": store.epoch}) == {
        "revision": rev,
        "epoch": store.epoch,
        "unchanged": True,
    }
    assert "pendingTasks" in handle_request(store, "read", {"since": rev - 1, "epoch": store.epoch})


def test_read_from_another_store_epoch_is_answered_in_full(store: TaskStore) -> None:
    store.propose("Buy milk", "", "Alice")
    restarted = TaskStore()
    restarted.propose("Water plants", "", "Bob")
    assert restarted.revision == store.revision

    answer = handle_request(restarted, "read", {"since": store.revision, "epoch": store.epoch})

    assert "unchanged" not in answer
    assert [t["title"] for t in answer["pendingTasks"]] == ["Water plants"]
    assert handle_request(restarted, "read", {"since": restarted.revision}).get("unchanged") is None
    with pytest.raises(ValidationError):
        handle_request(store, "read", {"since": "latest"})


@pytest.mark.parametrize(
    ("action", "payload"),
    [
        ("validate", {"userId": "Bob"}),
        ("validate", {"taskId": "t1"}),
        ("reject", {"taskId": " ", "userId": "Bob"}),
        ("fly", {}),
        ("", {}),
    ],
)
def test_malformed_requests(store: TaskStore, action: str, payload: dict) -> None:
    with pytest.raises(ValidationError):
        handle_request(store, action, payload)


def test_export_import_and_health(store: TaskStore) -> None:
    store.propose("Buy milk", "", "Alice")
    exported = handle_request(store, "export")

    other = TaskStore()
    result = handle_request(other, "import", {"data": exported})
    assert len(result["addedPending"]) == 1
    assert result["revision"] == 1

    health = handle_request(other, "health")
    assert health["pendingCount"] == 1
