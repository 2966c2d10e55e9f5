# tests/test_task_events.py

from __future__ import annotations

from dataclasses import replace

from tandem_tasks.tasks.task_events import (
    TaskApproved,
    TaskCompleted,
    TaskDeleted,
    TaskProposed,
    TaskRejected,
    TaskValidated,
    describe_event,
    diff_snapshots,
    event_to_dict,
)
from tandem_tasks.tasks.task_models import Snapshot, Task, TaskStatus


def _task(task_id: str, status: TaskStatus = TaskStatus.PENDING, validations=("Alice",)) -> Task:
    return Task(
        id=task_id,
        title=f"Task {task_id}",
        description="",
        proposed_by="Alice",
        proposed_at="2026-01-01T00:00:00+00:00",
        status=status,
        validations=tuple(validations),
    )


def test_diff_detects_each_transition() -> None:
    proposed = _task("p1")
    approved = _task("a1")
    completed = _task("c1", TaskStatus.ACTIVE, ("Alice", "Bob"))
    rejected = _task("r1")
    deleted = _task("d1", TaskStatus.ACTIVE, ("Alice", "Bob"))

    old = Snapshot(tasks=(completed, deleted), pending_tasks=(approved, rejected), revision=4)
    new = Snapshot(
        tasks=(
            replace(completed, status=TaskStatus.COMPLETED, completed_by="Bob"),
            replace(approved, status=TaskStatus.ACTIVE, validations=("Alice", "Bob")),
        ),
        pending_tasks=(proposed,),
        revision=9,
    )

    events = diff_snapshots(old, new)

    assert {type(e) for e in events} == {TaskProposed, TaskApproved, TaskCompleted, TaskRejected, TaskDeleted}
    by_type = {type(e): e for e in events}
    assert by_type[TaskProposed].task.id == "p1"
    assert by_type[TaskApproved].task.id == "a1"
    assert by_type[TaskCompleted].task.completed_by == "Bob"
    assert by_type[TaskRejected].task_id == "r1"
    assert by_type[TaskDeleted].task_id == "d1"


def test_diff_reports_new_validations() -> None:
    old = Snapshot(pending_tasks=(_task("p1"),))
    new = Snapshot(pending_tasks=(_task("p1", validations=("Alice", "Carol")),))

    events = diff_snapshots(old, new)

    assert events == [TaskValidated(task_id="p1", user_id="Carol", validations=("Alice", "Carol"))]


def test_diff_ignores_temporary_records_and_identical_snapshots() -> None:
    temp = replace(_task("x"), id="temp_abc")
    snap = Snapshot(tasks=(_task("a", TaskStatus.ACTIVE),), pending_tasks=(_task("p"),))

    assert diff_snapshots(snap, snap) == []
    assert diff_snapshots(Snapshot(), Snapshot(pending_tasks=(temp,))) == []


def test_unseen_completed_task_reports_approval_and_completion() -> None:
    done = _task("c", TaskStatus.COMPLETED)

    kinds = [e.kind for e in diff_snapshots(Snapshot(), Snapshot(tasks=(done,)))]

    assert kinds == ["approved", "completed"]


def test_event_records_are_json_shaped() -> None:
    task = _task("p1")

    assert event_to_dict(TaskProposed(task=task)) == {"type": "proposed", "task": task.to_dict()}
    assert event_to_dict(TaskRejected(task_id="p1", rejected_by="Bob")) == {
        "type": "rejected",
        "taskId": "p1",
        "rejectedBy": "Bob",
    }
    assert event_to_dict(TaskValidated(task_id="p1", user_id="Bob", validations=("Alice", "Bob")))[
        "validations"
    ] == ["Alice", "Bob"]
    assert "Bob" in describe_event(TaskDeleted(task_id="p1", deleted_by="Bob"))
