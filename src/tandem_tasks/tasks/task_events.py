# src/tandem_tasks/tasks/task_events.py

from __future__ import annotations

"""
Lifecycle events.

One frozen record per transition, each carrying only what that transition needs.
The store emits them to subscribers; polling clients derive them from snapshot diffs
(see diff_snapshots), so both sides feed the same notification path.
"""

from dataclasses import dataclass
from typing import Any, ClassVar

from .task_models import Snapshot, Task, TaskStatus


@dataclass(frozen=True, slots=True)
class TaskProposed:
    kind: ClassVar[str] = "proposed"
    task: Task


@dataclass(frozen=True, slots=True)
class TaskValidated:
    kind: ClassVar[str] = "validated"
    task_id: str
    user_id: str
    validations: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TaskApproved:
    kind: ClassVar[str] = "approved"
    task: Task


@dataclass(frozen=True, slots=True)
class TaskRejected:
    kind: ClassVar[str] = "rejected"
    task_id: str
    rejected_by: str | None


@dataclass(frozen=True, slots=True)
class TaskCompleted:
    kind: ClassVar[str] = "completed"
    task: Task


@dataclass(frozen=True, slots=True)
class TaskDeleted:
    kind: ClassVar[str] = "deleted"
    task_id: str
    deleted_by: str | None


@dataclass(frozen=True, slots=True)
class DataImported:
    kind: ClassVar[str] = "imported"
    added_tasks: tuple[str, ...]
    added_pending: tuple[str, ...]


TaskEvent = (
    TaskProposed | TaskValidated | TaskApproved | TaskRejected | TaskCompleted | TaskDeleted | DataImported
)


def event_to_dict(event: TaskEvent) -> dict[str, Any]:
    """JSON-shaped record for notification collaborators."""
    match event:
        case TaskProposed(task=task) | TaskApproved(task=task) | TaskCompleted(task=task):
            return {"type": event.kind, "task": task.to_dict()}
        case TaskValidated():
            return {
                "type": event.kind,
                "taskId": event.task_id,
                "userId": event.user_id,
                "validations": list(event.validations),
            }
        case TaskRejected():
            return {"type": event.kind, "taskId": event.task_id, "rejectedBy": event.rejected_by}
        case TaskDeleted():
            return {"type": event.kind, "taskId": event.task_id, "deletedBy": event.deleted_by}
        case DataImported():
            return {
                "type": event.kind,
                "addedTasks": list(event.added_tasks),
                "addedPending": list(event.added_pending),
            }
    raise TypeError(f"Unknown event: {event!r}")


def describe_event(event: TaskEvent) -> str:
    """Short human-readable line for console notifications."""
    match event:
        case TaskProposed(task=task):
            return f"{task.proposed_by} proposed '{task.title}' ({task.id})"
        case TaskValidated():
            return f"{event.user_id} validated {event.task_id} ({len(event.validations)} approvals)"
        case TaskApproved(task=task):
            return f"'{task.title}' is approved and now active ({task.id})"
        case TaskRejected():
            return f"{event.task_id} was rejected" + (f" by {event.rejected_by}" if event.rejected_by else "")
        case TaskCompleted(task=task):
            who = f" by {task.completed_by}" if task.completed_by else ""
            return f"'{task.title}' was completed{who} ({task.id})"
        case TaskDeleted():
            return f"{event.task_id} was deleted" + (f" by {event.deleted_by}" if event.deleted_by else "")
        case DataImported():
            return f"Imported {len(event.added_tasks)} tasks and {len(event.added_pending)} pending tasks"
    raise TypeError(f"Unknown event: {event!r}")


def diff_snapshots(old: Snapshot, new: Snapshot) -> list[TaskEvent]:
    """
    Events a polling client can infer between two snapshots.

    Snapshots carry no actor for removals, so rejected_by/deleted_by are None.
    A pending task that disappeared is reported as rejected, an active/completed one as deleted.
    Temporary (not yet acknowledged) records are local-only and never produce events.
    """
    old_pending = {t.id: t for t in old.pending_tasks if not t.is_temporary}
    old_tasks = {t.id: t for t in old.tasks if not t.is_temporary}
    new_pending = {t.id: t for t in new.pending_tasks if not t.is_temporary}
    new_tasks = {t.id: t for t in new.tasks if not t.is_temporary}

    events: list[TaskEvent] = []

    for task_id, task in new_pending.items():
        prev = old_pending.get(task_id)
        if prev is None:
            if task_id not in old_tasks:
                events.append(TaskProposed(task=task))
            continue
        for user_id in task.validations:
            if user_id not in prev.validations:
                events.append(TaskValidated(task_id=task_id, user_id=user_id, validations=task.validations))

    for task_id, task in new_tasks.items():
        prev = old_tasks.get(task_id)
        if prev is None:
            # Unseen before: surface the approval, and the completion if it already happened.
            events.append(TaskApproved(task=task))
            if task.status == TaskStatus.COMPLETED:
                events.append(TaskCompleted(task=task))
            continue
        if prev.status != TaskStatus.COMPLETED and task.status == TaskStatus.COMPLETED:
            events.append(TaskCompleted(task=task))

    for task_id in old_pending:
        if task_id not in new_pending and task_id not in new_tasks:
            events.append(TaskRejected(task_id=task_id, rejected_by=None))

    for task_id in old_tasks:
        if task_id not in new_tasks and task_id not in new_pending:
            events.append(TaskDeleted(task_id=task_id, deleted_by=None))

    return events
