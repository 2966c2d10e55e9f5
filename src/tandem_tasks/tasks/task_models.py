# src/tandem_tasks/tasks/task_models.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from .task_errors import ValidationError

TEMP_ID_PREFIX = "temp_"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    pending -> active once the approval quorum is reached,
    active -> completed when someone marks it done.
    Rejection and deletion remove the record instead of setting a status.
    """

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"

    @classmethod
    def from_raw(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            raise ValidationError(f"Unknown task status: {raw!r}") from None


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    description: str
    proposed_by: str
    proposed_at: str
    status: TaskStatus = TaskStatus.PENDING

    # Distinct approvers, in the order they approved.
    validations: tuple[str, ...] = ()

    approved_at: str | None = None
    completed_by: str | None = None
    completed_at: str | None = None

    @property
    def is_temporary(self) -> bool:
        return self.id.startswith(TEMP_ID_PREFIX)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "proposedBy": self.proposed_by,
            "proposedAt": self.proposed_at,
            "validations": list(self.validations),
            "status": self.status.value,
        }
        if self.approved_at is not None:
            out["approvedAt"] = self.approved_at
        if self.completed_by is not None:
            out["completedBy"] = self.completed_by
        if self.completed_at is not None:
            out["completedAt"] = self.completed_at
        return out

    @classmethod
    def from_dict(cls, data: Any) -> Task:
        """
        Build a Task from a JSON-shaped record.

        Accepts the legacy "proposer" key for "proposedBy".
        Missing optional fields fall back to defaults; id and title are required.
        """
        if not isinstance(data, dict):
            raise ValidationError("Task record must be an object.")

        task_id = str(data.get("id") or "").strip()
        title = str(data.get("title") or "").strip()
        if not task_id or not title:
            raise ValidationError("Task record requires an id and a title.")

        proposed_by = str(data.get("proposedBy") or data.get("proposer") or "").strip()
        raw_validations = data.get("validations") or []
        validations = _dedupe(str(v) for v in raw_validations if v) if isinstance(raw_validations, list) else ()

        return cls(
            id=task_id,
            title=title,
            description=str(data.get("description") or "").strip(),
            proposed_by=proposed_by,
            proposed_at=str(data.get("proposedAt") or ""),
            status=TaskStatus.from_raw(data.get("status")),
            validations=validations,
            approved_at=data.get("approvedAt"),
            completed_by=data.get("completedBy"),
            completed_at=data.get("completedAt"),
        )


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for v in values:
        seen.setdefault(v, None)
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    Immutable view of the task collections.

    tasks holds active and completed tasks, pending_tasks the ones awaiting approval.
    revision increases on every store mutation; clients use it to skip unchanged reads.
    """

    tasks: tuple[Task, ...] = ()
    pending_tasks: tuple[Task, ...] = ()
    revision: int = 0

    def find(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        for t in self.pending_tasks:
            if t.id == task_id:
                return t
        return None

    def ids(self) -> set[str]:
        return {t.id for t in self.tasks} | {t.id for t in self.pending_tasks}

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [t.to_dict() for t in self.tasks],
            "pendingTasks": [t.to_dict() for t in self.pending_tasks],
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Snapshot:
        if not isinstance(data, dict):
            raise ValidationError("Snapshot must be an object.")
        tasks = data.get("tasks") or []
        pending = data.get("pendingTasks") or []
        if not isinstance(tasks, list) or not isinstance(pending, list):
            raise ValidationError("Snapshot collections must be lists.")
        try:
            revision = int(data.get("revision") or 0)
        except (TypeError, ValueError):
            raise ValidationError("Snapshot revision must be an integer.") from None
        return cls(
            tasks=tuple(Task.from_dict(t) for t in tasks),
            pending_tasks=tuple(Task.from_dict(t) for t in pending),
            revision=revision,
        )


@dataclass(frozen=True, slots=True)
class ValidateResult:
    """Outcome of a validation: approved=True only for the call that crossed the quorum."""

    task: Task
    approved: bool
    validations_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task.to_dict(),
            "approved": self.approved,
            "validationsCount": self.validations_count,
        }

