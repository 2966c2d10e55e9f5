# src/tandem_tasks/tasks/task_store.py

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from .task_errors import NotFoundError, ValidationError
from .task_events import (
    DataImported,
    TaskApproved,
    TaskCompleted,
    TaskDeleted,
    TaskEvent,
    TaskProposed,
    TaskRejected,
    TaskValidated,
)
from .task_models import Snapshot, Task, TaskStatus, ValidateResult, utc_now_iso

if TYPE_CHECKING:
    from ..core.ports import SnapshotCache

logger = logging.getLogger(__name__)

DEFAULT_QUORUM = 2
EXPORT_VERSION = "2.0"

EventListener = Callable[[TaskEvent], None]


class TaskStore:
    """
    Authoritative in-memory task store.

    Holds two collections:
    - pending: proposals waiting for approval
    - tasks: approved tasks (active or completed)

    Approval rule:
    - the proposer is recorded as the first approval at creation
    - validations are a set of distinct user ids (duplicates are no-ops)
    - reaching `quorum` distinct approvers moves the task pending -> active in one step

    Thread-safety:
    - every public operation runs under one re-entrant lock, so each mutation is atomic
      and two racing validations can never both observe the approval.
    """

    def __init__(
        self,
        *,
        participants: Iterable[str] = (),
        quorum: int = DEFAULT_QUORUM,
        persistence: SnapshotCache | None = None,
    ) -> None:
        # The proposer already counts as one approval, so a quorum of 1 would never need a second person.
        if quorum < 2:
            raise ValueError("quorum must be >= 2")
        self._participants = tuple(participants)
        self._quorum = int(quorum)
        self._persistence = persistence

        self._lock = threading.RLock()
        self._tasks: list[Task] = []
        self._pending: list[Task] = []
        self._revision = 0
        # Changes whenever the store is recreated; revisions are only comparable within one epoch.
        self._epoch = uuid.uuid4().hex
        self._listeners: list[EventListener] = []

        logger.info("TaskStore ready participants=%s quorum=%s", self._participants, self._quorum)

    @property
    def quorum(self) -> int:
        return self._quorum

    @property
    def epoch(self) -> str:
        return self._epoch

    @property
    def participants(self) -> tuple[str, ...]:
        return self._participants

    # ---- low-level helpers ----

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    @staticmethod
    def _index_of(items: list[Task], task_id: str) -> int:
        for i, t in enumerate(items):
            if t.id == task_id:
                return i
        return -1

    @staticmethod
    def _require_user(user_id: str | None) -> str:
        uid = (user_id or "").strip()
        if not uid:
            raise ValidationError("A user id is required.")
        return uid

    def _snapshot_locked(self) -> Snapshot:
        return Snapshot(tasks=tuple(self._tasks), pending_tasks=tuple(self._pending), revision=self._revision)

    def _commit(self, event: TaskEvent) -> None:
        """Bump revision, persist, notify. Caller holds the lock and has already mutated."""
        self._revision += 1

        if self._persistence is not None:
            try:
                self._persistence.save(self._snapshot_locked())
            except Exception:
                logger.exception("Failed to persist store snapshot revision=%s", self._revision)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed kind=%s", event.kind)

    # ---- subscriptions ----

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a lifecycle event listener. Returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # ---- lifecycle operations ----

    def propose(self, title: str | None, description: str | None, proposed_by: str | None) -> Task:
        clean_title = (title or "").strip()
        if not clean_title:
            raise ValidationError("A task title is required.")
        proposer = (proposed_by or "").strip()
        if not proposer:
            raise ValidationError("The proposing user is required.")

        task = Task(
            id=self._new_id(),
            title=clean_title,
            description=(description or "").strip(),
            proposed_by=proposer,
            proposed_at=utc_now_iso(),
            status=TaskStatus.PENDING,
            validations=(proposer,),
        )

        with self._lock:
            self._pending.append(task)
            self._commit(TaskProposed(task=task))

        logger.debug("Task proposed id=%s by=%s", task.id, proposer)
        return task

    def validate(self, task_id: str, user_id: str | None) -> ValidateResult:
        uid = self._require_user(user_id)

        with self._lock:
            idx = self._index_of(self._pending, task_id)
            if idx == -1:
                raise NotFoundError(task_id)
            task = self._pending[idx]

            if uid in task.validations:
                # Duplicate (including the proposer's own implicit approval): nothing changes.
                logger.debug("Duplicate validation ignored id=%s user=%s", task_id, uid)
                return ValidateResult(task=task, approved=False, validations_count=len(task.validations))

            validations = (*task.validations, uid)

            if len(validations) >= self._quorum:
                approved = replace(
                    task,
                    validations=validations,
                    status=TaskStatus.ACTIVE,
                    approved_at=utc_now_iso(),
                )
                del self._pending[idx]
                self._tasks.append(approved)
                self._commit(TaskApproved(task=approved))
                logger.info("Task approved id=%s by=%s", task_id, uid)
                return ValidateResult(task=approved, approved=True, validations_count=len(validations))

            updated = replace(task, validations=validations)
            self._pending[idx] = updated
            self._commit(TaskValidated(task_id=task_id, user_id=uid, validations=validations))
            return ValidateResult(task=updated, approved=False, validations_count=len(validations))

    def reject(self, task_id: str, user_id: str | None = None) -> Task:
        with self._lock:
            idx = self._index_of(self._pending, task_id)
            if idx == -1:
                raise NotFoundError(task_id)
            rejected = self._pending.pop(idx)
            self._commit(TaskRejected(task_id=task_id, rejected_by=user_id))

        logger.info("Task rejected id=%s by=%s", task_id, user_id)
        return rejected

    def complete(self, task_id: str, user_id: str | None) -> Task:
        uid = self._require_user(user_id)

        with self._lock:
            idx = self._index_of(self._tasks, task_id)
            if idx == -1 or self._tasks[idx].status != TaskStatus.ACTIVE:
                raise NotFoundError(task_id)
            done = replace(
                self._tasks[idx],
                status=TaskStatus.COMPLETED,
                completed_by=uid,
                completed_at=utc_now_iso(),
            )
            self._tasks[idx] = done
            self._commit(TaskCompleted(task=done))

        logger.info("Task completed id=%s by=%s", task_id, uid)
        return done

    def delete(self, task_id: str, user_id: str | None = None) -> Task:
        """Remove a task from the approved collection, else from pending. Final, no tombstone."""
        with self._lock:
            idx = self._index_of(self._tasks, task_id)
            if idx != -1:
                removed = self._tasks.pop(idx)
            else:
                idx = self._index_of(self._pending, task_id)
                if idx == -1:
                    raise NotFoundError(task_id)
                removed = self._pending.pop(idx)
            self._commit(TaskDeleted(task_id=task_id, deleted_by=user_id))

        logger.info("Task deleted id=%s by=%s", task_id, user_id)
        return removed

    # ---- reads ----

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot_locked()

    @property
    def revision(self) -> int:
        with self._lock:
            return self._revision

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            return self._snapshot_locked().find(task_id)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "status": "ok",
                "timestamp": utc_now_iso(),
                "participants": list(self._participants),
                "tasksCount": len(self._tasks),
                "pendingCount": len(self._pending),
                "revision": self._revision,
                "epoch": self._epoch,
            }

    # ---- export / import / restore ----

    def export_data(self) -> dict[str, Any]:
        with self._lock:
            data = self._snapshot_locked().to_dict()
        data["participants"] = list(self._participants)
        data["exportedAt"] = utc_now_iso()
        data["version"] = EXPORT_VERSION
        return data

    def import_data(self, data: Any) -> DataImported:
        """
        Merge exported data into the store.

        Records whose id is already known (in either collection) are skipped.
        Imported records keep their status; pending ones go to pending, the rest to tasks.
        """
        if not isinstance(data, dict) or ("tasks" not in data and "pendingTasks" not in data):
            raise ValidationError("Invalid import format: expected 'tasks' and/or 'pendingTasks'.")

        raw_tasks = data.get("tasks") or []
        raw_pending = data.get("pendingTasks") or []
        if not isinstance(raw_tasks, list) or not isinstance(raw_pending, list):
            raise ValidationError("Invalid import format: collections must be lists.")

        # Parse everything first so a bad record fails the whole import.
        parsed = [Task.from_dict(r) for r in raw_tasks] + [Task.from_dict(r) for r in raw_pending]

        added_tasks: list[str] = []
        added_pending: list[str] = []

        with self._lock:
            known = self._snapshot_locked().ids()
            for task in parsed:
                if task.id in known:
                    continue
                known.add(task.id)
                if task.status == TaskStatus.PENDING:
                    self._pending.append(task)
                    added_pending.append(task.id)
                else:
                    self._tasks.append(task)
                    added_tasks.append(task.id)

            event = DataImported(added_tasks=tuple(added_tasks), added_pending=tuple(added_pending))
            self._commit(event)

        logger.info(
            "Import merged tasks=%d pending=%d skipped=%d",
            len(added_tasks),
            len(added_pending),
            len(parsed) - len(added_tasks) - len(added_pending),
        )
        return event

    def restore(self, snapshot: Snapshot) -> None:
        """Replace state from a persisted snapshot (startup only; emits no events)."""
        # Records sit in the collection their status names, whichever list they were saved in.
        tasks: list[Task] = []
        pending: list[Task] = []
        seen: set[str] = set()
        for task in (*snapshot.tasks, *snapshot.pending_tasks):
            if task.id in seen:
                logger.warning("Restore skipped duplicate task id=%s", task.id)
                continue
            seen.add(task.id)
            (pending if task.status == TaskStatus.PENDING else tasks).append(task)

        with self._lock:
            self._tasks = tasks
            self._pending = pending
            self._revision = max(self._revision, int(snapshot.revision))
        logger.info(
            "TaskStore restored tasks=%d pending=%d revision=%s",
            len(self._tasks),
            len(self._pending),
            self._revision,
        )
