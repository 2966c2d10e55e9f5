# src/tandem_tasks/tasks/task_errors.py

from __future__ import annotations


class TaskError(Exception):
    """Base class for task lifecycle errors (carries a user-facing message)."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TaskError):
    """Malformed input: missing title, missing user id, bad payload."""


class NotFoundError(TaskError):
    """
    The referenced task is not in the expected collection.

    Usually it was rejected/deleted/completed by the other participant,
    or it never existed.
    """

    def __init__(self, task_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Task {task_id} is no longer available.")
        self.task_id = task_id


class TransportError(TaskError):
    """Communication failure between a client and the store."""
