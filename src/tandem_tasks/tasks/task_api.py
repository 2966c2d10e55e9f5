# src/tandem_tasks/tasks/task_api.py

from __future__ import annotations

"""
Request handling on the store side.

One function per transport operation, each taking and returning JSON-shaped dicts.
This is what an HTTP route (or the in-process LocalTransport) calls into.
"""

import logging
from collections.abc import Callable
from typing import Any

from .task_errors import ValidationError
from .task_store import TaskStore

logger = logging.getLogger(__name__)

Payload = dict[str, Any]


def _task_id(payload: Payload) -> str:
    task_id = str(payload.get("taskId") or "").strip()
    if not task_id:
        raise ValidationError("A task id is required.")
    return task_id


def _user_id(payload: Payload) -> str:
    user_id = str(payload.get("userId") or "").strip()
    if not user_id:
        raise ValidationError("A user id is required.")
    return user_id


def handle_propose(store: TaskStore, payload: Payload) -> Payload:
    task = store.propose(payload.get("title"), payload.get("description"), payload.get("proposedBy"))
    return task.to_dict()


def handle_validate(store: TaskStore, payload: Payload) -> Payload:
    result = store.validate(_task_id(payload), _user_id(payload))
    return result.to_dict()


def handle_reject(store: TaskStore, payload: Payload) -> Payload:
    task = store.reject(_task_id(payload), _user_id(payload))
    return {"message": "Task rejected", "task": task.to_dict()}


def handle_complete(store: TaskStore, payload: Payload) -> Payload:
    task = store.complete(_task_id(payload), _user_id(payload))
    return {"message": "Task completed", "task": task.to_dict()}


def handle_delete(store: TaskStore, payload: Payload) -> Payload:
    task = store.delete(_task_id(payload), _user_id(payload))
    return {"message": "Task deleted", "task": task.to_dict()}


def handle_read(store: TaskStore, payload: Payload) -> Payload:
    """
    Full snapshot plus the store epoch, or {"revision", "epoch", "unchanged": True}
    when the caller already has the current revision of the current epoch
    (payload["since"] and payload["epoch"]).
    """
    snapshot = store.snapshot()
    since = payload.get("since")
    if since is not None:
        try:
            since_rev = int(since)
        except (TypeError, ValueError):
            raise ValidationError("'since' must be a revision number.") from None
        if since_rev == snapshot.revision and payload.get("epoch") == store.epoch:
            return {"revision": snapshot.revision, "epoch": store.epoch, "unchanged": True}
    out = snapshot.to_dict()
    out["epoch"] = store.epoch
    return out


def handle_export(store: TaskStore, payload: Payload) -> Payload:
    return store.export_data()


def handle_import(store: TaskStore, payload: Payload) -> Payload:
    event = store.import_data(payload.get("data", payload))
    return {
        "message": "Import succeeded",
        "addedTasks": list(event.added_tasks),
        "addedPending": list(event.added_pending),
        "revision": store.revision,
    }


def handle_health(store: TaskStore, payload: Payload) -> Payload:
    return store.stats()


HANDLERS: dict[str, Callable[[TaskStore, Payload], Payload]] = {
    "propose": handle_propose,
    "validate": handle_validate,
    "reject": handle_reject,
    "complete": handle_complete,
    "delete": handle_delete,
    "read": handle_read,
    "export": handle_export,
    "import": handle_import,
    "health": handle_health,
}


def handle_request(store: TaskStore, action: str, payload: Payload | None = None) -> Payload:
    """
    Dispatch one request. Store errors (ValidationError / NotFoundError) propagate
    to the caller, which maps them onto its transport (HTTP 400 / 404, ...).
    """
    handler = HANDLERS.get((action or "").strip().lower())
    if handler is None:
        raise ValidationError(f"Unknown action: {action!r}")
    logger.debug("Request action=%s", action)
    return handler(store, dict(payload or {}))
