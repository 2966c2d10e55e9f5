# src/tandem_tasks/tasks/transport.py

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .task_api import handle_request
from .task_errors import TaskError, TransportError
from .task_store import TaskStore

logger = logging.getLogger(__name__)


class LocalTransport:
    """
    In-process TaskTransport over a TaskStore.

    Behaves like a remote endpoint:
    - payloads and responses are plain JSON-shaped dicts (no shared objects)
    - optional latency, to exercise the client's optimistic path
    - `online = False` makes every call fail with TransportError (simulated network loss)

    Store errors (ValidationError / NotFoundError) pass through unchanged;
    anything else is reported as a TransportError, like a 500 would be.
    """

    def __init__(self, store: TaskStore, *, latency_seconds: float = 0.0) -> None:
        self._store = store
        self.latency_seconds = max(0.0, float(latency_seconds))
        self.online = True

    async def request(self, action: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        if not self.online:
            raise TransportError(f"Transport offline (action={action}).")
        try:
            return handle_request(self._store, action, dict(payload or {}))
        except TaskError:
            raise
        except Exception as e:
            logger.exception("Store request failed action=%s", action)
            raise TransportError(f"Server error during {action}.") from e

    async def fetch(self, since: int | None = None, epoch: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {} if since is None else {"since": since, "epoch": epoch}
        return await self.request("read", payload)
