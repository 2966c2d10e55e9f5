# src/tandem_tasks/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The store and the reconciler depend on Protocols instead of concrete implementations.
This keeps transports/persistence/notification sinks swappable and makes testing easier.
"""

from typing import TYPE_CHECKING, Any, Awaitable, Protocol

if TYPE_CHECKING:
    from ..tasks.task_events import TaskEvent
    from ..tasks.task_models import Snapshot

JsonRecord = dict[str, Any]
# JSON-shaped request/response records: {"taskId": "...", "userId": "...", ...}.


class TaskTransport(Protocol):
    """
    Client-side view of the store endpoint.

    request() maps 1:1 onto the store operations (propose/validate/reject/complete/delete,
    plus read/export/import/health). Implementations raise:
    - ValidationError / NotFoundError as reported by the store
    - TransportError on communication failure
    """

    def request(self, action: str, payload: JsonRecord | None = None) -> Awaitable[JsonRecord]: ...

    def fetch(self, since: int | None = None, epoch: str | None = None) -> Awaitable[JsonRecord]: ...


class SnapshotCache(Protocol):
    """Key-value persistence for one snapshot. Last write wins, no transactions."""

    def save(self, snapshot: Snapshot) -> None: ...
    def load(self) -> Snapshot | None: ...


class EventSink(Protocol):
    """Notification/UI side: receives lifecycle events as plain records."""

    def __call__(self, event: TaskEvent) -> None: ...
