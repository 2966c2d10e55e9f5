# src/tandem_tasks/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..tasks.sync_reconciler import SyncReconciler
from ..tasks.task_store import TaskStore
from .ports import TaskTransport

if TYPE_CHECKING:
    from ..connectors.sync_runner import SyncBackgroundRunner


@dataclass
class AppState:
    """
    Everything one process needs, wired once in cli/bootstrap.py.

    store is the authoritative TaskStore (only the transport touches it),
    client is this participant's SyncReconciler talking to it through `transport`.
    """

    # Store Settings on the state for easy access in other modules later.
    settings: Any

    store: TaskStore
    transport: TaskTransport
    client: SyncReconciler

    # Set once the background event loop is running.
    runner: SyncBackgroundRunner | None = None

    lock: threading.Lock = field(default_factory=threading.Lock)
