# src/tandem_tasks/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the store, its persistence, the transport and this participant's reconciler into AppState,
- restores the client cache so the last known view shows before the first sync.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import EventSink, SnapshotCache
from ..core.state import AppState
from ..tasks.snapshot_cache import JsonSnapshotCache
from ..tasks.sync_reconciler import SyncReconciler
from ..tasks.task_store import TaskStore
from ..tasks.transport import LocalTransport

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    settings.client_cache_path.parent.mkdir(parents=True, exist_ok=True)


def create_store(settings) -> TaskStore:
    """Build the single shared store, restoring it from its snapshot file when persistence is on."""
    persistence: SnapshotCache | None = None
    if getattr(settings, "persist_store", False):
        persistence = JsonSnapshotCache(settings.store_snapshot_path)

    store = TaskStore(participants=settings.participants, quorum=settings.quorum, persistence=persistence)

    if persistence is not None:
        snapshot = persistence.load()
        if snapshot is not None:
            store.restore(snapshot)
    return store


def create_initial_state(*, settings=None, on_event: EventSink | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = create_store(settings)
    transport = LocalTransport(store, latency_seconds=getattr(settings, "transport_latency_seconds", 0.0))

    client = SyncReconciler(
        transport,
        user_id=settings.current_user,
        quorum=settings.quorum,
        cache=JsonSnapshotCache(settings.client_cache_path),
        on_event=on_event,
        request_timeout_seconds=settings.poll_timeout_seconds,
    )
    client.restore()

    return AppState(settings=settings, store=store, transport=transport, client=client)
