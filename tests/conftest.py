# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tandem_tasks.cli.bootstrap import create_initial_state
from tandem_tasks.core.state import AppState
from tandem_tasks.tasks.sync_reconciler import SyncReconciler
from tandem_tasks.tasks.task_store import TaskStore
from tandem_tasks.tasks.transport import LocalTransport

from .fakes import FakeTransport, RecordingSink


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and AppState.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tandem-test",
        log_level="DEBUG",
        participants=["Alice", "Bob"],
        current_user="Alice",
        quorum=2,
        poll_interval_seconds=0.01,
        poll_timeout_seconds=1.0,
        transport_latency_seconds=0.0,
        console_enabled=False,
        data_dir=tmp_path,
        persist_store=True,
        store_snapshot_path=tmp_path / "store.json",
        client_cache_path=tmp_path / "client_cache.json",
    )


@pytest.fixture()
def store() -> TaskStore:
    return TaskStore(participants=["Alice", "Bob"])


@pytest.fixture()
def transport(store: TaskStore) -> FakeTransport:
    return FakeTransport(LocalTransport(store))


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def bob(transport: FakeTransport, sink: RecordingSink) -> SyncReconciler:
    """Bob's client, with a scriptable transport and an event recorder."""
    return SyncReconciler(transport, user_id="Bob", on_event=sink, request_timeout_seconds=0.5)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired through the real composition root.

    The store persists to tmp_path, and no background loop is started:
    commands run their coroutines inline.
    """
    return create_initial_state(settings=settings)
