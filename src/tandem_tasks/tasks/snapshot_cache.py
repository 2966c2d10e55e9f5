# src/tandem_tasks/tasks/snapshot_cache.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from .task_errors import ValidationError
from .task_models import Snapshot

logger = logging.getLogger(__name__)


class JsonSnapshotCache:
    """
    Snapshot persisted as a JSON file.

    Writes go to a temp file and are swapped in with os.replace, so a crash never
    leaves a half-written cache behind. Unreadable files load as None.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, snapshot: Snapshot) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            os.chmod(self._path, 0o600)
        logger.debug("Saved snapshot revision=%s to %s", snapshot.revision, self._path)

    def load(self) -> Snapshot | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text("utf-8"))
            snapshot = Snapshot.from_dict(data)
        except (OSError, json.JSONDecodeError, ValidationError):
            logger.exception("Failed to load snapshot from %s", self._path)
            return None
        logger.info(
            "Loaded snapshot revision=%s tasks=%d pending=%d from %s",
            snapshot.revision,
            len(snapshot.tasks),
            len(snapshot.pending_tasks),
            self._path,
        )
        return snapshot


class MemorySnapshotCache:
    """In-process cache for ephemeral runs and tests."""

    def __init__(self, snapshot: Snapshot | None = None) -> None:
        self._snapshot = snapshot
        self.saves = 0

    def save(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        self.saves += 1

    def load(self) -> Snapshot | None:
        return self._snapshot
