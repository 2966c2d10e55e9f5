# src/tandem_tasks/tasks/sync_reconciler.py

from __future__ import annotations

"""
Client-side cache and optimistic-update manager.

The reconciler keeps a local copy of the store's snapshot:
- user actions are applied to the local copy first (optimistic), then sent to the store
- the store's snapshot, fetched by polling or right after an action, replaces the local copy
- server state always wins; only not-yet-acknowledged proposals (temp ids) survive a reconcile

There is no rollback code: any divergence left by a failed send is corrected by the next
successful reconcile.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any

from ..core.ports import EventSink, JsonRecord, SnapshotCache, TaskTransport
from .task_errors import NotFoundError, TransportError, ValidationError
from .task_events import TaskEvent, diff_snapshots
from .task_models import TEMP_ID_PREFIX, Snapshot, Task, TaskStatus, utc_now_iso

logger = logging.getLogger(__name__)

ACTIONS = ("propose", "validate", "reject", "complete", "delete")


@dataclass(frozen=True, slots=True)
class ActionOutcome:
    """
    Result of perform().

    delivered=False means the store was unreachable: the optimistic state stays visible
    and the next poll reconciles it. local_only=True means nothing had to be sent
    (discarding a proposal the store never saw).
    """

    action: str
    delivered: bool
    task: Task | None = None
    response: JsonRecord | None = None
    local_only: bool = False


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


class SyncReconciler:
    def __init__(
        self,
        transport: TaskTransport,
        *,
        user_id: str,
        quorum: int = 2,
        cache: SnapshotCache | None = None,
        on_event: EventSink | None = None,
        request_timeout_seconds: float = 10.0,
    ) -> None:
        self._transport = transport
        self.user_id = user_id
        self._quorum = int(quorum)
        self._cache = cache
        self._on_event = on_event
        self._timeout = max(0.1, float(request_timeout_seconds))

        self._local = Snapshot()
        # Ids seen in the last server snapshot; temp matching only considers records outside it.
        self._known_ids: set[str] = set()
        self._in_flight: set[str] = set()

        self._synced = False
        self._dirty = False
        self._needs_resync = False

        self._fetch_seq = 0
        self._applied_seq = 0
        self._server_epoch: str | None = None

    # ---- state ----

    def view(self) -> Snapshot:
        return self._local

    @property
    def needs_resync(self) -> bool:
        return self._needs_resync

    def restore(self) -> bool:
        """Load the local cache (if any). Returns True if a snapshot was restored."""
        if self._cache is None:
            return False
        try:
            cached = self._cache.load()
        except Exception:
            logger.exception("Failed to load local cache.")
            return False
        if cached is None:
            return False
        self._local = cached
        self._known_ids = {t.id for t in (*cached.tasks, *cached.pending_tasks) if not t.is_temporary}
        logger.info(
            "Local cache restored revision=%s tasks=%d pending=%d",
            cached.revision,
            len(cached.tasks),
            len(cached.pending_tasks),
        )
        return True

    def _set_local(self, snapshot: Snapshot) -> None:
        self._local = snapshot
        if self._cache is None:
            return
        try:
            self._cache.save(snapshot)
        except Exception:
            logger.exception("Failed to save local cache revision=%s", snapshot.revision)

    def _emit(self, events: list[TaskEvent]) -> None:
        if self._on_event is None:
            return
        for event in events:
            try:
                self._on_event(event)
            except Exception:
                logger.exception("Event sink failed kind=%s", event.kind)

    # ---- optimistic updates ----

    def apply_optimistic(self, action: str, params: dict[str, Any]) -> Task | None:
        """
        Apply `action` to the local copy as if the store had accepted it.

        Returns the affected record (the new temp record for "propose"), or None if the
        task is not in the local copy, in which case nothing changes locally.
        """
        local = self._local
        tasks = list(local.tasks)
        pending = list(local.pending_tasks)
        user = str(params.get("userId") or params.get("proposedBy") or self.user_id)
        task_id = str(params.get("taskId") or "")
        result: Task | None = None

        if action == "propose":
            title = str(params.get("title") or "").strip()
            if not title:
                raise ValidationError("A task title is required.")
            result = Task(
                id=str(params.get("tempId") or new_temp_id()),
                title=title,
                description=str(params.get("description") or "").strip(),
                proposed_by=user,
                proposed_at=utc_now_iso(),
                validations=(user,),
            )
            pending.append(result)

        elif action == "validate":
            idx = _index_of(pending, task_id)
            if idx != -1:
                task = pending[idx]
                result = task
                if user not in task.validations:
                    validations = (*task.validations, user)
                    if len(validations) >= self._quorum:
                        result = replace(
                            task, validations=validations, status=TaskStatus.ACTIVE, approved_at=utc_now_iso()
                        )
                        del pending[idx]
                        tasks.append(result)
                    else:
                        result = replace(task, validations=validations)
                        pending[idx] = result

        elif action == "reject":
            idx = _index_of(pending, task_id)
            if idx != -1:
                result = pending.pop(idx)

        elif action == "complete":
            idx = _index_of(tasks, task_id)
            if idx != -1 and tasks[idx].status == TaskStatus.ACTIVE:
                result = replace(tasks[idx], status=TaskStatus.COMPLETED, completed_by=user, completed_at=utc_now_iso())
                tasks[idx] = result

        elif action == "delete":
            idx = _index_of(tasks, task_id)
            if idx != -1:
                result = tasks.pop(idx)
            else:
                idx = _index_of(pending, task_id)
                if idx != -1:
                    result = pending.pop(idx)

        else:
            raise ValidationError(f"Unknown action: {action!r}")

        if result is None:
            logger.debug("Optimistic %s: task %s not in local copy", action, task_id)
            return None

        self._dirty = True
        self._set_local(Snapshot(tasks=tuple(tasks), pending_tasks=tuple(pending), revision=local.revision))
        return result

    def _acknowledge(self, temp_id: str, canonical: Task) -> None:
        """Swap a temp record for the store's canonical one, in place."""
        local = self._local
        pending = [t for t in local.pending_tasks if t.id != temp_id]
        tasks = list(local.tasks)
        if local.find(canonical.id) is None:
            if canonical.status == TaskStatus.PENDING:
                idx = _index_of(list(local.pending_tasks), temp_id)
                pending.insert(idx if idx != -1 else len(pending), canonical)
            else:
                tasks.append(canonical)
        self._set_local(Snapshot(tasks=tuple(tasks), pending_tasks=tuple(pending), revision=local.revision))
        logger.debug("Proposal acknowledged temp=%s id=%s", temp_id, canonical.id)

    def _discard_temp(self, temp_id: str) -> None:
        local = self._local
        pending = tuple(t for t in local.pending_tasks if t.id != temp_id)
        self._set_local(replace(local, pending_tasks=pending))

    # ---- server round-trips ----

    async def send_to_server(self, action: str, params: dict[str, Any]) -> JsonRecord:
        """
        Send one action to the store.

        Failures do not undo the optimistic change:
        - NotFoundError: force a reconcile now (the UI catches up), then re-raise
        - TransportError / timeout: schedule a resync for the next poll, then raise TransportError
        """
        payload = {k: v for k, v in params.items() if k != "tempId"}
        temp_id = str(params.get("tempId") or "") if action == "propose" else ""

        if temp_id:
            self._in_flight.add(temp_id)
        try:
            response = await asyncio.wait_for(self._transport.request(action, payload), self._timeout)
        except TimeoutError as e:
            self._needs_resync = True
            logger.warning("Request timed out action=%s", action)
            raise TransportError(f"Request timed out ({action}).") from e
        except TransportError:
            self._needs_resync = True
            logger.warning("Transport failure action=%s; resync scheduled", action)
            raise
        except NotFoundError:
            logger.info("Task no longer available action=%s task=%s", action, payload.get("taskId"))
            await self.refresh(force=True)
            raise
        finally:
            if temp_id:
                self._in_flight.discard(temp_id)

        if temp_id:
            self._acknowledge(temp_id, Task.from_dict(response))
        return response

    async def refresh(self, *, force: bool = False) -> bool:
        """
        Fetch the store's snapshot and reconcile. Returns False on transport failure.

        Asks for a delta (unchanged marker) only when the local copy is a clean server copy
        of a known store epoch; a recreated store has a new epoch and answers in full.
        Responses that arrive after a newer one has been applied are dropped.
        """
        full = force or self._dirty or self._needs_resync or not self._synced or self._server_epoch is None
        since = None if full else self._local.revision
        epoch = None if full else self._server_epoch

        self._fetch_seq += 1
        seq = self._fetch_seq
        try:
            raw = await asyncio.wait_for(self._transport.fetch(since, epoch), self._timeout)
        except TimeoutError:
            self._needs_resync = True
            logger.warning("Snapshot fetch timed out after %.1fs", self._timeout)
            return False
        except TransportError as e:
            self._needs_resync = True
            logger.warning("Snapshot fetch failed: %s", e.message)
            return False

        if seq < self._applied_seq:
            logger.debug("Dropping stale snapshot response seq=%s applied=%s", seq, self._applied_seq)
            return True
        self._applied_seq = seq

        if raw.get("unchanged"):
            return True
        self.reconcile(Snapshot.from_dict(raw))
        self._server_epoch = raw.get("epoch")
        return True

    def reconcile(self, server: Snapshot) -> list[TaskEvent]:
        """
        Replace the local copy with `server`, keeping unacknowledged proposals.

        A temp record is dropped once the server has a record new to this client with the
        same proposer and title (paired in creation order); until then it stays in pending.
        Returns the events observed between the old local copy and the new one.
        """
        old = self._local
        temps = [t for t in old.pending_tasks if t.is_temporary]
        local_ids = {t.id for t in (*old.tasks, *old.pending_tasks) if not t.is_temporary}

        candidates = [
            t
            for t in (*server.pending_tasks, *server.tasks)
            if t.id not in self._known_ids and t.id not in local_ids
        ]
        candidates.sort(key=lambda t: t.proposed_at)

        surviving: list[Task] = []
        for temp in temps:
            match = next(
                (c for c in candidates if c.proposed_by == temp.proposed_by and c.title == temp.title),
                None,
            )
            if match is None:
                surviving.append(temp)
                continue
            candidates.remove(match)
            logger.debug("Temp record %s matched server record %s", temp.id, match.id)

        new = Snapshot(
            tasks=server.tasks,
            pending_tasks=(*server.pending_tasks, *surviving),
            revision=server.revision,
        )

        self._known_ids = server.ids()
        self._synced = True
        self._dirty = False
        self._needs_resync = False
        self._set_local(new)

        events = diff_snapshots(old, new)
        self._emit(events)
        logger.debug(
            "Reconciled revision=%s tasks=%d pending=%d temps=%d events=%d",
            server.revision,
            len(new.tasks),
            len(server.pending_tasks),
            len(surviving),
            len(events),
        )
        return events

    async def _resend_unacknowledged(self) -> int:
        """Re-send proposals the store has not acknowledged. Returns how many got through."""
        sent = 0
        for temp in [t for t in self._local.pending_tasks if t.is_temporary]:
            if temp.id in self._in_flight:
                continue
            params = {
                "title": temp.title,
                "description": temp.description,
                "proposedBy": temp.proposed_by,
                "tempId": temp.id,
            }
            try:
                await self.send_to_server("propose", params)
                logger.info("Re-sent proposal temp=%s title=%r", temp.id, temp.title)
                sent += 1
            except TransportError:
                # Still offline: try again next tick.
                break
            except ValidationError as e:
                logger.warning("Store refused proposal temp=%s: %s", temp.id, e.message)
                self._discard_temp(temp.id)
        return sent

    # ---- public entry points ----

    async def perform(
        self,
        action: str,
        *,
        task_id: str | None = None,
        title: str | None = None,
        description: str | None = None,
    ) -> ActionOutcome:
        """
        Apply an action optimistically, then send it to the store.

        Raises ValidationError / NotFoundError as reported by the store (after the forced
        reconcile for NotFoundError). Transport failures do not raise: the outcome is
        returned with delivered=False.
        """
        action = (action or "").strip().lower()
        if action not in ACTIONS:
            raise ValidationError(f"Unknown action: {action!r}")

        if action == "propose":
            params: dict[str, Any] = {
                "title": title,
                "description": description or "",
                "proposedBy": self.user_id,
                "tempId": new_temp_id(),
            }
        else:
            if not task_id:
                raise ValidationError("A task id is required.")
            params = {"taskId": task_id, "userId": self.user_id}

            if task_id.startswith(TEMP_ID_PREFIX):
                if action in ("validate", "complete"):
                    raise NotFoundError(task_id, "This task has not reached the server yet.")
                # Withdrawing a proposal the store never saw is purely local.
                task = self._local.find(task_id)
                if task is None:
                    raise NotFoundError(task_id)
                if task_id in self._in_flight:
                    # The store may already have it; the acknowledged record can be deleted instead.
                    raise ValidationError("This proposal is being sent right now; try again in a moment.")
                self._discard_temp(task_id)
                return ActionOutcome(action=action, delivered=True, task=task, local_only=True)

        task = self.apply_optimistic(action, params)

        try:
            response = await self.send_to_server(action, params)
        except TransportError:
            return ActionOutcome(action=action, delivered=False, task=task)
        except ValidationError:
            if action == "propose":
                self._discard_temp(params["tempId"])
            else:
                self._needs_resync = True
            raise

        await self.refresh(force=True)
        return ActionOutcome(action=action, delivered=True, task=task, response=response)

    async def poll(self) -> bool:
        """One polling tick: reconcile with the store, then re-send unacknowledged proposals."""
        ok = await self.refresh()
        if ok and await self._resend_unacknowledged():
            await self.refresh()
        return ok

    async def run_polling(self, *, interval_seconds: float = 5.0) -> None:
        """
        Polling loop. Every interval_seconds runs poll(); failures are logged and the
        loop keeps going. To stop it, cancel the coroutine/task.
        """
        sleep_s = max(0.05, float(interval_seconds))
        logger.info("Polling started interval=%.2fs user=%s", sleep_s, self.user_id)

        while True:
            try:
                await self.poll()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Poll tick failed")
            await asyncio.sleep(sleep_s)


def _index_of(items: list[Task], task_id: str) -> int:
    for i, t in enumerate(items):
        if t.id == task_id:
            return i
    return -1
