# tests/test_commands.py

from __future__ import annotations

import json
from pathlib import Path

from tandem_tasks.cli.commands import CommandRegistry, registry
from tandem_tasks.connectors.sync_runner import start_sync_in_background


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a", aliases=["alpha"])
    reg.register("b", h3, "b")

    assert reg.handle(state, "/a x y") == "h2:x,y"
    assert reg.handle(state, "/ALPHA") == "h2:"
    assert reg.handle(state, "/b", emit=notes.append) == "h3"
    assert called == {"h2": 2, "h3": 1}
    assert notes == ["note"]
    assert "/a - a" in reg.build_help()


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_propose_validate_complete_flow(state) -> None:
    reply = registry.handle(state, "/propose Buy milk | 2 liters")
    assert reply is not None and reply.startswith("Proposal sent")

    task = state.store.snapshot().pending_tasks[0]
    assert task.title == "Buy milk"
    assert task.description == "2 liters"

    # The proposer's own approval is already counted.
    assert registry.handle(state, f"/validate {task.id[:8]}") == "Validation recorded (1/2)."

    assert registry.handle(state, "/user Bob") == "Now acting as Bob."
    assert registry.handle(state, f"/ok {task.id[:8]}") == "Approved: the task is now active."

    listing = registry.handle(state, "/list active") or ""
    assert "Buy milk - 2 liters" in listing
    assert "Pending approval" not in listing

    assert registry.handle(state, f"/done {task.id}") == "Complete done."
    assert registry.handle(state, f"/done {task.id}") == "This task is no longer available."
    assert "completed by Bob" in (registry.handle(state, "/list completed") or "")


def test_propose_requires_title(state) -> None:
    reply = registry.handle(state, "/propose | only a description")
    assert reply is not None and "title" in reply.lower()
    assert state.store.snapshot().pending_tasks == ()


def test_offline_proposal_is_kept_locally_and_withdrawable(state) -> None:
    state.transport.online = False

    assert "saved locally" in (registry.handle(state, "/add Water plants") or "")
    listing = registry.handle(state, "/ls pending") or ""
    assert "not synced yet" in listing

    temp_id = state.client.view().pending_tasks[0].id
    assert registry.handle(state, f"/validate {temp_id}") == "This task is no longer available."
    assert registry.handle(state, f"/reject {temp_id}") == "Unsent proposal withdrawn."
    assert state.client.view().pending_tasks == ()
    assert state.store.snapshot().pending_tasks == ()


def test_status_and_user(state) -> None:
    status = registry.handle(state, "/status") or ""
    assert "You are: Alice" in status
    assert "Server: ok" in status

    assert "not one of the configured participants" in (registry.handle(state, "/user Carol") or "")
    assert registry.handle(state, "/user") == "You are acting as Carol."

    state.transport.online = False
    assert "unreachable" in (registry.handle(state, "/status") or "")


def test_export_then_import_into_fresh_store(state, tmp_path: Path) -> None:
    registry.handle(state, "/propose Buy milk")
    out = tmp_path / "exports" / "tasks.json"

    assert "1 pending tasks" in (registry.handle(state, f"/export {out}") or "")
    data = json.loads(out.read_text("utf-8"))
    assert data["version"] == "2.0"

    # Re-importing the same data skips known ids.
    assert registry.handle(state, f"/import {out}") == "Imported 0 tasks and 0 pending tasks."

    assert "cannot read" in (registry.handle(state, f"/import {tmp_path / 'missing.json'}") or "")
    bad = tmp_path / "bad.json"
    bad.write_text('{"hello": 1}', "utf-8")
    assert "Import failed" in (registry.handle(state, f"/import {bad}") or "")


def test_commands_run_on_background_loop(state) -> None:
    runner = start_sync_in_background(state)
    assert runner is not None
    try:
        assert (registry.handle(state, "/propose Book flights") or "").startswith("Proposal sent")
        assert "Book flights" in (registry.handle(state, "/sync") or "")
    finally:
        runner.stop()
        runner.join(timeout=5.0)
    assert not runner.thread.is_alive()
