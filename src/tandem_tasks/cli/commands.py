# src/tandem_tasks/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, TypeVar, cast

from ..core.state import AppState
from ..tasks.task_errors import NotFoundError, TaskError, TransportError, ValidationError
from ..tasks.task_models import Snapshot, Task, TaskStatus

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /propose, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _run(state: AppState, coro: Coroutine[Any, Any, T]) -> T:
    """Run a client coroutine on the background loop, or inline when no loop is running."""
    if state.runner is not None:
        return state.runner.submit(coro)
    return asyncio.run(coro)


def _resolve_task_id(view: Snapshot, ref: str) -> str:
    """Accept a full id or a unique id prefix (as shown by /list)."""
    if view.find(ref) is not None:
        return ref
    matches = [t.id for t in (*view.tasks, *view.pending_tasks) if t.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise ValidationError(f"Ambiguous task id '{ref}' ({len(matches)} matches).")
    return ref


def _short_id(task: Task) -> str:
    return task.id if task.is_temporary else task.id[:8]


def format_task(task: Task, quorum: int) -> str:
    if task.status == TaskStatus.PENDING:
        marker = "~" if task.is_temporary else "?"
        meta = f"proposed by {task.proposed_by}, approvals {len(task.validations)}/{quorum}"
        if task.is_temporary:
            meta += ", not synced yet"
    elif task.status == TaskStatus.ACTIVE:
        marker = " "
        meta = f"proposed by {task.proposed_by}"
    else:
        marker = "x"
        meta = f"completed by {task.completed_by or '?'}"
    desc = f" - {task.description}" if task.description else ""
    return f"[{marker}] {_short_id(task)} {task.title}{desc} ({meta})"


def format_view(view: Snapshot, quorum: int, section: str | None = None) -> str:
    pending = list(view.pending_tasks)
    active = [t for t in view.tasks if t.status == TaskStatus.ACTIVE]
    completed = [t for t in view.tasks if t.status == TaskStatus.COMPLETED]

    sections = [("pending", "Pending approval", pending), ("active", "Active", active), ("completed", "Completed", completed)]
    lines: list[str] = []
    for key, label, items in sections:
        if section and section != key:
            continue
        lines.append(f"{label} ({len(items)}):")
        if not items:
            lines.append("  (none)")
        for t in items:
            lines.append("  " + format_task(t, quorum))
    return "\n".join(lines)


def client_quorum(state: AppState) -> int:
    return int(getattr(state.settings, "quorum", 2))


def _task_action(state: AppState, action: str, args: list[str]) -> str:
    if not args:
        return f"Usage: /{action} <task id>"
    client = state.client
    try:
        task_id = _resolve_task_id(client.view(), args[0])
        outcome = _run(state, client.perform(action, task_id=task_id))
    except NotFoundError:
        return "This task is no longer available."
    except ValidationError as e:
        return e.message

    if outcome.local_only:
        return "Unsent proposal withdrawn."
    if not outcome.delivered:
        return f"{action.capitalize()} saved locally; it will sync when the server is reachable."

    if action == "validate" and outcome.response is not None:
        if outcome.response.get("approved"):
            return "Approved: the task is now active."
        return f"Validation recorded ({outcome.response.get('validationsCount')}/{client_quorum(state)})."
    return f"{action.capitalize()} done."


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    client = state.client
    view = client.view()
    lines = [
        "Status:",
        f"  You are: {client.user_id}",
        f"  Participants: {', '.join(getattr(state.settings, 'participants', []) or [])}",
        f"  Quorum: {client_quorum(state)}",
        f"  Local revision: {view.revision} (resync pending: {'yes' if client.needs_resync else 'no'})",
    ]
    try:
        health = _run(state, state.transport.request("health"))
        lines.append(
            f"  Server: {health.get('status')} revision={health.get('revision')} "
            f"active/completed={health.get('tasksCount')} pending={health.get('pendingCount')}"
        )
    except TransportError as e:
        lines.append(f"  Server: unreachable ({e.message})")
    return "\n".join(lines)


def cmd_user(state: AppState, args: list[str]) -> str:
    """
    /user         -> show the acting user
    /user <name>  -> act as <name> from now on
    """
    if not args:
        return f"You are acting as {state.client.user_id}."
    name = " ".join(args).strip()
    participants = list(getattr(state.settings, "participants", []) or [])
    state.client.user_id = name
    if participants and name not in participants:
        return f"Now acting as {name} (not one of the configured participants: {', '.join(participants)})."
    return f"Now acting as {name}."


def cmd_list(state: AppState, args: list[str]) -> str:
    section = args[0].lower() if args else None
    if section and section not in ("pending", "active", "completed"):
        return "Usage: /list [pending|active|completed]"
    return format_view(state.client.view(), client_quorum(state), section)


def cmd_propose(state: AppState, args: list[str]) -> str:
    """/propose <title> | <description>"""
    raw = " ".join(args)
    title, _, description = raw.partition("|")
    try:
        outcome = _run(state, state.client.perform("propose", title=title.strip(), description=description.strip()))
    except ValidationError as e:
        return e.message
    if not outcome.delivered:
        return "Proposal saved locally; it will be sent when the server is reachable."
    return "Proposal sent. Waiting for the other participant's validation."


def cmd_validate(state: AppState, args: list[str]) -> str:
    return _task_action(state, "validate", args)


def cmd_reject(state: AppState, args: list[str]) -> str:
    return _task_action(state, "reject", args)


def cmd_complete(state: AppState, args: list[str]) -> str:
    return _task_action(state, "complete", args)


def cmd_delete(state: AppState, args: list[str]) -> str:
    return _task_action(state, "delete", args)


def cmd_sync(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        emit("[SYNC] Fetching the latest tasks...")
    ok = _run(state, state.client.refresh(force=True))
    if not ok:
        return "Server unreachable; showing local data."
    return format_view(state.client.view(), client_quorum(state))


def cmd_export(state: AppState, args: list[str]) -> str:
    """/export <path> -> write all tasks to a JSON file"""
    if not args:
        return "Usage: /export <path>"
    path = Path(" ".join(args)).expanduser()
    try:
        data = _run(state, state.transport.request("export"))
    except TaskError as e:
        return f"Export failed: {e.message}"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
    except OSError as e:
        logger.exception("Export write failed path=%s", path)
        return f"Export failed: {e}"
    return f"Exported {len(data.get('tasks', []))} tasks and {len(data.get('pendingTasks', []))} pending tasks to {path}."


def cmd_import(state: AppState, args: list[str]) -> str:
    """/import <path> -> merge tasks from a JSON export (duplicates by id are skipped)"""
    if not args:
        return "Usage: /import <path>"
    path = Path(" ".join(args)).expanduser()
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        return f"Import failed: cannot read {path} ({e})."
    try:
        result = _run(state, state.transport.request("import", {"data": data}))
    except TaskError as e:
        return f"Import failed: {e.message}"
    _run(state, state.client.refresh(force=True))
    return f"Imported {len(result.get('addedTasks', []))} tasks and {len(result.get('addedPending', []))} pending tasks."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show acting user, sync state and server health.")
registry.register("user", cmd_user, help_text="Show or switch the acting user: /user <name>.")
registry.register("list", cmd_list, help_text="List tasks: /list [pending|active|completed].", aliases=["ls"])
registry.register("propose", cmd_propose, help_text="Propose a task: /propose <title> | <description>.", aliases=["add"])
registry.register("validate", cmd_validate, help_text="Approve a pending task: /validate <id>.", aliases=["ok"])
registry.register("reject", cmd_reject, help_text="Reject a pending task: /reject <id>.")
registry.register("complete", cmd_complete, help_text="Mark an active task done: /complete <id>.", aliases=["done"])
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("sync", cmd_sync, help_text="Fetch the latest tasks from the server now.")
registry.register("export", cmd_export, help_text="Export all tasks to a JSON file: /export <path>.")
registry.register("import", cmd_import, help_text="Merge tasks from a JSON export: /import <path>.")
