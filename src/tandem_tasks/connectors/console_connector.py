# src/tandem_tasks/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime

from ..cli.commands import client_quorum, format_view, registry as command_registry
from ..core.state import AppState
from ..tasks.task_events import TaskEvent, describe_event

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")

# Events arrive from the sync thread while the main thread prints replies.
_print_lock = threading.Lock()


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%H:%M:%S")


def _say(text: str) -> None:
    with _print_lock:
        print(f"[{_ts_local()}] {text}", flush=True)


def _echo_input(prompt: str, text: str) -> None:
    """Redraw the line just typed with a timestamp (plain print when not a TTY)."""
    line = f"[{_ts_local()}] {prompt}{text}"
    with _print_lock:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r" + line + "\n")
            sys.stdout.flush()
        else:
            print(line)


def print_event(event: TaskEvent) -> None:
    """EventSink for the console: one timestamped line per lifecycle event."""
    _say(f"* {describe_event(event)}")


def _to_command(text: str) -> str:
    # Bare text proposes a task.
    return text if text.startswith("/") else f"/propose {text}"


def _dispatch(state: AppState, line: str) -> str | None:
    try:
        with state.lock:
            return command_registry.handle(state, line, emit=_say)
    except Exception:
        logger.exception("Command failed: %r", line)
        return "Internal error while handling a command (see the log file)."


def run_console_loop(state: AppState) -> None:
    client = state.client
    logger.info("Console connector started (user=%s).", client.user_id)

    _say("Type a task to propose it, /help for commands, /exit to quit.")
    print(format_view(client.view(), client_quorum(state)), flush=True)

    while True:
        prompt = f"{client.user_id}> "
        try:
            text = input(prompt).strip()
        except EOFError:
            break
        except KeyboardInterrupt:
            print()
            break
        _echo_input(prompt, text)

        if not text:
            continue
        if text.lower() in EXIT_COMMANDS:
            break

        reply = _dispatch(state, _to_command(text))
        if reply is not None:
            _say(reply)

    logger.info("Console connector finished.")
