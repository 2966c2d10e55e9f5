# tests/test_console_connector.py

from __future__ import annotations

import pytest

from tandem_tasks.connectors import console_connector
from tandem_tasks.tasks.task_events import TaskRejected


def _feed(monkeypatch: pytest.MonkeyPatch, lines: list[str]) -> None:
    it = iter(lines)

    def fake_input(prompt: str = "") -> str:
        try:
            return next(it)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr("builtins.input", fake_input)


def test_bare_text_proposes_and_exit_stops(state, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _feed(monkeypatch, ["Buy milk", "", "/list pending", "/exit", "/propose never sent"])

    console_connector.run_console_loop(state)

    out = capsys.readouterr().out
    assert "Proposal sent" in out
    assert "approvals 1/2" in out
    assert [t.title for t in state.store.snapshot().pending_tasks] == ["Buy milk"]


def test_crashing_command_is_reported(state, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    def boom(*_args, **_kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(console_connector.command_registry, "handle", boom)
    _feed(monkeypatch, ["/status"])

    console_connector.run_console_loop(state)

    assert "Internal error" in capsys.readouterr().out


def test_print_event(capsys) -> None:
    console_connector.print_event(TaskRejected(task_id="t1", rejected_by="Bob"))

    assert "t1 was rejected by Bob" in capsys.readouterr().out
