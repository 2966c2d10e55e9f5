# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tandem_tasks.logging_setup import _ConsoleNoiseFilter, parse_level, setup_logging


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    logging.captureWarnings(False)


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_parse_level() -> None:
    assert parse_level("debug") == logging.DEBUG
    assert parse_level(" WARNING ") == logging.WARNING
    assert parse_level("15") == 15
    assert parse_level("loud") == logging.INFO
    assert parse_level(None, logging.ERROR) == logging.ERROR


def test_console_filter_quiets_background_and_third_party() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("tandem_tasks.cli.commands", logging.DEBUG))
    assert not f.filter(_record("tandem_tasks.tasks.sync_reconciler", logging.INFO))
    assert f.filter(_record("tandem_tasks.tasks.sync_reconciler", logging.WARNING))
    assert not f.filter(_record("asyncio", logging.WARNING))
    assert f.filter(_record("asyncio", logging.ERROR))


def test_setup_logging_is_repeatable(tmp_path: Path, restore_root_logger) -> None:
    root = restore_root_logger
    before = len(root.handlers)

    log_file = setup_logging(log_dir=tmp_path / "logs")
    setup_logging(log_dir=tmp_path / "logs")
    logging.getLogger("tandem_tasks.test").info("hello file")

    assert log_file == tmp_path / "logs" / "tandem.log"
    assert len(root.handlers) == before + 2
    for h in root.handlers:
        h.flush()
    assert "hello file" in log_file.read_text("utf-8")
