# src/tandem_tasks/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Loggers that fire on every poll tick; the console only shows their problems.
BACKGROUND_LOGGERS = (
    "tandem_tasks.tasks.sync_reconciler",
    "tandem_tasks.connectors.sync_runner",
)

_HANDLER_TAG = "_tandem_handler"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the interactive console readable while the sync thread polls.

    Own logs pass, background loggers need WARNING+, everything else
    (third-party, py.warnings) needs ERROR+.
    """

    def __init__(self, background: Iterable[str] = BACKGROUND_LOGGERS) -> None:
        super().__init__()
        self._background = tuple(background)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(self._background):
            return record.levelno >= logging.WARNING
        if name == "tandem_tasks" or name.startswith("tandem_tasks."):
            return True
        return record.levelno >= logging.ERROR


def parse_level(name: str | None, default: int = logging.INFO) -> int:
    """'debug' / 'WARNING' / '10' -> logging level; unknown names give `default`."""
    raw = str(name or "").strip().upper()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/tandem",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Console (filtered, short lines) + rotating file (everything) under log_dir.

    Call once, before the first log line. Calling again replaces the handlers it
    installed earlier and leaves foreign handlers (pytest's caplog) alone.
    Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "tandem.log"

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for h in list(root.handlers):
        if getattr(h, _HANDLER_TAG, False):
            root.removeHandler(h)
            h.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", "%H:%M:%S"))
    console.addFilter(_ConsoleNoiseFilter())

    file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
            "%Y-%m-%d %H:%M:%S",
        )
    )

    for h in (console, file_handler):
        setattr(h, _HANDLER_TAG, True)
        root.addHandler(h)

    logging.captureWarnings(True)
    return log_file
