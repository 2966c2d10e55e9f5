# src/tandem_tasks/cli/main.py

"""
CLI entrypoint.

Logging first, then AppState from the composition root, then:
- the sync client (initial reconcile + polling) on a background event loop thread,
- the console REPL on the main thread, or a plain wait for a signal when it is disabled.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import print_event, run_console_loop
from ..connectors.sync_runner import SyncBackgroundRunner, start_sync_in_background
from ..logging_setup import parse_level, setup_logging

logger = logging.getLogger(__name__)


def _install_signal_handlers(stop: threading.Event) -> None:
    def _handle(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down.", signum)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _handle)
        except (ValueError, OSError):
            logger.debug("Could not install handler for %s.", sig, exc_info=True)


def _shutdown(runner: SyncBackgroundRunner | None) -> None:
    if runner is None:
        return
    runner.stop()
    runner.join(timeout=10.0)
    if runner.thread.is_alive():
        logger.warning("Sync thread did not stop in time.")


def main() -> None:
    settings = get_settings()
    log_file = setup_logging(log_dir=settings.data_dir, console_level=parse_level(settings.log_level))
    logger.info(
        "Starting %s as %s (participants=%s, log=%s)",
        settings.app_name,
        settings.current_user,
        ",".join(settings.participants),
        log_file,
    )

    state = create_initial_state(settings=settings, on_event=print_event)
    runner = start_sync_in_background(state)
    if runner is None:
        logger.warning("Sync thread unavailable; commands will run inline without polling.")

    stop = threading.Event()
    try:
        if settings.console_enabled:
            # input() needs the default handler to see Ctrl+C as KeyboardInterrupt.
            signal.signal(signal.SIGINT, signal.default_int_handler)
            run_console_loop(state)
        else:
            _install_signal_handlers(stop)
            logger.info("Console disabled; syncing until interrupted.")
            stop.wait()
    finally:
        _shutdown(runner)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
