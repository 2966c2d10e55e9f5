# src/tandem_tasks/connectors/sync_runner.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.state import AppState

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _run_sync_client(state: AppState, stop_event: asyncio.Event) -> None:
    """
    Client lifecycle on the background loop:
    initial reconcile -> polling task -> wait for stop -> cancel polling.
    """
    client = state.client
    interval = float(getattr(state.settings, "poll_interval_seconds", 5.0))

    if not await client.refresh(force=True):
        logger.warning("Initial sync failed; showing cached data until the store is reachable.")

    polling = asyncio.create_task(client.run_polling(interval_seconds=interval))
    try:
        await stop_event.wait()
    finally:
        polling.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await polling
        logger.info("Sync client stopped.")


@dataclass
class SyncBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def submit(self, coro: Coroutine[Any, Any, T], timeout: float | None = 30.0) -> T:
        """Run `coro` on the background loop and wait for its result (from another thread)."""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal sync stop (loop closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_sync_in_background(state: AppState) -> SyncBackgroundRunner | None:
    """
    Start the sync client (reconciler + polling) in a background thread.

    The console REPL blocks on input(), while the reconciler is async and wants its own
    event loop; console commands reach it through SyncBackgroundRunner.submit().
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_sync_client(state, stop_event))
        except Exception:
            logger.exception("Sync client crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    t = threading.Thread(target=runner, name="tandem-sync", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Sync thread did not initialize properly.")
        return None

    runner_handle = SyncBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
    state.runner = runner_handle
    logger.info("Sync background thread started.")
    return runner_handle
