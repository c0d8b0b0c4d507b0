# tutorsync/scheduler.py

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from tutorsync.config import DEFAULT_SYNC_INTERVAL
from tutorsync.reconcile import PassResult, Reconciler

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Runs a full reconciliation at start and then every `interval` seconds.

    Every tick tries again regardless of how the previous one went; there is
    no backoff. A target whose previous pass is still running is skipped by
    the reconciler itself.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        interval: float = DEFAULT_SYNC_INTERVAL,
        on_results: Optional[Callable[[list[PassResult]], None]] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.reconciler = reconciler
        self.interval = interval
        self.on_results = on_results
        self.ticks = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run_loop, daemon=True, name="SyncScheduler")
        self._thread.start()
        logger.info("Sync scheduler started (every %ss)", self.interval)

    def stop(self, timeout: float = 5) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Sync scheduler stopped")

    def wait(self) -> None:
        """Blocks until stop() is called (or the loop dies)."""
        while self.running:
            self._stop.wait(1)

    def run_once(self) -> list[PassResult]:
        self.ticks += 1
        try:
            results = self.reconciler.run_all()
        except Exception:
            # run_all already isolates targets; this only guards the loop
            logger.exception("Sync loop error")
            return []

        if self.on_results is not None:
            try:
                self.on_results(results)
            except Exception as e:
                logger.warning("Sync result callback failed: %s", e)
        return results

    def _run_loop(self) -> None:
        self.run_once()
        while not self._stop.wait(self.interval):
            self.run_once()
