"""Periodic best-effort refresh of the branch cache."""

from __future__ import annotations

import logging
import threading

from .branch_cache import STALENESS_WINDOW_SECONDS, BranchCache

logger = logging.getLogger(__name__)


class BackgroundRefresher:
    """Refresh ``cache`` once per interval on a daemon thread until stopped.

    Errors are logged and dropped; a later foreground fetch simply reuses
    whatever snapshot the last successful refresh left behind.
    """

    def __init__(self, cache: BranchCache, interval_seconds: float = STALENESS_WINDOW_SECONDS) -> None:
        self._cache = cache
        self._interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _worker(self) -> None:
        while not self._stop.wait(self._interval_seconds):
            try:
                self._cache.get_branches(force_refresh=False)
            except Exception as exc:
                logger.info("background branch refresh failed: %s", exc)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._worker,
            name="infradeck-branch-refresh",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout_seconds: float | None = 5.0) -> None:
        """Signal the worker and wait for it; an in-flight git call may outlast ``timeout_seconds``."""
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout_seconds)
        self._thread = None
