"""Background refresher lifecycle tests."""

from __future__ import annotations

import threading
import unittest

from infradeck.errors import RepositoryError
from infradeck.refresh import BackgroundRefresher


class _CountingCache:
    def __init__(self, fail: bool = False) -> None:
        self.calls = 0
        self.fail = fail
        self.called = threading.Event()

    def get_branches(self, force_refresh: bool = False):
        self.calls += 1
        self.called.set()
        if self.fail:
            raise RepositoryError("network", "offline")
        return ()


class BackgroundRefresherTests(unittest.TestCase):
    def test_refreshes_periodically_until_stopped(self) -> None:
        cache = _CountingCache()
        refresher = BackgroundRefresher(cache, interval_seconds=0.01)  # type: ignore[arg-type]

        refresher.start()
        self.assertTrue(cache.called.wait(5))
        refresher.stop()

        self.assertFalse(refresher.running)
        calls = cache.calls
        self.assertGreaterEqual(calls, 1)
        threading.Event().wait(0.05)
        self.assertEqual(cache.calls, calls)

    def test_errors_are_logged_and_loop_continues(self) -> None:
        cache = _CountingCache(fail=True)
        refresher = BackgroundRefresher(cache, interval_seconds=0.01)  # type: ignore[arg-type]

        with self.assertLogs("infradeck.refresh", level="INFO") as logs:
            refresher.start()
            self.assertTrue(cache.called.wait(5))
            cache.called.clear()
            self.assertTrue(cache.called.wait(5))
            refresher.stop()

        self.assertIn("background branch refresh failed: offline", logs.output[0])

    def test_stop_before_interval_never_refreshes(self) -> None:
        cache = _CountingCache()
        refresher = BackgroundRefresher(cache, interval_seconds=60)  # type: ignore[arg-type]
        refresher.start()
        self.assertTrue(refresher.running)
        refresher.stop()
        self.assertEqual(cache.calls, 0)


if __name__ == "__main__":
    unittest.main()
