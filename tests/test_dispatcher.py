"""Command dispatcher tests.

Each operation must post exactly one result message, and nothing after
``close()``.
"""

from __future__ import annotations

import threading
import unittest
from pathlib import Path
from queue import Empty

from infradeck.branch_cache import BranchRecord
from infradeck.dispatcher import CommandDispatcher
from infradeck.errors import ContentError, ProvisionError, RepositoryError
from infradeck.messages import (
    BranchesFailed,
    BranchesLoaded,
    DeployFailed,
    DeployFinished,
    ProvisionFailed,
    ProvisionFinished,
    SlidesFailed,
    SlidesLoaded,
)


class _FakeRepo:
    def __init__(self) -> None:
        self.path = Path("/tmp/infra")
        self.checkout_error: Exception | None = None
        self.slides: bytes | None = b"# One\n---\n# Two\n"
        self.checkouts: list[str] = []
        self.gate: threading.Event | None = None
        self.entered = threading.Event()
        self.checkout_thread: threading.Thread | None = None

    def checkout(self, branch: str) -> None:
        self.checkouts.append(branch)
        self.checkout_thread = threading.current_thread()
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(5)
        if self.checkout_error is not None:
            raise self.checkout_error

    def read_file(self, branch: str, relative_path: str, ref: str | None = None) -> bytes:
        if self.slides is None:
            raise ContentError(f"{relative_path} not found on {branch}")
        return self.slides


class _FakeProvisioner:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.plan_error: Exception | None = None

    def initialize(self, path: Path) -> str:
        self.calls.append("init")
        return "Terraform init completed successfully."

    def plan(self, path: Path) -> str:
        self.calls.append("plan")
        if self.plan_error is not None:
            raise self.plan_error
        return "Plan: 0 to add"

    def apply(self, path: Path) -> str:
        self.calls.append("apply")
        return "Apply complete!"


class _FakeCache:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.force_flags: list[bool] = []

    def get_branches(self, force_refresh: bool = False) -> tuple[BranchRecord, ...]:
        self.force_flags.append(force_refresh)
        if self.error is not None:
            raise self.error
        return (BranchRecord("main", "Main env"),)


class CommandDispatcherTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repo = _FakeRepo()
        self.provisioner = _FakeProvisioner()
        self.cache = _FakeCache()
        self.dispatcher = CommandDispatcher(self.cache, self.repo, self.provisioner)  # type: ignore[arg-type]

    def tearDown(self) -> None:
        self.dispatcher.close()

    def _next_result(self):
        return self.dispatcher.results.get(timeout=5)

    def test_fetch_branches_posts_loaded(self) -> None:
        self.dispatcher.fetch_branches(force=True)
        message = self._next_result()
        self.assertEqual(message, BranchesLoaded((BranchRecord("main", "Main env"),)))
        self.assertEqual(self.cache.force_flags, [True])

    def test_fetch_branches_failure_posts_failed(self) -> None:
        self.cache.error = RepositoryError("network", "unreachable")
        self.dispatcher.fetch_branches()
        self.assertEqual(self._next_result(), BranchesFailed("unreachable"))

    def test_fetch_slides_checks_out_and_splits(self) -> None:
        self.dispatcher.fetch_slides("main")
        self.assertEqual(self._next_result(), SlidesLoaded("main", ("# One", "# Two")))
        self.assertEqual(self.repo.checkouts, ["main"])

    def test_missing_slides_posts_failure(self) -> None:
        self.repo.slides = None
        self.dispatcher.fetch_slides("main")
        message = self._next_result()
        self.assertIsInstance(message, SlidesFailed)
        self.assertEqual(message.error, "Error loading slides for main: slides/slides.md not found on main")

    def test_failed_checkout_short_circuits_deploy(self) -> None:
        self.repo.checkout_error = RepositoryError("dirty_worktree", "local changes")
        self.dispatcher.deploy("main")

        self.assertEqual(self._next_result(), DeployFailed("main", "checkout", "local changes"))
        self.assertEqual(self.provisioner.calls, [])

    def test_deploy_reports_switch_and_init(self) -> None:
        self.dispatcher.deploy("main")
        message = self._next_result()
        self.assertIsInstance(message, DeployFinished)
        self.assertEqual(
            message.report,
            "Switched to branch: main\nTerraform init completed successfully.",
        )
        self.assertEqual(self.provisioner.calls, ["init"])

    def test_plan_and_apply_post_reports(self) -> None:
        self.dispatcher.plan("main")
        self.assertEqual(self._next_result(), ProvisionFinished("main", "plan", "Plan: 0 to add"))
        self.dispatcher.apply("main")
        self.assertEqual(self._next_result(), ProvisionFinished("main", "apply", "Apply complete!"))

    def test_plan_failure_carries_stderr(self) -> None:
        self.provisioner.plan_error = ProvisionError("execution_error", "exit status 1\nStderr: bad")
        self.dispatcher.plan("main")
        self.assertEqual(self._next_result(), ProvisionFailed("main", "plan", "exit status 1\nStderr: bad"))

    def test_unexpected_exception_is_named(self) -> None:
        self.cache.error = ValueError("boom")
        with self.assertLogs("infradeck.dispatcher", level="ERROR"):
            self.dispatcher.fetch_branches()
            message = self._next_result()
        self.assertEqual(message, BranchesFailed("ValueError: boom"))

    def test_operations_after_close_are_ignored(self) -> None:
        self.dispatcher.close()
        self.assertTrue(self.dispatcher.closed)

        self.dispatcher.fetch_branches()
        self.dispatcher.deploy("main")

        with self.assertRaises(Empty):
            self.dispatcher.results.get(timeout=0.2)
        self.assertEqual(self.dispatcher.drain_results(), [])

    def _gated_deploy(self) -> threading.Thread:
        self.repo.gate = threading.Event()
        self.dispatcher.deploy("main")
        self.assertTrue(self.repo.entered.wait(5))
        worker = self.repo.checkout_thread
        self.assertIsNotNone(worker)
        self.assertEqual(worker.name, "infradeck-deploy")
        return worker

    def test_workers_are_daemon_threads(self) -> None:
        worker = self._gated_deploy()
        self.assertTrue(worker.daemon)
        self.repo.gate.set()
        worker.join(5)
        self.assertIsInstance(self._next_result(), DeployFinished)

    def test_result_of_in_flight_work_is_dropped_after_close(self) -> None:
        worker = self._gated_deploy()

        self.dispatcher.close()
        self.repo.gate.set()
        worker.join(5)

        self.assertFalse(worker.is_alive())
        self.assertEqual(self.provisioner.calls, ["init"])
        self.assertEqual(self.dispatcher.drain_results(), [])

    def test_drain_results_empties_queue(self) -> None:
        self.dispatcher.fetch_branches()
        first = self._next_result()
        self.dispatcher.results.put(first)
        self.assertEqual(self.dispatcher.drain_results(), [first])
        self.assertEqual(self.dispatcher.drain_results(), [])


if __name__ == "__main__":
    unittest.main()
