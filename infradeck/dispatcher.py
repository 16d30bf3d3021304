"""Background execution of git and terraform work for the UI.

Each operation runs on a worker thread and posts exactly one result message
to the event loop's queue. After ``close()`` results are discarded.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from queue import Empty, Queue
from typing import Protocol

from .branch_cache import BranchCache
from .errors import InfradeckError
from .messages import (
    BranchesFailed,
    BranchesLoaded,
    DeployFailed,
    DeployFinished,
    Message,
    ProvisionFailed,
    ProvisionFinished,
    SlidesFailed,
    SlidesLoaded,
)
from .slides import SLIDES_PATH, split_slides

logger = logging.getLogger(__name__)


class Repository(Protocol):
    path: Path

    def checkout(self, branch: str) -> None: ...

    def read_file(self, branch: str, relative_path: str, ref: str | None = None) -> bytes: ...


class Provisioner(Protocol):
    def initialize(self, path: Path) -> str: ...

    def plan(self, path: Path) -> str: ...

    def apply(self, path: Path) -> str: ...


def _error_text(exc: Exception) -> str:
    if isinstance(exc, InfradeckError):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"


class CommandDispatcher:
    """Fire-and-forget operations that report back through ``results``."""

    def __init__(
        self,
        cache: BranchCache,
        repo: Repository,
        provisioner: Provisioner,
        results: Queue[Message] | None = None,
    ) -> None:
        self.cache = cache
        self.repo = repo
        self.provisioner = provisioner
        self.results: Queue[Message] = results if results is not None else Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _post(self, message: Message) -> None:
        if self._closed.is_set():
            logger.debug("discarding result after close: %r", type(message).__name__)
            return
        self.results.put(message)

    def _submit(self, name: str, work: Callable[[], Message], on_error: Callable[[Exception], Message]) -> None:
        def run() -> None:
            try:
                message = work()
            except Exception as exc:
                if not isinstance(exc, InfradeckError):
                    logger.exception("%s raised unexpectedly", name)
                message = on_error(exc)
            self._post(message)

        if self._closed.is_set():
            logger.debug("ignoring %s after close", name)
            return
        worker = threading.Thread(target=run, name=f"infradeck-{name}", daemon=True)
        worker.start()

    def fetch_branches(self, force: bool = False) -> None:
        def work() -> Message:
            return BranchesLoaded(self.cache.get_branches(force_refresh=force))

        self._submit("fetch_branches", work, lambda exc: BranchesFailed(_error_text(exc)))

    def fetch_slides(self, branch: str) -> None:
        def work() -> Message:
            self.repo.checkout(branch)
            raw = self.repo.read_file(branch, SLIDES_PATH)
            return SlidesLoaded(branch, split_slides(raw.decode("utf-8", errors="replace")))

        self._submit(
            "fetch_slides",
            work,
            lambda exc: SlidesFailed(branch, f"Error loading slides for {branch}: {_error_text(exc)}"),
        )

    def deploy(self, branch: str) -> None:
        """Check out ``branch`` then ``terraform init``; stop at the first failure."""

        def work() -> Message:
            try:
                self.repo.checkout(branch)
            except Exception as exc:
                return DeployFailed(branch, "checkout", _error_text(exc))
            try:
                report = self.provisioner.initialize(self.repo.path)
            except Exception as exc:
                return DeployFailed(branch, "init", _error_text(exc))
            return DeployFinished(branch, f"Switched to branch: {branch}\n{report}")

        self._submit("deploy", work, lambda exc: DeployFailed(branch, "deploy", _error_text(exc)))

    def _provision(self, branch: str, action: str, run: Callable[[Path], str]) -> None:
        def work() -> Message:
            return ProvisionFinished(branch, action, run(self.repo.path))

        self._submit(action, work, lambda exc: ProvisionFailed(branch, action, _error_text(exc)))

    def plan(self, branch: str) -> None:
        self._provision(branch, "plan", self.provisioner.plan)

    def apply(self, branch: str) -> None:
        self._provision(branch, "apply", self.provisioner.apply)

    def drain_results(self) -> list[Message]:
        """Drain all completed results without blocking."""
        out: list[Message] = []
        while True:
            try:
                out.append(self.results.get_nowait())
            except Empty:
                break
        return out

    def close(self) -> None:
        """Stop accepting work; in-flight results are dropped when they finish."""
        self._closed.set()
