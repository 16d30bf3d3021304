"""Time-gated, single-flight cache of remote branches and their descriptions.

A fresh snapshot is served for up to ``STALENESS_WINDOW_SECONDS``; after that
the next caller refreshes from git. Concurrent refresh requests collapse into
one upstream fetch whose result (or error) every waiter receives.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Protocol

from .branch_names import is_valid_branch_name
from .errors import ContentError, RepositoryError
from .git_repo import RemoteBranch

logger = logging.getLogger(__name__)

STALENESS_WINDOW_SECONDS = 300.0
DESCRIPTION_PATH = "description.md"
DESCRIPTION_MAX_LINES = 5
DESCRIPTION_ELLIPSIS = "..."
NO_DESCRIPTION = "No description available"
REMOTE_ONLY_DESCRIPTION = "Remote branch - description not available"


class BranchSource(Protocol):
    def fetch_remote_updates(self) -> None: ...

    def list_remote_branches(self) -> list[RemoteBranch]: ...

    def read_file(self, branch: str, relative_path: str, ref: str | None = None) -> bytes: ...


@dataclass(frozen=True)
class BranchRecord:
    """One selectable branch and its short description."""

    name: str
    description: str


def summarize_description(text: str, max_lines: int = DESCRIPTION_MAX_LINES) -> str:
    """Keep the first ``max_lines`` non-blank lines, trimmed.

    An ellipsis line is appended when further non-blank content was cut.
    Text with no non-blank lines yields ``NO_DESCRIPTION``.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return NO_DESCRIPTION
    description = "\n".join(lines[:max_lines])
    if len(lines) > max_lines:
        description += "\n" + DESCRIPTION_ELLIPSIS
    return description


def resolve_description(source: BranchSource, branch: RemoteBranch) -> str:
    """Read ``description.md`` at the branch tip, degrading to a placeholder."""
    if branch.is_remote_only:
        ref = f"refs/remotes/{branch.remote}/{branch.name}"
    else:
        ref = f"refs/heads/{branch.name}"
    try:
        raw = source.read_file(branch.name, DESCRIPTION_PATH, ref=ref)
    except ContentError:
        return NO_DESCRIPTION
    except RepositoryError as exc:
        logger.debug("description unavailable for %s: %s", branch.name, exc)
        return REMOTE_ONLY_DESCRIPTION
    return summarize_description(raw.decode("utf-8", errors="replace"))


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class _Flight:
    """One in-progress upstream refresh shared by all waiting callers."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.result: tuple[BranchRecord, ...] = ()
        self.error: Exception | None = None


class BranchCache:
    """Branch snapshot shared by the dispatcher and the background refresher."""

    def __init__(
        self,
        source: BranchSource,
        staleness_seconds: float = STALENESS_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._staleness_seconds = staleness_seconds
        self._clock = clock
        self._lock = ReadWriteLock()
        self._entries: tuple[BranchRecord, ...] = ()
        self._last_fetched_at = 0.0
        self._flight_lock = threading.Lock()
        self._flight: _Flight | None = None

    @property
    def last_fetched_at(self) -> float:
        with self._lock.read():
            return self._last_fetched_at

    def snapshot(self) -> tuple[BranchRecord, ...]:
        """Return cached entries without contacting git."""
        with self._lock.read():
            return self._entries

    def get_branches(self, force_refresh: bool = False) -> tuple[BranchRecord, ...]:
        """Return branch records, refreshing when forced, empty, or stale.

        Raises ``RepositoryError`` when the upstream refresh fails; the
        previous snapshot and timestamp are left untouched in that case.
        """
        if not force_refresh:
            with self._lock.read():
                fresh = (self._clock() - self._last_fetched_at) < self._staleness_seconds
                if self._entries and fresh:
                    return self._entries

        with self._flight_lock:
            flight = self._flight
            leader = flight is None
            if flight is None:
                flight = _Flight()
                self._flight = flight

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result

        try:
            records = self._fetch()
        except Exception as exc:
            logger.warning("branch refresh failed: %s", exc)
            flight.error = exc
            raise
        else:
            with self._lock.write():
                self._entries = records
                self._last_fetched_at = self._clock()
            flight.result = records
            logger.info("branch cache refreshed with %d branches", len(records))
            return records
        finally:
            with self._flight_lock:
                self._flight = None
            flight.done.set()

    def _fetch(self) -> tuple[BranchRecord, ...]:
        self._source.fetch_remote_updates()
        records: list[BranchRecord] = []
        seen: set[str] = set()
        for branch in self._source.list_remote_branches():
            if not is_valid_branch_name(branch.name):
                logger.debug("skipping invalid branch name %r", branch.name)
                continue
            if branch.name in seen:
                continue
            seen.add(branch.name)
            records.append(BranchRecord(name=branch.name, description=resolve_description(self._source, branch)))
        return tuple(records)
