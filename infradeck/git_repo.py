"""Subprocess-backed git access for the infrastructure checkout.

Clones or refreshes the local copy, enumerates remote branches, switches the
worktree, and reads files at a branch tip without touching the worktree.
Failures are raised as ``RepositoryError``/``ContentError`` with git's stderr.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path

from .errors import ContentError, RepositoryError

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 120.0

_AUTH_MARKERS = (
    "authentication failed",
    "could not read username",
    "permission denied",
    "terminal prompts disabled",
)
_NOT_FOUND_MARKERS = (
    "repository not found",
    "does not exist",
    "not found",
)
_DIRTY_MARKERS = (
    "would be overwritten by checkout",
    "please commit your changes or stash them",
)


@dataclass(frozen=True)
class RemoteBranch:
    """One branch advertised by a remote-tracking ref."""

    name: str
    remote: str
    is_remote_only: bool


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    # Never block on a credential prompt while the terminal is in raw mode.
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def _run_git(
    args: list[str],
    cwd: Path | None,
    timeout_seconds: float,
    *,
    binary: bool = False,
) -> subprocess.CompletedProcess:
    cmd = ["git", *args] if cwd is None else ["git", "-C", str(cwd), *args]
    logger.debug("running %s", " ".join(cmd))
    try:
        if binary:
            return subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
                timeout=timeout_seconds,
                env=_git_env(),
            )
        return subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout_seconds,
            env=_git_env(),
        )
    except FileNotFoundError as exc:
        raise RepositoryError("git_not_installed", "git executable not found in PATH") from exc
    except subprocess.TimeoutExpired as exc:
        raise RepositoryError("network", f"git {args[0]} timed out after {timeout_seconds:.0f}s") from exc


def _stderr_text(proc: subprocess.CompletedProcess) -> str:
    stderr = proc.stderr
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    return (stderr or "").strip()


def _classify_remote_failure(stderr: str) -> str:
    lowered = stderr.lower()
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return "auth"
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return "not_found"
    return "network"


def ensure_repository(
    url: str,
    branch: str,
    repo_dir: Path,
    timeout_seconds: float = GIT_TIMEOUT_SECONDS,
) -> Path:
    """Make sure ``repo_dir`` holds a clone of ``url`` and return its path.

    An existing clone is refreshed with a fetch; otherwise ``branch`` is
    cloned fresh. Raises ``RepositoryError`` with kind ``not_found``,
    ``network``, or ``auth``.
    """
    repo_dir = repo_dir.expanduser()
    if (repo_dir / ".git").exists():
        logger.info("refreshing existing clone at %s", repo_dir)
        GitRepository(repo_dir, timeout_seconds).fetch_remote_updates()
        return repo_dir.resolve()

    try:
        repo_dir.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RepositoryError("not_found", f"error creating {repo_dir.parent}: {exc}") from exc

    logger.info("cloning %s (%s) into %s", url, branch, repo_dir)
    proc = _run_git(["clone", "--branch", branch, url, str(repo_dir)], None, timeout_seconds)
    if proc.returncode != 0:
        stderr = _stderr_text(proc)
        raise RepositoryError(_classify_remote_failure(stderr), f"error cloning repository: {stderr}")
    return repo_dir.resolve()


class GitRepository:
    """Version-control provider for one local clone.

    Worktree-mutating commands (fetch, checkout) are serialized so a background
    refresh never races a foreground checkout on git's index lock.
    """

    def __init__(self, path: Path, timeout_seconds: float = GIT_TIMEOUT_SECONDS) -> None:
        self.path = path
        self.timeout_seconds = timeout_seconds
        self._mutation_lock = threading.Lock()

    def _git(self, args: list[str], *, binary: bool = False) -> subprocess.CompletedProcess:
        return _run_git(args, self.path, self.timeout_seconds, binary=binary)

    def _ref_names(self, prefix: str) -> list[str]:
        proc = self._git(["for-each-ref", "--format=%(refname)", prefix])
        if proc.returncode != 0:
            raise RepositoryError("repo_corrupt", f"error listing refs: {_stderr_text(proc)}")
        return [line.strip() for line in proc.stdout.splitlines() if line.strip()]

    def remotes(self) -> list[str]:
        proc = self._git(["remote"])
        if proc.returncode != 0:
            raise RepositoryError("repo_corrupt", f"error getting remotes: {_stderr_text(proc)}")
        return [line.strip() for line in proc.stdout.splitlines() if line.strip()]

    def local_branches(self) -> set[str]:
        return {ref[len("refs/heads/"):] for ref in self._ref_names("refs/heads")}

    def current_branch(self) -> str | None:
        proc = self._git(["symbolic-ref", "--quiet", "--short", "HEAD"])
        if proc.returncode != 0:
            return None
        name = proc.stdout.strip()
        return name or None

    def fetch_remote_updates(self) -> None:
        """Fetch every remote; an up-to-date repository is not an error."""
        with self._mutation_lock:
            proc = self._git(["fetch", "--all", "--prune", "--quiet"])
        if proc.returncode != 0:
            raise RepositoryError("network", f"error fetching repository: {_stderr_text(proc)}")

    def list_remote_branches(self) -> list[RemoteBranch]:
        """List branches of all remote-tracking refs in ``for-each-ref`` order.

        Symbolic ``<remote>/HEAD`` refs are skipped. A branch is remote-only
        when no local branch carries the same name.
        """
        # Longest remote names first so "origin/x" never shadows "origin".
        remotes = sorted(self.remotes(), key=len, reverse=True)
        local = self.local_branches()
        out: list[RemoteBranch] = []
        for ref in self._ref_names("refs/remotes"):
            short = ref[len("refs/remotes/"):]
            remote = next((r for r in remotes if short.startswith(r + "/")), None)
            if remote is None:
                continue
            name = short[len(remote) + 1:]
            if not name or name == "HEAD":
                continue
            out.append(RemoteBranch(name=name, remote=remote, is_remote_only=name not in local))
        return out

    def _remote_for_branch(self, branch: str) -> str | None:
        for candidate in self.list_remote_branches():
            if candidate.name == branch:
                return candidate.remote
        return None

    def resolve_ref(self, branch: str) -> str:
        """Return a ref for ``branch``: the local head, else a remote-tracking ref."""
        if branch in self.local_branches():
            return f"refs/heads/{branch}"
        remote = self._remote_for_branch(branch)
        if remote is None:
            raise RepositoryError("checkout_failed", f"no ref found for branch {branch!r}")
        return f"refs/remotes/{remote}/{branch}"

    def checkout(self, branch: str) -> None:
        """Switch the worktree to ``branch``, creating a tracking branch if needed."""
        if self.current_branch() == branch:
            logger.debug("already on %s", branch)
            return
        if branch in self.local_branches():
            args = ["checkout", "--quiet", branch]
        else:
            remote = self._remote_for_branch(branch)
            if remote is None:
                raise RepositoryError("branch_not_found", f"error checking out branch: {branch!r} not found")
            args = ["checkout", "--quiet", "-B", branch, "--track", f"{remote}/{branch}"]

        with self._mutation_lock:
            proc = self._git(args)
        if proc.returncode == 0:
            logger.info("checked out %s", branch)
            return

        stderr = _stderr_text(proc)
        lowered = stderr.lower()
        if any(marker in lowered for marker in _DIRTY_MARKERS):
            kind = "dirty_worktree"
        elif "did not match" in lowered or "invalid reference" in lowered:
            kind = "branch_not_found"
        else:
            kind = "checkout_failed"
        raise RepositoryError(kind, f"error checking out branch: {stderr}")

    def read_file(self, branch: str, relative_path: str, ref: str | None = None) -> bytes:
        """Return the bytes of ``relative_path`` at the tip of ``branch``.

        ``ref`` skips ref resolution when the caller already knows it.
        Raises ``RepositoryError(kind="checkout_failed")`` when the branch
        cannot be resolved and ``ContentError`` when the file is absent there.
        """
        if ref is None:
            ref = self.resolve_ref(branch)
        proc = self._git(["show", f"{ref}:{relative_path}"], binary=True)
        if proc.returncode == 0:
            return proc.stdout
        stderr = _stderr_text(proc)
        lowered = stderr.lower()
        if "does not exist" in lowered or "exists on disk, but not in" in lowered:
            raise ContentError(f"{relative_path} not found on {branch}")
        raise RepositoryError("read_failed", f"error reading {relative_path} on {branch}: {stderr}")
