"""Result messages posted by background work and consumed by the event loop.

Every dispatched operation produces exactly one of these. They are frozen so
worker threads can hand them across without sharing mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .branch_cache import BranchRecord


@dataclass(frozen=True)
class BranchesLoaded:
    branches: tuple[BranchRecord, ...]


@dataclass(frozen=True)
class BranchesFailed:
    error: str


@dataclass(frozen=True)
class SlidesLoaded:
    branch: str
    slides: tuple[str, ...]


@dataclass(frozen=True)
class SlidesFailed:
    branch: str
    error: str


@dataclass(frozen=True)
class DeployFinished:
    branch: str
    report: str


@dataclass(frozen=True)
class DeployFailed:
    """Deploy stopped at ``step`` (``checkout`` or ``init``)."""

    branch: str
    step: str
    error: str


@dataclass(frozen=True)
class ProvisionFinished:
    branch: str
    action: str
    report: str


@dataclass(frozen=True)
class ProvisionFailed:
    branch: str
    action: str
    error: str


Message = Union[
    BranchesLoaded,
    BranchesFailed,
    SlidesLoaded,
    SlidesFailed,
    DeployFinished,
    DeployFailed,
    ProvisionFinished,
    ProvisionFailed,
]
