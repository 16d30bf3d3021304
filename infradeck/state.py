"""Navigation state owned by the event loop.

Only the event-loop thread mutates ``NavigationState``; background work talks
to it exclusively through messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .branch_cache import BranchRecord
from .slides import SlideDeck

INITIAL_STATUS = "initializing"


class Screen(Enum):
    BRANCH_SELECTION = "branch_selection"
    SLIDE_VIEWING = "slide_viewing"
    DEPLOYMENT_CONFIRM = "deployment_confirm"


@dataclass(frozen=True)
class BranchItem:
    """One row of the branch list as the renderer sees it."""

    title: str
    description: str

    @classmethod
    def from_record(cls, record: BranchRecord) -> BranchItem:
        return cls(title=record.name, description=record.description)


@dataclass
class NavigationState:
    screen: Screen = Screen.BRANCH_SELECTION
    branches: tuple[BranchRecord, ...] = ()
    selected_branch: str | None = None
    status_text: str = INITIAL_STATUS
    last_error: str | None = None
    slide_deck: SlideDeck | None = None
    highlighted: int = 0
    list_start: int = 0
    list_rows: int = 10
    filter_query: str = ""
    filter_editing: bool = False
    pending: str | None = None
    initialized_branch: str | None = None
    dirty: bool = True
    quit_requested: bool = False

    def visible_branches(self) -> list[BranchRecord]:
        """Branches matching the current filter, in cache order."""
        query = self.filter_query.casefold()
        if not query:
            return list(self.branches)
        return [branch for branch in self.branches if query in branch.name.casefold()]

    def visible_items(self) -> list[BranchItem]:
        return [BranchItem.from_record(branch) for branch in self.visible_branches()]

    def highlighted_branch(self) -> BranchRecord | None:
        visible = self.visible_branches()
        if not visible:
            return None
        return visible[max(0, min(self.highlighted, len(visible) - 1))]
