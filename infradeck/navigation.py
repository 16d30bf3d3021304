"""Three-screen navigation state machine.

Keys and result messages both land here, on the event-loop thread. Work that
needs git or terraform is handed to the dispatcher; its outcome comes back as
a message later and is folded into ``NavigationState``.
"""

from __future__ import annotations

import logging
from typing import Protocol

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
from .slides import SlideDeck
from .state import NavigationState, Screen

logger = logging.getLogger(__name__)

# Pending work that runs terraform inside the checked-out worktree.
_WORKTREE_ACTIONS = frozenset({"deploy", "plan", "apply"})


class Dispatcher(Protocol):
    def fetch_branches(self, force: bool = False) -> None: ...

    def fetch_slides(self, branch: str) -> None: ...

    def deploy(self, branch: str) -> None: ...

    def plan(self, branch: str) -> None: ...

    def apply(self, branch: str) -> None: ...


class NavigationStateMachine:
    """Owns screen transitions for one session."""

    def __init__(self, state: NavigationState, dispatcher: Dispatcher) -> None:
        self.state = state
        self.dispatcher = dispatcher

    def start(self) -> None:
        """Kick off the initial branch listing."""
        self.dispatcher.fetch_branches()

    def _enter_screen(self, screen: Screen) -> None:
        state = self.state
        if state.screen != screen:
            state.last_error = None
        if screen != Screen.SLIDE_VIEWING:
            state.slide_deck = None
        state.screen = screen
        state.dirty = True

    # Keys

    def handle_key(self, key: str) -> bool:
        """Handle one key token; returns ``True`` when the session should end."""
        state = self.state
        if key == "CTRL_C":
            state.quit_requested = True
            return True

        if state.screen == Screen.BRANCH_SELECTION:
            self._handle_branch_selection_key(key)
        elif state.screen == Screen.SLIDE_VIEWING:
            self._handle_slide_key(key)
        else:
            self._handle_deployment_key(key)
        return state.quit_requested

    def _move_highlight(self, delta: int) -> None:
        state = self.state
        count = len(state.visible_branches())
        if count == 0:
            state.highlighted = 0
            state.list_start = 0
            return
        state.highlighted = max(0, min(state.highlighted + delta, count - 1))
        self._scroll_to_highlight()
        state.dirty = True

    def _scroll_to_highlight(self) -> None:
        state = self.state
        rows = max(1, state.list_rows)
        if state.highlighted < state.list_start:
            state.list_start = state.highlighted
        elif state.highlighted >= state.list_start + rows:
            state.list_start = state.highlighted - rows + 1
        count = len(state.visible_branches())
        state.list_start = max(0, min(state.list_start, max(0, count - rows)))

    def _set_filter_query(self, query: str) -> None:
        state = self.state
        state.filter_query = query
        state.highlighted = 0
        state.list_start = 0
        state.dirty = True

    def _handle_filter_key(self, key: str) -> None:
        state = self.state
        if key == "ESC":
            state.filter_editing = False
            self._set_filter_query("")
        elif key == "ENTER":
            state.filter_editing = False
            state.dirty = True
        elif key == "BACKSPACE":
            self._set_filter_query(state.filter_query[:-1])
        elif key == "UP":
            self._move_highlight(-1)
        elif key == "DOWN":
            self._move_highlight(1)
        elif len(key) == 1 and key.isprintable():
            self._set_filter_query(state.filter_query + key)

    def _handle_branch_selection_key(self, key: str) -> None:
        state = self.state
        if state.filter_editing:
            self._handle_filter_key(key)
            return

        if key == "q":
            state.quit_requested = True
        elif key == "/":
            state.filter_editing = True
            state.dirty = True
        elif key == "ESC":
            if state.filter_query:
                self._set_filter_query("")
        elif key in {"UP", "k"}:
            self._move_highlight(-1)
        elif key in {"DOWN", "j"}:
            self._move_highlight(1)
        elif key == "CTRL_U":
            self._move_highlight(-max(1, state.list_rows))
        elif key == "CTRL_D":
            self._move_highlight(max(1, state.list_rows))
        elif key == "r":
            state.status_text = "Refreshing branches..."
            state.dirty = True
            self.dispatcher.fetch_branches(force=True)
        elif key == "ENTER":
            self._select_highlighted_branch()

    def _select_highlighted_branch(self) -> None:
        state = self.state
        if state.pending in _WORKTREE_ACTIONS:
            state.last_error = (
                f"Wait for {state.pending} of {state.selected_branch} to finish before opening another branch"
            )
            state.dirty = True
            return
        branch = state.highlighted_branch()
        if branch is None:
            return
        state.selected_branch = branch.name
        state.status_text = f"Loading slides for {branch.name}..."
        state.last_error = None
        state.pending = "slides"
        state.dirty = True
        self.dispatcher.fetch_slides(branch.name)

    def _handle_slide_key(self, key: str) -> None:
        state = self.state
        deck = state.slide_deck
        if key in {"RIGHT", "n"}:
            if deck is not None and deck.next():
                state.dirty = True
        elif key in {"LEFT", "p"}:
            if deck is not None and deck.previous():
                state.dirty = True
        elif key == "d":
            self._enter_screen(Screen.DEPLOYMENT_CONFIRM)
        elif key in {"q", "ESC"}:
            self._enter_screen(Screen.BRANCH_SELECTION)

    def _handle_deployment_key(self, key: str) -> None:
        state = self.state
        branch = state.selected_branch
        if key in {"2", "ESC"}:
            self._enter_screen(Screen.BRANCH_SELECTION)
            return
        if branch is None or state.pending is not None:
            return

        if key == "1":
            state.status_text = f"Deploying {branch}..."
            state.last_error = None
            state.pending = "deploy"
            state.dirty = True
            self.dispatcher.deploy(branch)
        elif key in {"3", "4"}:
            action = "plan" if key == "3" else "apply"
            if state.initialized_branch != branch:
                state.last_error = f"Deploy {branch} (press 1) before running terraform {action}"
                state.dirty = True
                return
            state.status_text = f"Running terraform {action} for {branch}..."
            state.last_error = None
            state.pending = action
            state.dirty = True
            if action == "plan":
                self.dispatcher.plan(branch)
            else:
                self.dispatcher.apply(branch)

    # Messages

    def handle_message(self, message: Message) -> None:
        """Fold one background result into the state."""
        state = self.state
        state.dirty = True

        if isinstance(message, BranchesLoaded):
            state.branches = message.branches
            count = len(state.visible_branches())
            state.highlighted = max(0, min(state.highlighted, count - 1))
            self._scroll_to_highlight()
            if state.screen == Screen.BRANCH_SELECTION:
                state.status_text = "" if message.branches else "No branches found"
        elif isinstance(message, BranchesFailed):
            state.status_text = ""
            state.last_error = f"Error fetching branches: {message.error}"
        elif isinstance(message, (SlidesLoaded, SlidesFailed)):
            self._handle_slides_result(message)
        elif isinstance(message, DeployFinished):
            self._finish_pending("deploy")
            state.initialized_branch = message.branch
            state.status_text = message.report
        elif isinstance(message, DeployFailed):
            self._finish_pending("deploy")
            if state.initialized_branch == message.branch:
                state.initialized_branch = None
            state.status_text = ""
            state.last_error = f"{message.step} failed: {message.error}"
        elif isinstance(message, ProvisionFinished):
            self._finish_pending(message.action)
            state.status_text = message.report
        elif isinstance(message, ProvisionFailed):
            self._finish_pending(message.action)
            state.status_text = ""
            state.last_error = f"terraform {message.action} failed: {message.error}"
        else:
            raise TypeError(f"unknown message: {message!r}")

    def _finish_pending(self, kind: str) -> None:
        if self.state.pending == kind:
            self.state.pending = None

    def _handle_slides_result(self, message: SlidesLoaded | SlidesFailed) -> None:
        state = self.state
        stale = (
            state.pending != "slides"
            or state.screen != Screen.BRANCH_SELECTION
            or message.branch != state.selected_branch
        )
        if stale:
            logger.debug("dropping stale slide result for %s", message.branch)
            return

        state.pending = None
        state.status_text = ""
        if isinstance(message, SlidesFailed):
            state.last_error = message.error
            return
        self._enter_screen(Screen.SLIDE_VIEWING)
        state.slide_deck = SlideDeck(message.slides)
