"""Main interactive event loop for the terminal UI.

Single-threaded: drains background results, redraws when the state is dirty,
and dispatches one key at a time. Feature logic lives in the callbacks.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from dataclasses import dataclass

from .input import read_key
from .messages import Message
from .render import RenderOptions, build_frame, list_rows_for_height, write_frame
from .state import NavigationState
from .terminal import TerminalController

KEY_READ_TIMEOUT_MS = 120

_KEY_ALIASES = {
    "PAGE_UP": "CTRL_U",
    "PAGE_DOWN": "CTRL_D",
}


@dataclass(frozen=True)
class RuntimeLoopCallbacks:
    """Injected operations used by ``run_main_loop``."""

    drain_results: Callable[[], list[Message]]
    handle_message: Callable[[Message], None]
    handle_key: Callable[[str], bool]
    write_frame: Callable[[list[str]], None] = write_frame


def run_main_loop(
    state: NavigationState,
    terminal: TerminalController,
    stdin_fd: int,
    callbacks: RuntimeLoopCallbacks,
    options: RenderOptions | None = None,
) -> None:
    """Run the interactive loop until a key handler asks to quit."""
    options = options or RenderOptions()
    last_size: tuple[int, int] | None = None
    skip_next_lf = False

    with terminal.raw_mode():
        while True:
            term = shutil.get_terminal_size((80, 24))
            if (term.columns, term.lines) != last_size:
                last_size = (term.columns, term.lines)
                state.list_rows = list_rows_for_height(term.lines)
                state.dirty = True

            for message in callbacks.drain_results():
                callbacks.handle_message(message)

            if state.dirty:
                callbacks.write_frame(build_frame(state, term.columns, term.lines, options))
                state.dirty = False

            try:
                key = read_key(stdin_fd, timeout_ms=KEY_READ_TIMEOUT_MS)
            except KeyboardInterrupt:
                key = "CTRL_C"
            if key == "":
                continue
            if skip_next_lf and key == "ENTER_LF":
                skip_next_lf = False
                continue

            if key == "ENTER_CR":
                key = "ENTER"
                skip_next_lf = True
            elif key == "ENTER_LF":
                key = "ENTER"
                skip_next_lf = False
            else:
                skip_next_lf = False

            key = _KEY_ALIASES.get(key, key)
            if callbacks.handle_key(key):
                break
