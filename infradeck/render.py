"""Frame composition for the three screens.

``build_frame`` is a pure function of the navigation state and terminal size;
``write_frame`` is the only place that touches stdout.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from .ansi import clip_ansi_line
from .highlight import DEFAULT_STYLE, colorize_markdown, sanitize_terminal_text
from .state import NavigationState, Screen

APP_TITLE = "infradeck"
LIST_TITLE = "Select a branch"
TITLE_STYLE_SGR = "1;38;2;255;253;245;48;2;37;160;101"
PROGRESS_STYLE_SGR = "1;38;5;205"
ERROR_STYLE_SGR = "38;5;196"
DESCRIPTION_STYLE_SGR = "38;5;244"
SELECTED_TITLE_SGR = "1;38;5;205"
# Title, repository, status, blank, list title, filter row, status bar.
BRANCH_CHROME_ROWS = 7
ROWS_PER_BRANCH = 2

BRANCH_HINTS = "↑/↓ move  Enter slides  / filter  r refresh  q quit"
SLIDE_HINTS = "←/→ or p/n navigate  d deployment options  q back"
DEPLOY_HINTS = "1 deploy  2 cancel  3 plan  4 apply"


@dataclass(frozen=True)
class RenderOptions:
    repo_path: Path | None = None
    style: str = DEFAULT_STYLE
    no_color: bool = False


def _styled(text: str, sgr: str, no_color: bool) -> str:
    if no_color or not text:
        return text
    return f"\033[{sgr}m{text}\033[0m"


def build_status_line(left_text: str, width: int, right_text: str) -> str:
    usable = max(1, width - 1)
    if usable <= len(right_text):
        return right_text[-usable:]
    left_limit = max(0, usable - len(right_text) - 1)
    left = left_text[:left_limit]
    gap = " " * (usable - len(left) - len(right_text))
    return f"{left}{gap}{right_text}"


def list_rows_for_height(height: int) -> int:
    """Number of branch entries that fit on the selection screen."""
    return max(1, (height - BRANCH_CHROME_ROWS) // ROWS_PER_BRANCH)


def _error_lines(state: NavigationState, no_color: bool) -> list[str]:
    if not state.last_error:
        return []
    lines = sanitize_terminal_text(state.last_error).splitlines()
    return [_styled(line, ERROR_STYLE_SGR, no_color) for line in lines]


def _status_summary(status_text: str) -> str:
    lines = sanitize_terminal_text(status_text).splitlines()
    if not lines:
        return ""
    if len(lines) == 1:
        return lines[0]
    return f"{lines[0]} (+{len(lines) - 1} more lines)"


def _branch_selection_lines(state: NavigationState, options: RenderOptions) -> list[str]:
    no_color = options.no_color
    repo = str(options.repo_path) if options.repo_path is not None else "-"
    out = [
        _styled(APP_TITLE, "1", no_color),
        f"Repository: {repo}",
        f"Status: {_status_summary(state.status_text)}",
    ]
    out.extend(_error_lines(state, no_color))
    out.append("")
    out.append(_styled(f" {LIST_TITLE} ", TITLE_STYLE_SGR, no_color))

    if state.filter_editing or state.filter_query:
        cursor = "_" if state.filter_editing else ""
        out.append(f"Filter: {sanitize_terminal_text(state.filter_query)}{cursor}")
    else:
        out.append("")

    visible = state.visible_items()
    if not visible:
        out.append("  No matching branches." if state.branches else "  No branches.")
        return out

    rows = max(1, state.list_rows)
    end = min(len(visible), state.list_start + rows)
    for idx in range(state.list_start, end):
        item = visible[idx]
        description = sanitize_terminal_text(item.description).splitlines()
        first_description = description[0] if description else ""
        title = sanitize_terminal_text(item.title)
        if idx == state.highlighted:
            out.append("│ " + _styled(title, SELECTED_TITLE_SGR, no_color))
            out.append("│ " + _styled(first_description, DESCRIPTION_STYLE_SGR, no_color))
        else:
            out.append("  " + title)
            out.append("  " + _styled(first_description, DESCRIPTION_STYLE_SGR, no_color))
    if len(visible) > rows:
        page = state.list_start // rows + 1
        pages = (len(visible) + rows - 1) // rows
        out.append(f"  {page}/{pages}")
    return out


def _slide_lines(state: NavigationState, options: RenderOptions) -> list[str]:
    deck = state.slide_deck
    if deck is None or deck.current is None:
        return ["No content to display"]
    progress = _styled(f"Slide {deck.cursor + 1} of {len(deck)}", PROGRESS_STYLE_SGR, options.no_color)
    body = colorize_markdown(deck.current, options.style, options.no_color)
    return [progress, "", *body.splitlines()]


def _deployment_lines(state: NavigationState, height: int, options: RenderOptions) -> list[str]:
    branch = sanitize_terminal_text(state.selected_branch or "-")
    out = [
        _styled(f"{APP_TITLE} - Deploy Branch: {branch}", "1", options.no_color),
        "",
        "Deployment Options:",
        "1. Deploy",
        "2. Cancel",
        "3. Plan",
        "4. Apply",
        "",
    ]
    if state.pending is not None:
        out.append(f"Running {state.pending}...")
    out.extend(_error_lines(state, options.no_color))
    report = sanitize_terminal_text(state.status_text).splitlines()
    room = max(0, height - 1 - len(out))
    if len(report) > room:
        # Keep the tail: terraform prints its verdict last.
        report = report[len(report) - room:] if room else []
    out.extend(report)
    return out


def build_frame(state: NavigationState, width: int, height: int, options: RenderOptions | None = None) -> list[str]:
    """Compose one frame as ``height`` rows; the last row is the key-hint bar."""
    options = options or RenderOptions()
    width = max(1, width)
    height = max(2, height)

    if state.screen == Screen.BRANCH_SELECTION:
        body = _branch_selection_lines(state, options)
        hints = BRANCH_HINTS
    elif state.screen == Screen.SLIDE_VIEWING:
        body = _slide_lines(state, options)
        hints = SLIDE_HINTS
    else:
        body = _deployment_lines(state, height, options)
        hints = DEPLOY_HINTS

    rows = [clip_ansi_line(line, width) for line in body[: height - 1]]
    rows.extend([""] * (height - 1 - len(rows)))
    left = state.selected_branch or ""
    status = build_status_line(left, width, hints)
    rows.append(status if options.no_color else f"\033[7m{status}\033[0m")
    return rows


def write_frame(rows: list[str], stdout_fd: int | None = None) -> None:
    """Write a full frame, clearing the screen first."""
    fd = sys.stdout.fileno() if stdout_fd is None else stdout_fd
    out: list[str] = ["\033[H\033[J"]
    for idx, row in enumerate(rows):
        out.append(row)
        if "\033" in row:
            out.append("\033[0m")
        if idx < len(rows) - 1:
            out.append("\r\n")
    os.write(fd, "".join(out).encode("utf-8", errors="replace"))
