"""Slide decks built from a branch's markdown document.

The document is split on ``---`` into trimmed segments once, when it is
fetched; the deck then only moves a clamped cursor over them.
"""

from __future__ import annotations

SLIDES_PATH = "slides/slides.md"
SLIDE_DELIMITER = "---"


def split_slides(markdown: str) -> tuple[str, ...]:
    """Split ``markdown`` on the slide delimiter into trimmed segments."""
    return tuple(segment.strip() for segment in markdown.split(SLIDE_DELIMITER))


class SlideDeck:
    """Finite, restartable slide sequence with a 0-based cursor."""

    def __init__(self, slides: tuple[str, ...] | list[str]) -> None:
        self.slides = tuple(slides)
        self.cursor = 0

    @classmethod
    def from_markdown(cls, markdown: str) -> SlideDeck:
        return cls(split_slides(markdown))

    def __len__(self) -> int:
        return len(self.slides)

    @property
    def current(self) -> str | None:
        if not self.slides:
            return None
        return self.slides[self.cursor]

    def _move_to(self, index: int) -> bool:
        clamped = max(0, min(index, len(self.slides) - 1))
        if clamped == self.cursor:
            return False
        self.cursor = clamped
        return True

    def next(self) -> bool:
        """Advance one slide; returns whether the cursor moved."""
        return self._move_to(self.cursor + 1)

    def previous(self) -> bool:
        return self._move_to(self.cursor - 1)

    def restart(self) -> None:
        self.cursor = 0
