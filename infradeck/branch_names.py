"""Git branch-name sanity checks.

Used to drop unusable names from remote listings before they reach the cache.
"""

from __future__ import annotations

_FORBIDDEN_CHARS = frozenset("~^:?*[\\@{")


def is_valid_branch_name(name: str) -> bool:
    """Return whether ``name`` is usable as a branch name in the UI.

    Rejects empty names, spaces, ``..``, a trailing ``/``, a leading ``-``,
    and any of the characters ``~ ^ : ? * [ \\ @ {``.
    """
    if not name:
        return False
    if " " in name or ".." in name:
        return False
    if name.endswith("/") or name.startswith("-"):
        return False
    return not any(ch in _FORBIDDEN_CHARS for ch in name)
