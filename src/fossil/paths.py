"""Expansion of user-supplied file arguments into concrete paths."""

from __future__ import annotations

import glob
from pathlib import Path

_GLOB_CHARS = frozenset("*?[")


def is_pattern(arg: str) -> bool:
    return any(ch in _GLOB_CHARS for ch in arg)


def expand(patterns: list[str], *, must_exist: bool = True) -> list[Path]:
    """Turn literal paths and wildcard patterns into a de-duplicated path list.

    Patterns match regular files only (``**`` recurses).  Literal paths are
    kept when they name a file, or unconditionally when *must_exist* is
    false, since a tracked file may have been removed from disk.
    """
    seen: set[Path] = set()
    out: list[Path] = []

    def _add(p: Path) -> None:
        if p not in seen:
            seen.add(p)
            out.append(p)

    for arg in patterns:
        if is_pattern(arg):
            for match in sorted(glob.glob(arg, recursive=True)):
                path = Path(match)
                if path.is_file():
                    _add(path)
            continue
        path = Path(arg)
        if path.is_file() or not must_exist:
            _add(path)
    return out
