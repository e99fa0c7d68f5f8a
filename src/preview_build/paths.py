"""Containment checks for session-rooted paths.

Session roots and relative paths are validated upstream; these helpers re-check
containment before anything is read or reported.
"""

from __future__ import annotations

import os
from pathlib import Path


def resolve_root(root_path: str | os.PathLike[str]) -> Path:
    raw = str(root_path or "").strip()
    if not raw:
        raise ValueError("empty root path")
    if "\x00" in raw:
        raise ValueError("invalid root path")
    return Path(raw).resolve()


def is_within_root(path: str | os.PathLike[str], root: Path) -> bool:
    try:
        Path(os.path.normpath(os.path.abspath(path))).relative_to(root)
    except ValueError:
        return False
    return True


def relative_to_root(path: str | os.PathLike[str], root: Path) -> str | None:
    """Return the POSIX-style path of `path` relative to `root`, or None if it escapes."""
    norm = Path(os.path.normpath(os.path.abspath(path)))
    try:
        rel = norm.relative_to(root)
    except ValueError:
        return None
    out = rel.as_posix()
    if out in ("", "."):
        return None
    return out


def has_dot_segment(relative_path: str) -> bool:
    return any(
        part.startswith(".") and part not in (".", "..")
        for part in relative_path.replace("\\", "/").split("/")
    )
