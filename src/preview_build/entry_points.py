from __future__ import annotations

import os

from src.preview_build.paths import resolve_root

ENTRY_CANDIDATES: tuple[str, ...] = (
    "src/App.tsx",
    "src/App.js",
    "src/index.tsx",
    "src/index.js",
    "App.tsx",
    "App.js",
    "index.tsx",
    "index.js",
)


def discover_entry(root_path: str | os.PathLike[str]) -> str:
    """Return the absolute path of the first conventional entry file under the root."""
    root = resolve_root(root_path)
    for rel in ENTRY_CANDIDATES:
        candidate = root / rel
        if candidate.is_file():
            return str(candidate)
    raise FileNotFoundError(
        f"no entry file found under {root} (tried: {', '.join(ENTRY_CANDIDATES)})"
    )
