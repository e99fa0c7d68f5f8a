from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

BuildTarget = Literal["sandbox", "host"]

DEFAULT_BUILD_TARGET: BuildTarget = "sandbox"


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except Exception:
        return int(default)


def _env_str(name: str, default: str) -> str:
    return (os.environ.get(name) or default).strip() or default


def parse_build_target(raw: str | None) -> BuildTarget:
    v = str(raw or "").strip().lower()
    if v == "host":
        return "host"
    return DEFAULT_BUILD_TARGET


@dataclass(frozen=True)
class PreviewBuildSettings:
    build_target: BuildTarget = DEFAULT_BUILD_TARGET
    esbuild_bin: str = "esbuild"
    transform_timeout_s: int = 30
    # None means wait_for_build blocks until the running build finishes.
    wait_for_build_timeout_s: float | None = 120.0
    watch_ignore_dotfiles: bool = True
    auto_rebuild: bool = False
    auto_rebuild_debounce_ms: int = 1000
    locator_context_lines: int = 2

    @classmethod
    def from_env(cls) -> PreviewBuildSettings:
        wait_s = max(0, _env_int("PREVIEW_WAIT_FOR_BUILD_TIMEOUT_S", 120))
        return cls(
            build_target=parse_build_target(os.environ.get("PREVIEW_BUILD_TARGET")),
            esbuild_bin=_env_str("PREVIEW_ESBUILD_BIN", "esbuild"),
            transform_timeout_s=max(1, _env_int("PREVIEW_TRANSFORM_TIMEOUT_S", 30)),
            wait_for_build_timeout_s=float(wait_s) if wait_s else None,
            watch_ignore_dotfiles=_env_bool("PREVIEW_WATCH_IGNORE_DOTFILES", True),
            auto_rebuild=_env_bool("PREVIEW_AUTO_REBUILD", False),
            auto_rebuild_debounce_ms=max(0, _env_int("PREVIEW_AUTO_REBUILD_DEBOUNCE_MS", 1000)),
            locator_context_lines=max(0, _env_int("PREVIEW_LOCATOR_CONTEXT_LINES", 2)),
        )
