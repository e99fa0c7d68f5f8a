from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest

# Ensure the repo root is on sys.path so tests can import the local `src/` package.
ROOT = str(Path(__file__).resolve().parents[1])
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture(autouse=True)
def _isolate_preview_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Settings tests opt in to specific PREVIEW_* values; start from a clean slate.
    for name in (
        "PREVIEW_BUILD_TARGET",
        "PREVIEW_ESBUILD_BIN",
        "PREVIEW_TRANSFORM_TIMEOUT_S",
        "PREVIEW_WAIT_FOR_BUILD_TIMEOUT_S",
        "PREVIEW_WATCH_IGNORE_DOTFILES",
        "PREVIEW_AUTO_REBUILD",
        "PREVIEW_AUTO_REBUILD_DEBOUNCE_MS",
        "PREVIEW_LOCATOR_CONTEXT_LINES",
    ):
        monkeypatch.delenv(name, raising=False)


def write_file(root: Path, rel: str, content: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class FakeObserver:
    """Stands in for a watchdog observer; tests drive its handler directly."""

    def __init__(self) -> None:
        self.handler: Any = None
        self.path: str | None = None
        self.started = False
        self.stopped = False

    def schedule(self, handler: Any, path: str, recursive: bool = True) -> None:
        self.handler = handler
        self.path = path

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def is_alive(self) -> bool:
        return self.started and not self.stopped

    def join(self, timeout: float | None = None) -> None:
        return None


class FakeObserverFactory:
    def __init__(self) -> None:
        self.created: list[FakeObserver] = []

    def __call__(self) -> FakeObserver:
        obs = FakeObserver()
        self.created.append(obs)
        return obs
