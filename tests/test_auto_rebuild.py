from __future__ import annotations

import asyncio

from src.preview_build.auto_rebuild import AutoRebuilder, is_relevant_file
from src.preview_build.watch_registry import ChangeEvent


def _event(rel: str, session_id: str = "s1") -> ChangeEvent:
    return ChangeEvent(
        session_id=session_id,
        event_type="modified",
        relative_path=rel,
        absolute_path="/w/" + rel,
        timestamp_ms=0,
    )


def test_is_relevant_file() -> None:
    assert is_relevant_file("src/App.tsx") is True
    assert is_relevant_file("util.js") is True
    assert is_relevant_file("README.md") is False
    assert is_relevant_file("node_modules/react/index.js") is False
    assert is_relevant_file("src/__tests__/App.test.tsx") is False


def test_rapid_changes_coalesce_into_one_rebuild() -> None:
    calls: list[str] = []

    async def rebuild(session_id: str) -> None:
        calls.append(session_id)

    async def run() -> None:
        rebuilder = AutoRebuilder(rebuild, loop=asyncio.get_running_loop(), debounce_ms=30)
        for _ in range(5):
            rebuilder.on_file_change(_event("src/App.tsx"))
            await asyncio.sleep(0.005)
        rebuilder.on_file_change(_event("src/App.tsx", session_id="s2"))
        rebuilder.on_file_change(_event("notes.md", session_id="s3"))
        await asyncio.sleep(0.2)
        assert rebuilder.get_status()["pending"] == []

    asyncio.run(run())
    assert sorted(calls) == ["s1", "s2"]


def test_cancel_drops_pending_rebuild() -> None:
    calls: list[str] = []

    async def rebuild(session_id: str) -> None:
        calls.append(session_id)

    async def run() -> None:
        rebuilder = AutoRebuilder(rebuild, loop=asyncio.get_running_loop(), debounce_ms=50)
        rebuilder.on_file_change(_event("App.tsx"))
        await asyncio.sleep(0)
        status = rebuilder.get_status()
        assert [p["session_id"] for p in status["pending"]] == ["s1"]
        assert status["debounce_ms"] == 50
        rebuilder.cancel("s1")
        await asyncio.sleep(0.1)

    asyncio.run(run())
    assert calls == []


def test_failed_rebuild_is_logged_not_raised() -> None:
    async def rebuild(session_id: str) -> None:
        raise RuntimeError("compile error")

    async def run() -> dict:
        rebuilder = AutoRebuilder(rebuild, loop=asyncio.get_running_loop(), debounce_ms=0)
        rebuilder.on_file_change(_event("App.tsx"))
        await asyncio.sleep(0.05)
        return rebuilder.get_status()

    status = asyncio.run(run())
    assert status["running"] == []
