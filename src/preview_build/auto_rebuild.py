from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from src.preview_build.watch_registry import ChangeEvent

logger = logging.getLogger(__name__)

RELEVANT_EXTENSIONS: tuple[str, ...] = (".ts", ".tsx", ".js", ".jsx")
IRRELEVANT_PATH_PARTS: tuple[str, ...] = ("node_modules/", "__tests__/", ".git/")


def is_relevant_file(relative_path: str) -> bool:
    p = (relative_path or "").replace("\\", "/")
    if not p.endswith(RELEVANT_EXTENSIONS):
        return False
    probe = "/" + p
    return not any("/" + part in probe for part in IRRELEVANT_PATH_PARTS)


@dataclass
class _PendingRebuild:
    handle: asyncio.TimerHandle
    file_path: str
    scheduled_at_ms: int


class AutoRebuilder:
    """Debounced per-session rebuilds driven by file change events.

    `on_file_change` is safe to call from watch-backend threads; scheduling
    happens on the bound event loop.
    """

    def __init__(
        self,
        rebuild: Callable[[str], Awaitable[Any]],
        *,
        loop: asyncio.AbstractEventLoop,
        debounce_ms: int = 1000,
    ) -> None:
        self._rebuild = rebuild
        self._loop = loop
        self._debounce_s = max(0, int(debounce_ms)) / 1000.0
        self._pending: dict[str, _PendingRebuild] = {}
        self._running: dict[str, asyncio.Task[None]] = {}

    def on_file_change(self, event: ChangeEvent) -> None:
        if not is_relevant_file(event.relative_path):
            logger.debug("Skipping rebuild for non-relevant file: %s", event.relative_path)
            return
        try:
            self._loop.call_soon_threadsafe(self._schedule, event.session_id, event.relative_path)
        except RuntimeError:
            # Loop already closed during shutdown.
            logger.debug("Auto-rebuild loop closed; dropping change for %s", event.session_id)

    def _schedule(self, session_id: str, file_path: str) -> None:
        prev = self._pending.pop(session_id, None)
        if prev is not None:
            prev.handle.cancel()
        handle = self._loop.call_later(self._debounce_s, self._fire, session_id)
        self._pending[session_id] = _PendingRebuild(
            handle=handle, file_path=file_path, scheduled_at_ms=int(time.time() * 1000)
        )
        logger.debug(
            "Scheduled rebuild for session %s in %.0fms (%s)",
            session_id,
            self._debounce_s * 1000,
            file_path,
        )

    def _fire(self, session_id: str) -> None:
        pending = self._pending.pop(session_id, None)
        if session_id in self._running:
            # The running rebuild is single-flight; a follow-up change re-arms the timer.
            self._schedule(session_id, pending.file_path if pending else "")
            return
        self._running[session_id] = self._loop.create_task(self._run(session_id))

    async def _run(self, session_id: str) -> None:
        started = time.monotonic()
        try:
            await self._rebuild(session_id)
            logger.info(
                "Auto-rebuild for session %s finished in %dms",
                session_id,
                int((time.monotonic() - started) * 1000),
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Auto-rebuild for session %s failed: %s", session_id, exc)
        finally:
            self._running.pop(session_id, None)

    def cancel(self, session_id: str) -> None:
        pending = self._pending.pop(session_id, None)
        if pending is not None:
            pending.handle.cancel()

    def cancel_all(self) -> None:
        for sid in list(self._pending):
            self.cancel(sid)
        for task in list(self._running.values()):
            task.cancel()

    def get_status(self) -> dict[str, Any]:
        return {
            "debounce_ms": int(self._debounce_s * 1000),
            "pending": [
                {"session_id": sid, "file_path": p.file_path, "scheduled_at_ms": p.scheduled_at_ms}
                for sid, p in sorted(self._pending.items())
            ],
            "running": sorted(self._running),
        }
