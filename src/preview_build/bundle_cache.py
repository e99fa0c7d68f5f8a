"""In-memory compiled-bundle cache with build-in-progress tracking.

The cache exposes the single-flight discipline but does not enforce it: a
caller must check `is_build_in_progress` before starting a build and call
`wait_for_build` instead when one is already running (see
`PreviewService.get_bundle`). `build_ticket` is the only supported way to mark
a build; it releases the ticket even when the build raises.

Entries are written from the event loop and cleared from watch-backend
threads, so dictionary access is guarded by a lock. Completion signals are
asyncio events and must be created and awaited on the loop that runs builds.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from src.preview_build.errors import BuildFailedError, BuildTimeoutError

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class BundleCacheEntry:
    session_id: str
    code: str
    build_time_ms: int
    size_bytes: int
    built_at_ms: int
    meta: dict[str, Any] = field(default_factory=dict)


class BundleCache:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: dict[str, BundleCacheEntry] = {}
        self._in_progress: dict[str, asyncio.Event] = {}

    def set(
        self,
        session_id: str,
        code: str,
        *,
        build_time_ms: int = 0,
        meta: dict[str, Any] | None = None,
    ) -> BundleCacheEntry:
        entry = BundleCacheEntry(
            session_id=session_id,
            code=code,
            build_time_ms=int(build_time_ms),
            size_bytes=len(code.encode("utf-8")),
            built_at_ms=_now_ms(),
            meta=dict(meta or {}),
        )
        with self._lock:
            self._entries[session_id] = entry
        return entry

    def get(self, session_id: str) -> str | None:
        with self._lock:
            entry = self._entries.get(session_id)
        return entry.code if entry is not None else None

    def get_entry(self, session_id: str) -> BundleCacheEntry | None:
        with self._lock:
            return self._entries.get(session_id)

    def has(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._entries

    def clear(self, session_id: str) -> None:
        with self._lock:
            removed = self._entries.pop(session_id, None)
        if removed is not None:
            logger.info("Cleared cached bundle for session %s", session_id)

    def clear_all(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cleared all cached bundles (%d)", count)

    def get_stats(self, session_id: str) -> dict[str, Any] | None:
        entry = self.get_entry(session_id)
        if entry is None:
            return None
        return {
            "size_bytes": entry.size_bytes,
            "build_time_ms": entry.build_time_ms,
            "built_at_ms": entry.built_at_ms,
            "age_ms": max(0, _now_ms() - entry.built_at_ms),
        }

    def get_overall_stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "total_sessions": len(self._entries),
                "builds_in_progress": len(self._in_progress),
                "cache_size_bytes": sum(e.size_bytes for e in self._entries.values()),
            }

    def mark_build_in_progress(self, session_id: str) -> None:
        with self._lock:
            if session_id in self._in_progress:
                # Caller skipped is_build_in_progress; keep the existing waiters' event.
                logger.warning("Build for session %s was already marked in progress", session_id)
                return
            self._in_progress[session_id] = asyncio.Event()

    def mark_build_complete(self, session_id: str) -> None:
        with self._lock:
            done = self._in_progress.pop(session_id, None)
        if done is not None:
            done.set()

    def is_build_in_progress(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._in_progress

    @contextmanager
    def build_ticket(self, session_id: str) -> Iterator[None]:
        self.mark_build_in_progress(session_id)
        try:
            yield
        finally:
            self.mark_build_complete(session_id)

    async def wait_for_build(self, session_id: str, *, timeout_s: float | None = None) -> str:
        """Wait for the running build of a session and return its bundle code.

        Raises BuildFailedError when the build finished without storing a
        result, and BuildTimeoutError when `timeout_s` elapses first.
        """
        with self._lock:
            done = self._in_progress.get(session_id)
        if done is not None:
            try:
                if timeout_s is None:
                    await done.wait()
                else:
                    await asyncio.wait_for(done.wait(), timeout=timeout_s)
            except asyncio.TimeoutError as exc:
                raise BuildTimeoutError(session_id, float(timeout_s or 0)) from exc

        code = self.get(session_id)
        if code is None:
            raise BuildFailedError(session_id)
        return code
