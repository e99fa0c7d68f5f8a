"""Owner of the per-session preview pipeline.

Wires the watch registry, bundle cache, bundler and content locator together:
change events invalidate the session's cached bundle inside the event handler,
and `get_bundle` enforces the single-flight rule the cache only exposes.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv

from src.preview_build.auto_rebuild import AutoRebuilder
from src.preview_build.bundle_cache import BundleCache, BundleCacheEntry
from src.preview_build.bundler import Bundler
from src.preview_build.config import PreviewBuildSettings
from src.preview_build.content_locator import ContentLocator, FileMatches
from src.preview_build.entry_points import discover_entry
from src.preview_build.errors import BuildFailedError, UnknownSessionError
from src.preview_build.mocks import default_registry
from src.preview_build.models import BuildRequest, ContentQuery
from src.preview_build.paths import is_within_root, resolve_root
from src.preview_build.transform import EsbuildTransformer
from src.preview_build.watch_registry import ChangeEvent, WatchRegistry, WatchSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewSession:
    session_id: str
    root_path: str
    entry_path: str | None = None


class PreviewService:
    def __init__(
        self,
        *,
        settings: PreviewBuildSettings | None = None,
        watches: WatchRegistry | None = None,
        cache: BundleCache | None = None,
        bundler: Bundler | None = None,
        locator: ContentLocator | None = None,
    ) -> None:
        self._settings = settings or PreviewBuildSettings()
        self._watches = watches or WatchRegistry(
            ignore_dotfiles=self._settings.watch_ignore_dotfiles
        )
        self._cache = cache or BundleCache()
        self._bundler = bundler or Bundler(
            mocks=default_registry(),
            transformer=EsbuildTransformer(
                esbuild_bin=self._settings.esbuild_bin,
                timeout_s=self._settings.transform_timeout_s,
            ),
            target=self._settings.build_target,
        )
        self._locator = locator or ContentLocator(
            context_lines=self._settings.locator_context_lines
        )
        self._lock = threading.Lock()
        self._sessions: dict[str, PreviewSession] = {}
        # Bumped on change events and session open/close; a build that saw a different value is stale.
        self._change_seq: dict[str, int] = {}
        self._auto_rebuilder: AutoRebuilder | None = None
        self._unsubscribe = [self._watches.on_file_change(self._on_file_change)]

    @classmethod
    def from_env(cls, **kwargs: Any) -> PreviewService:
        load_dotenv()
        return cls(settings=PreviewBuildSettings.from_env(), **kwargs)

    @property
    def cache(self) -> BundleCache:
        return self._cache

    @property
    def watches(self) -> WatchRegistry:
        return self._watches

    def _session(self, session_id: str) -> PreviewSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise UnknownSessionError(session_id)
        return session

    def open_session(
        self, session_id: str, root_path: str, *, entry_path: str | None = None
    ) -> WatchSession:
        root = resolve_root(root_path)
        entry = None
        if entry_path:
            entry = os.path.normpath(os.path.join(str(root), entry_path))
            if not is_within_root(entry, root):
                raise ValueError(f"entry path escapes the session root: {entry_path}")

        watch = self._watches.start_watching(session_id, str(root))
        with self._lock:
            self._sessions[watch.session_id] = PreviewSession(
                session_id=watch.session_id, root_path=watch.root_path, entry_path=entry
            )
            # Builds still running against the previous root come back stale.
            self._bump_change_seq(watch.session_id)
        self._cache.clear(watch.session_id)
        self._maybe_enable_auto_rebuild()
        return watch

    def close_session(self, session_id: str) -> None:
        self._watches.stop_watching(session_id)
        if self._auto_rebuilder is not None:
            self._auto_rebuilder.cancel(session_id)
        with self._lock:
            self._sessions.pop(session_id, None)
            self._bump_change_seq(session_id)
        self._cache.clear(session_id)

    def _bump_change_seq(self, session_id: str) -> None:
        # Caller holds self._lock.
        self._change_seq[session_id] = self._change_seq.get(session_id, 0) + 1

    def _current_seq(self, session_id: str) -> int:
        with self._lock:
            return self._change_seq.get(session_id, 0)

    def _on_file_change(self, event: ChangeEvent) -> None:
        with self._lock:
            if event.session_id not in self._sessions:
                return
            self._bump_change_seq(event.session_id)
        self._cache.clear(event.session_id)

    def _maybe_enable_auto_rebuild(self) -> None:
        if not self._settings.auto_rebuild or self._auto_rebuilder is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Auto-rebuild enabled but no running event loop; call enable_auto_rebuild()")
            return
        self.enable_auto_rebuild(loop)

    def enable_auto_rebuild(self, loop: asyncio.AbstractEventLoop | None = None) -> AutoRebuilder:
        if self._auto_rebuilder is None:
            self._auto_rebuilder = AutoRebuilder(
                self.rebuild,
                loop=loop or asyncio.get_running_loop(),
                debounce_ms=self._settings.auto_rebuild_debounce_ms,
            )
            self._unsubscribe.append(
                self._watches.on_file_change(self._auto_rebuilder.on_file_change)
            )
            logger.info("Auto-rebuild enabled")
        return self._auto_rebuilder

    def _is_stale(self, entry: BundleCacheEntry) -> bool:
        current = self._current_seq(entry.session_id)
        return entry.meta.get("change_seq", current) != current

    async def get_bundle(self, session_id: str) -> BundleCacheEntry:
        """Return the cached bundle, joining a running build or starting one.

        Only one build per session runs at a time; concurrent callers wait on
        the running build and receive the same entry.
        """
        self._session(session_id)

        entry = self._cache.get_entry(session_id)
        if entry is not None and not self._is_stale(entry):
            return entry

        if self._cache.is_build_in_progress(session_id):
            seq = self._current_seq(session_id)
            try:
                await self._cache.wait_for_build(
                    session_id, timeout_s=self._settings.wait_for_build_timeout_s
                )
            except BuildFailedError:
                if self._current_seq(session_id) == seq:
                    raise
            entry = self._cache.get_entry(session_id)
            if entry is not None:
                return entry
            if self._current_seq(session_id) == seq:
                raise BuildFailedError(session_id)
            # The finished bundle was invalidated before this waiter woke up.
            logger.info("Bundle for session %s changed while waiting; building again", session_id)
            return await self.get_bundle(session_id)

        return await self._build(session_id)

    async def rebuild(self, session_id: str) -> BundleCacheEntry:
        self._session(session_id)
        if self._cache.is_build_in_progress(session_id):
            # A failed build ahead of this one is not a reason to skip compiling.
            with contextlib.suppress(BuildFailedError):
                await self._cache.wait_for_build(
                    session_id, timeout_s=self._settings.wait_for_build_timeout_s
                )
        self._cache.clear(session_id)
        return await self.get_bundle(session_id)

    async def _build(self, session_id: str) -> BundleCacheEntry:
        session = self._session(session_id)
        with self._cache.build_ticket(session_id):
            seq = self._current_seq(session_id)
            entry_path = session.entry_path or discover_entry(session.root_path)
            request = BuildRequest(root_path=session.root_path, entry_path=entry_path)
            logger.info("Build started for session %s", session_id)
            try:
                result = await asyncio.to_thread(
                    self._bundler.build,
                    root_path=request.root_path,
                    entry_path=request.entry_path,
                )
            except Exception as exc:
                logger.warning("Build failed for session %s: %s", session_id, exc)
                raise
            meta = dict(result.meta)
            meta["change_seq"] = seq
            entry = self._cache.set(
                session_id, result.code, build_time_ms=result.build_time_ms, meta=meta
            )
            if self._is_stale(entry):
                logger.info("Session %s changed during build; next request rebuilds", session_id)
            return entry

    def locate(self, session_id: str, query: ContentQuery | dict[str, Any]) -> list[FileMatches]:
        session = self._session(session_id)
        q = query if isinstance(query, ContentQuery) else ContentQuery.model_validate(query)
        return self._locator.locate(session.root_path, q)

    def status(self) -> dict[str, Any]:
        self._watches.reap_dead_watches()
        with self._lock:
            sessions = sorted(self._sessions)
        return {
            "sessions": sessions,
            "watchers": self._watches.get_stats(),
            "cache": self._cache.get_overall_stats(),
            "locator": self._locator.get_stats(),
            "auto_rebuild": (
                self._auto_rebuilder.get_status() if self._auto_rebuilder is not None else None
            ),
        }

    def shutdown(self) -> None:
        if self._auto_rebuilder is not None:
            self._auto_rebuilder.cancel_all()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()
        self._watches.cleanup()
        self._cache.clear_all()
        with self._lock:
            self._sessions.clear()
            self._change_seq.clear()
