"""Per-session filesystem watches with a process-wide change-callback bus.

Each session owns one watchdog observer. Restarting a session id stops the
previous observer before the new one is registered, so a session never has
two live watches. Callbacks run on the observer's thread in the order the
backend reports events; a failing callback is logged and skipped.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

from src.preview_build.paths import has_dot_segment, relative_to_root, resolve_root

logger = logging.getLogger(__name__)

ChangeType = Literal["created", "modified", "deleted"]

DEFAULT_SESSION_ID = "default"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ChangeEvent:
    session_id: str
    event_type: ChangeType
    relative_path: str
    absolute_path: str
    timestamp_ms: int


@dataclass(frozen=True)
class WatchSession:
    session_id: str
    root_path: str
    created_at_ms: int


ChangeCallback = Callable[[ChangeEvent], Any]


class _SessionEventHandler(FileSystemEventHandler):
    def __init__(
        self,
        registry: WatchRegistry,
        session: WatchSession,
        *,
        ignore_dotfiles: bool,
    ) -> None:
        super().__init__()
        self._registry = registry
        self._session = session
        self._root = Path(session.root_path)
        self._ignore_dotfiles = ignore_dotfiles

    @property
    def session_id(self) -> str:
        return self._session.session_id

    def _emit(self, event_type: ChangeType, path: str | bytes) -> None:
        abs_path = os.fsdecode(path)
        rel = relative_to_root(abs_path, self._root)
        if rel is None:
            logger.warning(
                "Dropping %s event outside root of session %s: %s",
                event_type,
                self._session.session_id,
                abs_path,
            )
            return
        if self._ignore_dotfiles and has_dot_segment(rel):
            return
        self._registry._dispatch(
            ChangeEvent(
                session_id=self._session.session_id,
                event_type=event_type,
                relative_path=rel,
                absolute_path=str(self._root / rel),
                timestamp_ms=_now_ms(),
            ),
            source=self,
        )

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit("created", event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit("modified", event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit("deleted", event.src_path)
            return
        if os.path.normpath(os.fsdecode(event.src_path)) == str(self._root):
            self._registry._backend_failed(
                self,
                FileNotFoundError(f"watch root was removed: {self._root}"),
            )

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        if event.is_directory:
            return
        self._emit("deleted", event.src_path)
        self._emit("created", event.dest_path)


@dataclass
class _ActiveWatch:
    session: WatchSession
    observer: Any
    handler: _SessionEventHandler


class WatchRegistry:
    """Owns every session watch and the change-callback bus.

    `observer_factory` builds the watch backend; it defaults to watchdog's
    platform observer and can be swapped for `PollingObserver` or a test double.
    """

    def __init__(
        self,
        *,
        observer_factory: Callable[[], Any] | None = None,
        ignore_dotfiles: bool = True,
    ) -> None:
        self._observer_factory = observer_factory or Observer
        self._ignore_dotfiles = ignore_dotfiles
        self._lock = threading.RLock()
        self._watches: dict[str, _ActiveWatch] = {}
        self._callbacks: list[ChangeCallback] = []

    def start_watching(
        self,
        session_id: str,
        root_path: str | os.PathLike[str],
        *,
        ignore_dotfiles: bool | None = None,
        recursive: bool = True,
    ) -> WatchSession:
        sid = str(session_id or "").strip()
        if not sid:
            raise ValueError("empty session id")
        root = resolve_root(root_path)
        if not root.is_dir():
            raise NotADirectoryError(f"watch root is not a directory: {root}")

        session = WatchSession(session_id=sid, root_path=str(root), created_at_ms=_now_ms())
        handler = _SessionEventHandler(
            self,
            session,
            ignore_dotfiles=self._ignore_dotfiles if ignore_dotfiles is None else ignore_dotfiles,
        )

        with self._lock:
            previous = self._watches.pop(sid, None)
            logger.info("Starting watcher for session %s at %s", sid, root)
            observer = self._observer_factory()
            try:
                observer.schedule(handler, str(root), recursive=recursive)
                observer.start()
            except Exception:
                logger.error("Failed to start watcher for session %s", sid, exc_info=True)
                self._close_observer(observer)
                raise
            self._watches[sid] = _ActiveWatch(session=session, observer=observer, handler=handler)
        if previous is not None:
            logger.info("Replaced previous watcher for session %s", sid)
            self._close_observer(previous.observer)
        return session

    def stop_watching(self, session_id: str) -> bool:
        with self._lock:
            active = self._watches.pop(session_id, None)
        if active is None:
            return False
        logger.info("Stopping watcher for session %s", session_id)
        self._close_observer(active.observer)
        return True

    def handle_backend_error(self, session_id: str, exc: BaseException) -> None:
        """End a session's watch after a backend failure; the owner must restart it."""
        logger.error("Watcher for session %s failed: %s", session_id, exc, exc_info=exc)
        self.stop_watching(session_id)

    def _is_current(self, handler: _SessionEventHandler) -> bool:
        with self._lock:
            active = self._watches.get(handler.session_id)
        return active is not None and active.handler is handler

    def _backend_failed(self, handler: _SessionEventHandler, exc: BaseException) -> None:
        if self._is_current(handler):
            self.handle_backend_error(handler.session_id, exc)

    def reap_dead_watches(self) -> list[str]:
        """Drop watches whose backend thread has died and return their session ids."""
        with self._lock:
            dead = [sid for sid, w in self._watches.items() if not w.observer.is_alive()]
        for sid in dead:
            self.handle_backend_error(sid, RuntimeError("watch backend stopped unexpectedly"))
        return dead

    def _close_observer(self, observer: Any) -> None:
        try:
            observer.stop()
            if observer.is_alive() and observer is not threading.current_thread():
                observer.join(timeout=2.0)
        except Exception:
            logger.warning("Error while stopping watcher", exc_info=True)

    def start_default_watch(self, root_path: str | os.PathLike[str]) -> WatchSession:
        return self.start_watching(DEFAULT_SESSION_ID, root_path)

    def stop_default_watch(self) -> bool:
        return self.stop_watching(DEFAULT_SESSION_ID)

    def on_file_change(self, callback: ChangeCallback) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(callback)

        def _unregister() -> None:
            with self._lock:
                try:
                    self._callbacks.remove(callback)
                except ValueError:
                    pass

        return _unregister

    def _dispatch(self, event: ChangeEvent, *, source: _SessionEventHandler) -> None:
        # Events still draining from a replaced or stopped observer are dropped.
        if not self._is_current(source):
            return
        logger.debug(
            "%s in %s: %s", event.event_type, event.session_id, event.relative_path
        )
        with self._lock:
            snapshot = list(self._callbacks)
        for callback in snapshot:
            try:
                callback(event)
            except Exception:
                logger.error(
                    "File change callback failed for session %s", event.session_id, exc_info=True
                )

    def is_watching(self, session_id: str) -> bool:
        with self._lock:
            active = self._watches.get(session_id)
        return active is not None and bool(active.observer.is_alive())

    def get_watcher(self, session_id: str) -> WatchSession | None:
        with self._lock:
            active = self._watches.get(session_id)
        return active.session if active is not None else None

    def get_active_watchers(self) -> list[dict[str, Any]]:
        now = _now_ms()
        with self._lock:
            watches = list(self._watches.values())
        return [
            {
                "session_id": w.session.session_id,
                "root_path": w.session.root_path,
                "started_at_ms": w.session.created_at_ms,
                "uptime_ms": max(0, now - w.session.created_at_ms),
                "alive": bool(w.observer.is_alive()),
            }
            for w in watches
        ]

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            active = len(self._watches)
            listeners = len(self._callbacks)
            has_default = DEFAULT_SESSION_ID in self._watches
        return {
            "active_watchers": active,
            "event_callbacks": listeners,
            "has_default_watch": has_default,
            "watchers": self.get_active_watchers(),
        }

    def cleanup(self) -> None:
        with self._lock:
            session_ids = list(self._watches)
        logger.info("Cleaning up %d watcher(s)", len(session_ids))
        for sid in session_ids:
            self.stop_watching(sid)
        with self._lock:
            self._callbacks.clear()
