"""Recursive file watching with per-path debouncing.

The watchdog observer thread only records raw events; the watch loop pulls
debounced ``WatchEvent`` objects with ``next_event(timeout)``, which blocks
for at most ``timeout`` seconds so the caller can keep polling its quit flag.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..errors import WatchSubsystemError
from ..utils import get_logger

logger = get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 2.0


class EventKind(Enum):
    CREATED = "created"
    MODIFIED = "modified"
    PERMISSION_CHANGED = "permission_changed"
    OTHER = "other"


# When a burst mixes kinds, the strongest one survives the debounce window.
_PRIORITY = {
    EventKind.OTHER: 0,
    EventKind.PERMISSION_CHANGED: 1,
    EventKind.MODIFIED: 2,
    EventKind.CREATED: 3,
}


@dataclass(frozen=True)
class WatchEvent:
    kind: EventKind
    path: Path
    time: float


def _decode_path(raw: Any) -> str:
    if isinstance(raw, bytes):
        return os.fsdecode(raw)
    return str(raw or "")


def is_qualifying(event: WatchEvent, extension: str) -> bool:
    """Extension filter plus an existence check done at handling time.

    Editors create and delete temp files constantly; an event whose file is
    gone by the time it is handled is dropped, not treated as an error.
    """
    return event.path.suffix == extension and event.path.is_file()


class _ExerciseEventHandler(FileSystemEventHandler):
    def __init__(self, monitor: "FileWatchMonitor") -> None:
        super().__init__()
        self._monitor = monitor

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        event_type = str(event.event_type)
        if event_type == "created":
            self._monitor.feed(EventKind.CREATED, Path(_decode_path(event.src_path)))
        elif event_type == "modified":
            path = Path(_decode_path(event.src_path))
            self._monitor.feed(self._monitor.classify_modification(path), path)
        elif event_type == "moved":
            # Atomic-save editors write a temp file and rename it over the target.
            dest = _decode_path(getattr(event, "dest_path", ""))
            if dest:
                self._monitor.feed(EventKind.CREATED, Path(dest))
        else:
            self._monitor.feed(EventKind.OTHER, Path(_decode_path(event.src_path)))


class FileWatchMonitor:
    """Owns one recursive observer for the session and debounces its events."""

    def __init__(
        self,
        root: Path,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        observer_factory: Callable[[], Any] = Observer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.root = Path(root)
        self.debounce_seconds = float(debounce_seconds)
        self._observer_factory = observer_factory
        self._clock = clock
        self._observer: Any = None
        self._cond = threading.Condition()
        # path -> (kind, last raw event time); insertion order is arrival order
        self._pending: dict[Path, tuple[EventKind, float]] = {}
        self._mtimes: dict[Path, float] = {}

    def start(self) -> "FileWatchMonitor":
        if self._observer is not None:
            return self
        if not self.root.is_dir():
            raise WatchSubsystemError(f"watch root does not exist: {self.root}")
        try:
            observer = self._observer_factory()
            observer.schedule(_ExerciseEventHandler(self), str(self.root), recursive=True)
            observer.start()
        except OSError as exc:
            raise WatchSubsystemError(f"could not watch {self.root}: {exc}") from exc
        self._observer = observer
        logger.debug("watching %s (debounce=%ss)", self.root, self.debounce_seconds)
        return self

    def stop(self) -> None:
        observer = self._observer
        self._observer = None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5.0)

    def __enter__(self) -> "FileWatchMonitor":
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def classify_modification(self, path: Path) -> EventKind:
        """Tell content writes from chmod-only changes by comparing mtimes."""
        try:
            mtime = path.stat().st_mtime
        except OSError:
            return EventKind.MODIFIED
        with self._cond:
            previous = self._mtimes.get(path)
            self._mtimes[path] = mtime
        if previous is not None and previous == mtime:
            return EventKind.PERMISSION_CHANGED
        return EventKind.MODIFIED

    def feed(self, kind: EventKind, path: Path) -> None:
        """Record one raw event; bursts for the same path collapse into one."""
        now = self._clock()
        with self._cond:
            previous = self._pending.pop(path, None)
            if previous is not None and _PRIORITY[previous[0]] > _PRIORITY[kind]:
                kind = previous[0]
            self._pending[path] = (kind, now)
            self._cond.notify_all()

    def _pop_ready(self, now: float) -> WatchEvent | None:
        for path, (kind, seen) in self._pending.items():
            if now - seen >= self.debounce_seconds:
                del self._pending[path]
                return WatchEvent(kind=kind, path=path, time=seen)
        return None

    def _next_deadline(self) -> float | None:
        if not self._pending:
            return None
        return min(seen for _, seen in self._pending.values()) + self.debounce_seconds

    def next_event(self, timeout: float) -> WatchEvent | None:
        """Block until a debounced event is ready or ``timeout`` elapses."""
        observer = self._observer
        if observer is not None and not observer.is_alive():
            raise WatchSubsystemError("file watcher thread stopped unexpectedly")
        deadline = self._clock() + max(0.0, float(timeout))
        with self._cond:
            while True:
                now = self._clock()
                ready = self._pop_ready(now)
                if ready is not None:
                    logger.debug("debounced %s %s", ready.kind.value, ready.path)
                    return ready
                if now >= deadline:
                    return None
                wake_at = deadline
                pending_at = self._next_deadline()
                if pending_at is not None:
                    wake_at = min(wake_at, pending_at)
                self._cond.wait(max(0.0, wake_at - now))
