"""Shared session state between the watch loop and the interactive shell.

Lock discipline: every field lives behind ``_lock``; the lock is only held
for field reads/writes and never across I/O or a child process. The watch
loop is the only writer of the failure/hint/done fields, the shell is the
only writer of the quit flag.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .models import Exercise


@dataclass
class ProgressState:
    total: int = 0
    _failed: Exercise | None = field(default=None, repr=False)
    _hint: str | None = field(default=None, repr=False)
    _done: int = field(default=0, repr=False)
    _quit: bool = field(default=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_failure(self, exercise: Exercise) -> None:
        with self._lock:
            self._failed = exercise
            self._hint = exercise.hint

    def clear_failure(self) -> None:
        with self._lock:
            self._failed = None
            self._hint = None

    def current_failure(self) -> Exercise | None:
        with self._lock:
            return self._failed

    def current_hint(self) -> str | None:
        with self._lock:
            return self._hint

    def set_done(self, count: int) -> None:
        with self._lock:
            self._done = max(0, int(count))

    def done(self) -> int:
        with self._lock:
            return self._done

    def request_quit(self) -> None:
        with self._lock:
            self._quit = True

    def should_quit(self) -> bool:
        with self._lock:
            return self._quit
