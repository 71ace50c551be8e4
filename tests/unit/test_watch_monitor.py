from __future__ import annotations

import os
from pathlib import Path

import pytest

from excheck.errors import WatchSubsystemError
from excheck.watch.monitor import EventKind, FileWatchMonitor, WatchEvent, is_qualifying


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class _DeadObserver:
    def schedule(self, handler, path, recursive=False) -> None:
        pass

    def start(self) -> None:
        pass

    def is_alive(self) -> bool:
        return False

    def stop(self) -> None:
        pass

    def join(self, timeout=None) -> None:
        pass


class _BrokenObserver(_DeadObserver):
    def start(self) -> None:
        raise OSError(28, "inotify watch limit reached")


def _monitor(tmp_path: Path, clock: _Clock) -> FileWatchMonitor:
    return FileWatchMonitor(tmp_path, debounce_seconds=2.0, clock=clock)


def test_event_is_held_until_debounce_window_passes(tmp_path: Path) -> None:
    clock = _Clock()
    monitor = _monitor(tmp_path, clock)
    target = tmp_path / "a.rs"

    monitor.feed(EventKind.MODIFIED, target)
    assert monitor.next_event(0) is None

    clock.now += 2.0
    event = monitor.next_event(0)
    assert event is not None
    assert event.kind is EventKind.MODIFIED
    assert event.path == target
    assert monitor.next_event(0) is None


def test_burst_for_same_path_collapses_to_one_event(tmp_path: Path) -> None:
    clock = _Clock()
    monitor = _monitor(tmp_path, clock)
    target = tmp_path / "a.rs"

    monitor.feed(EventKind.CREATED, target)
    clock.now += 1.5
    monitor.feed(EventKind.MODIFIED, target)
    clock.now += 1.5
    assert monitor.next_event(0) is None

    monitor.feed(EventKind.OTHER, target)
    clock.now += 2.0
    event = monitor.next_event(0)
    assert event is not None and event.kind is EventKind.CREATED
    assert monitor.next_event(0) is None


def test_distinct_paths_are_emitted_separately(tmp_path: Path) -> None:
    clock = _Clock()
    monitor = _monitor(tmp_path, clock)
    monitor.feed(EventKind.MODIFIED, tmp_path / "a.rs")
    monitor.feed(EventKind.MODIFIED, tmp_path / "b.rs")
    clock.now += 3.0
    paths = {monitor.next_event(0).path, monitor.next_event(0).path}
    assert paths == {tmp_path / "a.rs", tmp_path / "b.rs"}


def test_next_event_timeout_is_bounded(tmp_path: Path) -> None:
    monitor = FileWatchMonitor(tmp_path, debounce_seconds=2.0)
    assert monitor.next_event(0.05) is None


def test_classify_modification_detects_permission_only_change(tmp_path: Path) -> None:
    target = tmp_path / "a.rs"
    target.write_text("fn main() {}\n", encoding="utf-8")
    monitor = _monitor(tmp_path, _Clock())

    assert monitor.classify_modification(target) is EventKind.MODIFIED
    os.chmod(target, 0o644)
    assert monitor.classify_modification(target) is EventKind.PERMISSION_CHANGED


def test_is_qualifying_checks_extension_and_existence(tmp_path: Path) -> None:
    present = tmp_path / "a.rs"
    present.write_text("", encoding="utf-8")
    swap = tmp_path / ".a.rs.swp"
    swap.write_text("", encoding="utf-8")

    assert is_qualifying(WatchEvent(EventKind.MODIFIED, present, 0.0), ".rs") is True
    assert is_qualifying(WatchEvent(EventKind.MODIFIED, swap, 0.0), ".rs") is False
    assert is_qualifying(WatchEvent(EventKind.CREATED, tmp_path / "gone.rs", 0.0), ".rs") is False


def test_start_failure_is_a_watch_subsystem_error(tmp_path: Path) -> None:
    monitor = FileWatchMonitor(tmp_path, observer_factory=_BrokenObserver)
    with pytest.raises(WatchSubsystemError):
        monitor.start()


def test_missing_root_is_a_watch_subsystem_error(tmp_path: Path) -> None:
    with pytest.raises(WatchSubsystemError):
        FileWatchMonitor(tmp_path / "missing").start()


def test_dead_observer_is_reported(tmp_path: Path) -> None:
    monitor = FileWatchMonitor(tmp_path, observer_factory=_DeadObserver).start()
    with pytest.raises(WatchSubsystemError):
        monitor.next_event(0)


def test_real_observer_reports_debounced_write(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "a.rs"
    target.parent.mkdir()
    with FileWatchMonitor(tmp_path, debounce_seconds=0.2) as monitor:
        target.write_text("fn main() {}\n", encoding="utf-8")
        seen: list[WatchEvent] = []
        for _ in range(50):
            event = monitor.next_event(0.2)
            if event is not None and event.path == target and event.kind is not EventKind.OTHER:
                seen.append(event)
                break
    assert seen
    assert seen[0].kind in {EventKind.CREATED, EventKind.MODIFIED}
