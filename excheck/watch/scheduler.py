"""Watch-mode control loop: scan, wait for edits, re-verify, repeat.

States::

    INITIALIZING -> SCANNING -> WAITING_FOR_CHANGE <-> REVERIFYING
                                   |                      |
                                   +--> UNFINISHED        +--> FINISHED

"Done" always comes from each exercise's own ``looks_done()`` predicate,
evaluated fresh on every pass, so edits made outside the loop are honoured.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Sequence

from ..models import Exercise, ExerciseFailure
from ..progress import ProgressState
from ..shell import WatchShell
from ..telemetry.events import DataGather, Record
from ..utils import get_logger, path_ends_with
from ..verify.callbacks import ConsoleProgress, VerifyProgressCallback
from ..verify.verifier import verify
from .monitor import EventKind, FileWatchMonitor, WatchEvent, is_qualifying

logger = get_logger(__name__)

PrintFn = Callable[[str], None]
VerifyFn = Callable[..., ExerciseFailure | None]

CLEAR_TERMINAL = "\x1bc"


class SchedulerState(Enum):
    INITIALIZING = "initializing"
    SCANNING = "scanning"
    WAITING_FOR_CHANGE = "waiting_for_change"
    REVERIFYING = "reverifying"
    FINISHED = "finished"
    UNFINISHED = "unfinished"


class WatchStatus(Enum):
    FINISHED = "finished"
    UNFINISHED = "unfinished"


def match_exercise(changed: Path, exercises: Sequence[Exercise]) -> Exercise | None:
    real = Path(os.path.realpath(str(changed)))
    for exercise in exercises:
        if path_ends_with(real, exercise.path) or path_ends_with(changed, exercise.path):
            return exercise
    return None


def reverification_subset(changed: Path, exercises: Sequence[Exercise]) -> list[Exercise]:
    """The edited exercise first (if any), then every other not-done one in order."""
    matched = match_exercise(changed, exercises)
    subset: list[Exercise] = [matched] if matched is not None else []
    subset.extend(
        exercise
        for exercise in exercises
        if exercise is not matched and not exercise.looks_done()
    )
    return subset


class ReverificationScheduler:
    def __init__(
        self,
        exercises: Sequence[Exercise],
        config: dict[str, Any],
        *,
        monitor: FileWatchMonitor,
        state: ProgressState | None = None,
        shell: WatchShell | None = None,
        telemetry: DataGather | None = None,
        verbose: bool = False,
        print_fn: PrintFn = print,
        callback: VerifyProgressCallback | None = None,
        verify_fn: VerifyFn = verify,
    ) -> None:
        self.exercises = tuple(exercises)
        self.config = config
        self.monitor = monitor
        self.state = state if state is not None else ProgressState(total=len(self.exercises))
        self.state.total = len(self.exercises)
        self.shell = shell
        self.telemetry = telemetry
        self.verbose = verbose
        self._print = print_fn
        self._callback = callback if callback is not None else ConsoleProgress(print_fn, verbose)
        self._verify = verify_fn
        self._record = Record()
        self._extension = str(config["catalog"]["source_extension"])
        self._poll_interval = float(config["runtime"]["poll_interval_seconds"])
        self.phase = SchedulerState.INITIALIZING

    def _clear_screen(self) -> None:
        self._print(CLEAR_TERMINAL)

    def _attempt(self, exercise: Exercise, done: int) -> ExerciseFailure | None:
        self._record.reset_path(exercise.path)
        failure = self._verify(
            exercise,
            (done, len(self.exercises)),
            self.config,
            verbose=self.verbose,
            callback=self._callback,
        )
        if failure is None:
            if self.telemetry is not None and self._record.read_right_code(exercise.source):
                self.telemetry.push(self._record)
            self._record.clear()
        else:
            self._record.set_error(failure.message)
        return failure

    def _run_fail_fast(self, subset: Sequence[Exercise], done: int, *, advance: bool) -> ExerciseFailure | None:
        for exercise in subset:
            failure = self._attempt(exercise, done)
            if failure is not None:
                self.state.record_failure(failure.exercise)
                return failure
            if advance:
                done += 1
                self.state.set_done(done)
        self.state.clear_failure()
        return None

    def initial_scan(self) -> bool:
        """Verify in catalog order, stopping at the first failure.

        Returns True when every exercise passed.
        """
        self.phase = SchedulerState.SCANNING
        self.state.set_done(0)
        failure = self._run_fail_fast(self.exercises, 0, advance=True)
        return failure is None

    def handle_event(self, event: WatchEvent) -> WatchStatus | None:
        """React to one debounced event; return a terminal status or None."""
        if event.kind in (EventKind.CREATED, EventKind.MODIFIED, EventKind.PERMISSION_CHANGED):
            return self._reverify(event)
        elif event.kind is EventKind.OTHER:
            logger.debug("ignoring other event for %s", event.path)
            return None
        raise ValueError(f"unhandled watch event kind: {event.kind!r}")

    def _reverify(self, event: WatchEvent) -> WatchStatus | None:
        if not is_qualifying(event, self._extension):
            return None
        subset = reverification_subset(event.path, self.exercises)
        done = sum(1 for exercise in self.exercises if exercise.looks_done())
        self.state.set_done(done)
        self._clear_screen()
        if done == len(self.exercises):
            self.phase = SchedulerState.FINISHED
            return WatchStatus.FINISHED
        self.phase = SchedulerState.REVERIFYING
        self._run_fail_fast(subset, done, advance=False)
        self.phase = SchedulerState.WAITING_FOR_CHANGE
        return None

    def run(self) -> WatchStatus:
        """Drive the loop until the catalog is done or a quit is requested.

        Raises:
            WatchSubsystemError: the file watcher failed to start or died.
            ProcessSpawnError: the toolchain could not be started.
        """
        self.phase = SchedulerState.INITIALIZING
        self.monitor.start()
        try:
            self._clear_screen()
            if self.initial_scan():
                self.phase = SchedulerState.FINISHED
                return WatchStatus.FINISHED

            self.phase = SchedulerState.WAITING_FOR_CHANGE
            if self.shell is not None:
                self.shell.start()
            while True:
                event = self.monitor.next_event(self._poll_interval)
                if event is not None:
                    status = self.handle_event(event)
                    if status is not None:
                        return status
                if self.state.should_quit():
                    self.phase = SchedulerState.UNFINISHED
                    return WatchStatus.UNFINISHED
        finally:
            self.monitor.stop()
