from __future__ import annotations

from typing import Callable, Protocol

from ..models import Exercise

PrintFn = Callable[[str], None]

_BAR_WIDTH = 40


class VerifyProgressCallback(Protocol):
    def on_start(self, exercise: Exercise, done: int, total: int) -> None:
        """An exercise is about to be checked."""

    def on_success(self, exercise: Exercise, output: str) -> None:
        """Every check for the exercise passed."""

    def on_failure(self, exercise: Exercise, stage: str, message: str) -> None:
        """A check failed; ``message`` is already sanitized."""

    def on_pending(self, exercise: Exercise, output: str) -> None:
        """Checks passed but the exercise still carries its not-done marker."""


class NoOpProgress(VerifyProgressCallback):
    def on_start(self, exercise: Exercise, done: int, total: int) -> None:
        pass

    def on_success(self, exercise: Exercise, output: str) -> None:
        pass

    def on_failure(self, exercise: Exercise, stage: str, message: str) -> None:
        pass

    def on_pending(self, exercise: Exercise, output: str) -> None:
        pass


def progress_bar(done: int, total: int, width: int = _BAR_WIDTH) -> str:
    if total <= 0:
        return f"Progress: [{'-' * width}] 0/0 (0.0 %)"
    filled = min(width, int(width * done / total))
    arrow = ">" if filled < width else ""
    rest = max(0, width - filled - len(arrow))
    pct = 100.0 * done / total
    return f"Progress: [{'#' * filled}{arrow}{'-' * rest}] {done}/{total} ({pct:.1f} %)"


class ConsoleProgress(VerifyProgressCallback):
    """Prints the live ``done/total`` indicator and per-exercise verdicts."""

    def __init__(self, print_fn: PrintFn = print, verbose: bool = False) -> None:
        self._print = print_fn
        self._verbose = verbose

    def on_start(self, exercise: Exercise, done: int, total: int) -> None:
        self._print(progress_bar(done, total))

    def on_success(self, exercise: Exercise, output: str) -> None:
        if self._verbose and output.strip():
            self._print(output.rstrip())
        self._print(f"✅ Successfully verified {exercise.path.as_posix()}!")

    def on_failure(self, exercise: Exercise, stage: str, message: str) -> None:
        self._print(
            f"⚠️  {stage.capitalize()} of {exercise.path.as_posix()} failed! "
            "Please try again. Here's the output:"
        )
        self._print(message.rstrip())

    def on_pending(self, exercise: Exercise, output: str) -> None:
        if output.strip():
            self._print(output.rstrip())
        self._print(f"🎉 {exercise.path.as_posix()} passes its checks!")
        self._print(
            "You can keep working on this exercise, or jump into the next one "
            f"by removing the `{exercise.done_marker}` comment."
        )
