"""Turn raw toolchain runs into a pass/fail verdict for one exercise."""

from __future__ import annotations

import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any

from ..models import Exercise, ExerciseFailure, Mode, ProcessOutcome, VerificationOutcome
from ..utils import get_logger
from .callbacks import NoOpProgress, VerifyProgressCallback
from .runners import render_argv, run_command

logger = get_logger(__name__)

# CSI, OSC and DCS/SOS/PM/APC strings first, then any other ESC sequence
# (optional intermediates 0x20-0x2F, one final 0x30-0x7E), e.g. ESC ( B, ESC 7, ESC c.
_ANSI_PATTERN = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[PX^_][^\x1b]*\x1b\\"
    r"|\x1b[ -/]*[0-~]"
    r"|\x9b[0-?]*[ -/]*[@-~]"
)
_CONTROL_PATTERN = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


def sanitize_output(raw: bytes | str) -> str:
    """Strip terminal color/control escape sequences from captured output."""
    if isinstance(raw, bytes):
        text = raw.decode("utf-8", errors="replace")
    else:
        text = str(raw)
    text = text.replace("\r\n", "\n")
    text = _ANSI_PATTERN.sub("", text)
    return _CONTROL_PATTERN.sub("", text)


def _binary_name(exercise: Exercise) -> str:
    stem = re.sub(r"[^A-Za-z0-9_.-]", "_", exercise.name) or "exercise"
    return f"{stem}.exe" if os.name == "nt" else stem


def _steps(exercise: Exercise, toolchain: dict[str, Any], verbose: bool) -> list[tuple[str, list[str]]]:
    if exercise.mode is Mode.TEST:
        test_run = list(toolchain["test_run"])
        if verbose:
            test_run.append("--nocapture")
        return [("compiling", list(toolchain["test_compile"])), ("testing", test_run)]
    steps = [("compiling", list(toolchain["compile"]))]
    if exercise.runnable:
        steps.append(("running", list(toolchain["run"])))
    return steps


def check_exercise(
    exercise: Exercise,
    config: dict[str, Any],
    *,
    verbose: bool = False,
) -> tuple[VerificationOutcome, str]:
    """Run the compile (and run/test) steps for an exercise.

    Returns the outcome plus the name of the stage that failed, or ``""``
    on success. The outcome message is sanitized in both cases.

    Raises:
        ProcessSpawnError: the toolchain could not be started.
    """
    toolchain = config["toolchain"]
    timeout = float(config["runtime"]["per_command_timeout_seconds"])
    started = time.perf_counter()
    outputs: list[str] = []
    last: ProcessOutcome | None = None

    with tempfile.TemporaryDirectory(prefix="excheck-") as workdir:
        binary = Path(workdir) / _binary_name(exercise)
        for stage, template in _steps(exercise, toolchain, verbose):
            argv = render_argv(
                template,
                source=str(exercise.source),
                binary=str(binary),
                workdir=workdir,
            )
            last = run_command(argv, cwd=exercise.root, timeout_seconds=timeout)
            outputs.append(sanitize_output(last.combined))
            if not last.ok:
                logger.debug(
                    "%s failed while %s (exit=%s, timed_out=%s)",
                    exercise.name,
                    stage,
                    last.exit_code,
                    last.timed_out,
                )
                outcome = VerificationOutcome(
                    success=False,
                    message=outputs[-1],
                    duration_seconds=round(time.perf_counter() - started, 3),
                    exit_code=last.exit_code,
                )
                return outcome, stage

    outcome = VerificationOutcome(
        success=True,
        message="".join(outputs),
        duration_seconds=round(time.perf_counter() - started, 3),
        exit_code=last.exit_code if last is not None else 0,
    )
    return outcome, ""


def verify(
    exercise: Exercise,
    progress: tuple[int, int],
    config: dict[str, Any],
    *,
    verbose: bool = False,
    require_done: bool = True,
    callback: VerifyProgressCallback | None = None,
) -> ExerciseFailure | None:
    """Verify one exercise; return ``None`` on success or an ``ExerciseFailure``.

    With ``require_done`` an exercise whose checks pass but whose file still
    carries the not-done marker is reported as a failure too, so scans stop
    on it. Shared state is never touched here; callers decide what a failure
    means for them.
    """
    cb = callback if callback is not None else NoOpProgress()
    done, total = progress
    cb.on_start(exercise, done, total)

    outcome, failed_stage = check_exercise(exercise, config, verbose=verbose)
    if not outcome.success:
        cb.on_failure(exercise, failed_stage, outcome.message)
        return ExerciseFailure(exercise=exercise, message=outcome.message, outcome=outcome)

    if require_done and not exercise.looks_done():
        cb.on_pending(exercise, outcome.message)
        return ExerciseFailure(exercise=exercise, message=outcome.message, outcome=outcome)

    cb.on_success(exercise, outcome.message)
    return None
