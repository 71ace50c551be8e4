"""Verify the whole catalog concurrently and write one JSON report."""

from __future__ import annotations

import json
import os
import tempfile
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Sequence

from ..models import BatchReport, Exercise, ExerciseFailure, ExerciseResult
from ..utils import get_logger
from .callbacks import NoOpProgress
from .verifier import verify

logger = get_logger(__name__)

VerifyFn = Callable[..., ExerciseFailure | None]
PrintFn = Callable[[str], None]


class _BatchCollector:
    """Counters and result list shared by every unit, behind one lock."""

    def __init__(self, total: int, user_name: str | None) -> None:
        self._lock = threading.Lock()
        self._report = BatchReport(user_name=user_name, total_exercations=total)

    def add(self, name: str, passed: bool) -> tuple[int, int]:
        with self._lock:
            self._report.exercises.append(ExerciseResult(name=name, result=passed))
            if passed:
                self._report.total_succeeds += 1
            else:
                self._report.total_failures += 1
            return self._report.total_succeeds, self._report.total_failures

    def report(self) -> BatchReport:
        with self._lock:
            return BatchReport(
                exercises=list(self._report.exercises),
                user_name=self._report.user_name,
                total_exercations=self._report.total_exercations,
                total_succeeds=self._report.total_succeeds,
                total_failures=self._report.total_failures,
            )


def _run_unit(
    exercise: Exercise,
    total: int,
    config: dict[str, Any],
    verify_fn: VerifyFn,
    verbose: bool,
) -> bool:
    try:
        failure = verify_fn(
            exercise,
            (0, total),
            config,
            verbose=verbose,
            require_done=False,
            callback=NoOpProgress(),
        )
    except Exception as exc:
        # One unit's crash, spawn errors included, is that unit's failure only.
        logger.warning("unit %s raised %r; recording it as failed", exercise.name, exc)
        return False
    return failure is None


def run_batch(
    exercises: Sequence[Exercise],
    config: dict[str, Any],
    *,
    verbose: bool = False,
    verify_fn: VerifyFn = verify,
    print_fn: PrintFn | None = None,
) -> BatchReport:
    """Fan out one verification unit per exercise and join them all.

    No fail-fast: every unit runs to completion. Entry order follows
    completion order; membership and totals do not depend on it.
    """
    runtime = config["runtime"]
    total = len(exercises)
    collector = _BatchCollector(total, runtime.get("user_name"))
    started = time.perf_counter()
    if total == 0:
        return collector.report()

    workers = max(1, min(int(runtime.get("batch_workers", 1)), total))

    def unit(exercise: Exercise) -> None:
        passed = _run_unit(exercise, total, config, verify_fn, verbose)
        succeeds, _ = collector.add(exercise.name, passed)
        elapsed = int(time.perf_counter() - started)
        logger.debug("unit %s finished passed=%s", exercise.name, passed)
        if print_fn is not None:
            verdict = "passed" if passed else "failed"
            print_fn(f"{exercise.name} {verdict} ({succeeds}/{total} correct so far, {elapsed} s elapsed)")

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="excheck-batch") as pool:
        futures = [pool.submit(unit, exercise) for exercise in exercises]
        for future in futures:
            future.result()

    return collector.report()


def write_report(report: BatchReport, path: Path) -> Path:
    """Persist the report as one pretty-printed JSON document, atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        delete=False,
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
        newline="\n",
    )
    tmp_path = Path(tmp_file.name)
    try:
        with tmp_file:
            tmp_file.write(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
    logger.debug("wrote batch report to %s", path)
    return path
