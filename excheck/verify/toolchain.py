from __future__ import annotations

from pathlib import Path
from typing import Any

from ..errors import ProcessSpawnError
from ..models import Exercise, ProcessOutcome
from .runners import render_argv, run_command

PROBE_TIMEOUT_SECONDS = 30


def toolchain_available(config: dict[str, Any], cwd: Path) -> bool:
    """Run the configured probe (``rustc --version`` by default)."""
    try:
        outcome = run_command(
            list(config["toolchain"]["probe"]), cwd=cwd, timeout_seconds=PROBE_TIMEOUT_SECONDS
        )
    except ProcessSpawnError:
        return False
    return outcome.ok


def reset_exercise(exercise: Exercise, config: dict[str, Any]) -> ProcessOutcome:
    """Restore an exercise file (``git stash -- <path>`` by default)."""
    argv = render_argv(config["toolchain"]["reset"], source=exercise.path.as_posix())
    return run_command(
        argv,
        cwd=exercise.root,
        timeout_seconds=float(config["runtime"]["per_command_timeout_seconds"]),
    )
