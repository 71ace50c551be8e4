from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Any, Sequence

from . import __version__
from .catalog import find_exercise, load_catalog, manifest_path
from .config import init_project, resolve_effective_config
from .errors import (
    CatalogError,
    CatalogExhausted,
    ExcheckError,
    ProcessSpawnError,
    UnknownExerciseName,
    VerificationFailure,
    WatchSubsystemError,
)
from .models import Exercise
from .progress import ProgressState
from .shell import WatchShell
from .telemetry.events import DataGather
from .utils import get_logger
from .verify.batch import run_batch, write_report
from .verify.callbacks import ConsoleProgress
from .verify.toolchain import reset_exercise, toolchain_available
from .verify.verifier import verify
from .watch.monitor import FileWatchMonitor
from .watch.scheduler import ReverificationScheduler, WatchStatus

logger = get_logger(__name__)

WELCOME = "welcome to excheck: small exercises, checked as you save them"

DEFAULT_OUT = """Thanks for installing excheck!

1. Every exercise is a small source file with a mistake in it. Fix it until it
   compiles (and its tests pass), then remove the "I AM NOT DONE" comment.
2. Run `excheck watch` and keep your editor open: the current exercise is
   re-checked every time you save.
3. Stuck? Type `hint` in watch mode, or run `excheck hint <name>`.

To get started, run `excheck watch`."""

FINISH_LINE = """+----------------------------------------------------+
|          You made it to the finish line!           |
+----------------------------------------------------+"""


def _normalize_path(path: Path) -> Path:
    return Path(os.path.abspath(str(path)))


def _load(
    args: argparse.Namespace,
    *,
    manifest_key: str = "manifest",
    manifest: str | None = None,
) -> tuple[Path, dict[str, Any], tuple[Exercise, ...]]:
    project_dir = _normalize_path(Path(args.project))
    overrides: dict[str, Any] = {}
    if manifest:
        overrides["catalog"] = {manifest_key: manifest}
    cfg = resolve_effective_config(project_dir, cli_overrides=overrides or None)
    # grading reads its own catalog through the same loader
    cfg["catalog"]["manifest"] = cfg["catalog"][manifest_key]
    if not manifest_path(project_dir, cfg).exists():
        raise CatalogError(
            f"excheck must be run from the exercises project directory "
            f"({cfg['catalog']['manifest']} not found in {project_dir})"
        )
    return project_dir, cfg, load_catalog(project_dir, cfg)


def _require_toolchain(cfg: dict[str, Any], project_dir: Path) -> None:
    if not toolchain_available(cfg, project_dir):
        probe = " ".join(cfg["toolchain"]["probe"])
        raise ProcessSpawnError(
            list(cfg["toolchain"]["probe"]),
            f"toolchain not found; try running `{probe}` to diagnose the problem",
        )


def cmd_init(args: argparse.Namespace) -> int:
    project_dir = _normalize_path(Path(args.project))
    result = init_project(project_dir, force=args.force)
    for path in result["created"]:
        print(f"created {path}")
    for path in result["skipped"]:
        print(f"skipped {path} (exists)")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    project_dir, cfg, exercises = _load(args)
    _require_toolchain(cfg, project_dir)
    callback = ConsoleProgress(print, args.nocapture)
    total = len(exercises)
    for index, exercise in enumerate(exercises):
        failure = verify(exercise, (index, total), cfg, verbose=args.nocapture, callback=callback)
        if failure is not None:
            raise VerificationFailure(exercise.name, failure.message)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    project_dir, cfg, exercises = _load(args)
    _require_toolchain(cfg, project_dir)
    exercise = find_exercise(args.name, exercises)
    index = exercises.index(exercise)
    failure = verify(
        exercise,
        (index, len(exercises)),
        cfg,
        verbose=args.nocapture,
        require_done=False,
        callback=ConsoleProgress(print, args.nocapture),
    )
    if failure is not None:
        raise VerificationFailure(exercise.name, failure.message)
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    project_dir, cfg, exercises = _load(args)
    _require_toolchain(cfg, project_dir)
    exercise = find_exercise(args.name, exercises)
    outcome = reset_exercise(exercise, cfg)
    if not outcome.ok:
        sys.stderr.write(outcome.stderr.decode("utf-8", errors="replace"))
        return 1
    print(f"The file {exercise.path.as_posix()} has been reset!")
    return 0


def cmd_hint(args: argparse.Namespace) -> int:
    project_dir, cfg, exercises = _load(args)
    _require_toolchain(cfg, project_dir)
    exercise = find_exercise(args.name, exercises)
    print(exercise.hint)
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    project_dir, cfg, exercises = _load(args)
    _require_toolchain(cfg, project_dir)
    runtime = cfg["runtime"]
    state = ProgressState(total=len(exercises))
    monitor = FileWatchMonitor(
        project_dir / str(cfg["catalog"]["exercises_dir"]),
        debounce_seconds=float(runtime["debounce_seconds"]),
    )
    telemetry = DataGather(
        project_dir / str(runtime["telemetry_path"]),
        enabled=bool(runtime["telemetry_enabled"]),
    )
    scheduler = ReverificationScheduler(
        exercises,
        cfg,
        monitor=monitor,
        state=state,
        shell=WatchShell(state),
        telemetry=telemetry,
        verbose=args.nocapture,
    )
    status = scheduler.run()
    if status is WatchStatus.FINISHED:
        print("🎉 All exercises completed! 🎉")
        print(f"\n{FINISH_LINE}\n")
    else:
        print("We hope you're enjoying the exercises!")
        print(
            "If you want to continue working on the exercises at a later point, "
            "you can simply run `excheck watch` again"
        )
    return 0


def cmd_batch_verify(args: argparse.Namespace) -> int:
    project_dir, cfg, exercises = _load(args, manifest_key="check_manifest", manifest=args.manifest)
    _require_toolchain(cfg, project_dir)
    report = run_batch(exercises, cfg, verbose=args.nocapture, print_fn=print)
    out_path = Path(args.out) if args.out else Path(str(cfg["runtime"]["report_path"]))
    if not out_path.is_absolute():
        out_path = project_dir / out_path
    write_report(report, out_path)
    print(
        f"{report.total_succeeds}/{report.total_exercations} exercises passed; "
        f"report written to {out_path}"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="excheck",
        description="excheck: watch, verify and grade small coding exercises",
    )
    parser.add_argument("--project", default=".", help="Exercises project directory")
    parser.add_argument(
        "--nocapture", action="store_true", help="Show outputs from the test exercises"
    )
    parser.add_argument("-v", "--version", action="store_true", help="Show the version")
    sub = parser.add_subparsers(dest="command")

    init_parser = sub.add_parser("init", help="Write excheck config templates")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing templates")
    init_parser.set_defaults(func=cmd_init)

    verify_parser = sub.add_parser("verify", help="Verify all exercises in the recommended order")
    verify_parser.set_defaults(func=cmd_verify)

    watch_parser = sub.add_parser("watch", help="Re-run `verify` when files are edited")
    watch_parser.set_defaults(func=cmd_watch)

    run_parser = sub.add_parser("run", help="Run/test a single exercise")
    run_parser.add_argument("name", help="Exercise name, or `next`")
    run_parser.set_defaults(func=cmd_run)

    reset_parser = sub.add_parser("reset", help="Reset a single exercise with `git stash -- <file>`")
    reset_parser.add_argument("name", help="Exercise name, or `next`")
    reset_parser.set_defaults(func=cmd_reset)

    hint_parser = sub.add_parser("hint", help="Print the hint for an exercise")
    hint_parser.add_argument("name", help="Exercise name, or `next`")
    hint_parser.set_defaults(func=cmd_hint)

    batch_parser = sub.add_parser(
        "batch-verify",
        aliases=["myverify"],
        help="Verify every exercise concurrently and write a JSON report",
    )
    batch_parser.add_argument("--manifest", help="Grading manifest (default: catalog.check_manifest)")
    batch_parser.add_argument("--out", help="Report path (default: runtime.report_path)")
    batch_parser.set_defaults(func=cmd_batch_verify)

    return parser


def run(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(f"v{__version__}")
        return 0
    if args.command is None:
        print(f"\n{WELCOME}\n")
        print(f"{DEFAULT_OUT}\n")
        return 0
    try:
        return int(args.func(args))
    except CatalogExhausted:
        print("🎉 Congratulations! You have done all the exercises!")
        print("🔚 There are no more exercises to do next!")
        return 1
    except VerificationFailure as exc:
        # The verifier already printed the sanitized output.
        logger.debug("%s", exc)
        return 1
    except UnknownExerciseName as exc:
        print(str(exc))
        return 1
    except WatchSubsystemError as exc:
        print(f"Error: Could not watch your progress. Error message was {exc}.")
        print(
            "Most likely you've run out of disk space or your 'inotify limit' has been reached."
        )
        return 1
    except ExcheckError as exc:
        logger.debug("command failed", exc_info=True)
        print(f"Error: {exc}")
        return 1
    except ValueError as exc:
        print(f"Error: invalid configuration: {exc}")
        return 1


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
