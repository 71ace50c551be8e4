"""Load the ordered exercise catalog and resolve targeted exercise names."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence

from .config import _load_config_file
from .errors import CatalogError, CatalogExhausted, UnknownExerciseName
from .models import DEFAULT_DONE_MARKER, Exercise, Mode
from .utils import normalize_path_abs, normalize_path_str

NEXT_TOKEN = "next"


def manifest_path(project_dir: Path, config: dict[str, Any]) -> Path:
    return normalize_path_abs(project_dir) / str(config["catalog"]["manifest"])


def _exercise_from_dict(
    raw: dict[str, Any], *, root: Path, done_marker: str, index: int
) -> Exercise:
    name = str(raw.get("name", "")).strip()
    if not name:
        raise CatalogError(f"exercise #{index + 1} has no name")
    rel_path = normalize_path_str(str(raw.get("path", "")))
    if not rel_path:
        raise CatalogError(f"exercise '{name}' has no path")
    try:
        mode = Mode.parse(raw.get("mode"))
    except ValueError as exc:
        raise CatalogError(f"exercise '{name}': {exc}") from exc
    runnable = raw.get("runnable", True)
    return Exercise(
        name=name,
        path=Path(rel_path),
        mode=mode,
        hint=str(raw.get("hint", "") or "").strip(),
        runnable=bool(runnable) if runnable is not None else True,
        root=root,
        done_marker=done_marker,
    )


def parse_catalog(
    data: dict[str, Any], *, root: Path, done_marker: str = DEFAULT_DONE_MARKER
) -> tuple[Exercise, ...]:
    raw_items = data.get("exercises")
    if not isinstance(raw_items, list):
        raise CatalogError("manifest must contain an 'exercises' list")
    exercises: list[Exercise] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise CatalogError(f"exercise #{index + 1} must be an object")
        exercise = _exercise_from_dict(raw, root=root, done_marker=done_marker, index=index)
        if exercise.name in seen:
            raise CatalogError(f"duplicate exercise name: {exercise.name}")
        seen.add(exercise.name)
        exercises.append(exercise)
    return tuple(exercises)


def load_catalog(project_dir: Path, config: dict[str, Any]) -> tuple[Exercise, ...]:
    """Read the manifest named in ``config`` and return exercises in manifest order."""
    path = manifest_path(project_dir, config)
    if not path.exists():
        raise CatalogError(f"manifest not found: {path}")
    try:
        data = _load_config_file(path)
    except ValueError as exc:
        raise CatalogError(str(exc)) from exc
    return parse_catalog(
        data,
        root=normalize_path_abs(project_dir),
        done_marker=str(config["catalog"]["done_marker"]),
    )


def find_exercise(name: str, exercises: Sequence[Exercise]) -> Exercise:
    """Resolve an exact exercise name, or ``next`` for the first not-done one."""
    if name == NEXT_TOKEN:
        for exercise in exercises:
            if not exercise.looks_done():
                return exercise
        raise CatalogExhausted()
    for exercise in exercises:
        if exercise.name == name:
            return exercise
    raise UnknownExerciseName(name)
