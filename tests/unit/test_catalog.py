from __future__ import annotations

import json
from pathlib import Path

import pytest

from excheck.catalog import find_exercise, load_catalog, parse_catalog
from excheck.config import resolve_effective_config
from excheck.errors import CatalogError, CatalogExhausted, UnknownExerciseName
from excheck.models import Mode

MARKER = "// I AM NOT DONE"


def _write_catalog(root: Path, done: list[bool]) -> dict:
    (root / "exercises").mkdir(parents=True, exist_ok=True)
    items = []
    for index, is_done in enumerate(done, start=1):
        rel = f"exercises/ex{index}.rs"
        body = "fn main() {}\n" if is_done else f"{MARKER}\nfn main() {{}}\n"
        (root / rel).write_text(body, encoding="utf-8")
        items.append({"name": f"ex{index}", "path": rel, "mode": "compile", "hint": f"hint {index}"})
    return {"exercises": items}


def test_load_catalog_keeps_manifest_order(tmp_path: Path) -> None:
    data = _write_catalog(tmp_path, [True, False, True])
    (tmp_path / "info.yaml").write_text(json.dumps(data), encoding="utf-8")
    cfg = resolve_effective_config(tmp_path)

    exercises = load_catalog(tmp_path, cfg)

    assert [item.name for item in exercises] == ["ex1", "ex2", "ex3"]
    assert exercises[0].mode is Mode.COMPILE
    assert exercises[1].hint == "hint 2"
    assert exercises[0].source == tmp_path / "exercises" / "ex1.rs"


def test_load_catalog_reads_yaml(tmp_path: Path) -> None:
    (tmp_path / "info.yaml").write_text(
        "exercises:\n"
        "  - name: intro1\n"
        "    path: exercises/intro1.rs\n"
        "    mode: test\n"
        "    runnable: false\n",
        encoding="utf-8",
    )
    cfg = resolve_effective_config(tmp_path)
    (exercise,) = load_catalog(tmp_path, cfg)
    assert exercise.mode is Mode.TEST
    assert exercise.runnable is False
    assert exercise.hint == ""


def test_missing_manifest_raises(tmp_path: Path) -> None:
    cfg = resolve_effective_config(tmp_path)
    with pytest.raises(CatalogError):
        load_catalog(tmp_path, cfg)


def test_duplicate_names_are_rejected(tmp_path: Path) -> None:
    data = {
        "exercises": [
            {"name": "a", "path": "exercises/a.rs", "mode": "compile"},
            {"name": "a", "path": "exercises/b.rs", "mode": "compile"},
        ]
    }
    with pytest.raises(CatalogError, match="duplicate"):
        parse_catalog(data, root=tmp_path)


def test_unknown_mode_is_rejected(tmp_path: Path) -> None:
    data = {"exercises": [{"name": "a", "path": "exercises/a.rs", "mode": "lint"}]}
    with pytest.raises(CatalogError):
        parse_catalog(data, root=tmp_path)


def test_looks_done_follows_marker(tmp_path: Path) -> None:
    exercises = parse_catalog(_write_catalog(tmp_path, [True, False]), root=tmp_path)
    assert exercises[0].looks_done() is True
    assert exercises[1].looks_done() is False

    exercises[1].source.write_text("fn main() {}\n", encoding="utf-8")
    assert exercises[1].looks_done() is True


def test_missing_file_is_not_done(tmp_path: Path) -> None:
    (exercise,) = parse_catalog(
        {"exercises": [{"name": "a", "path": "exercises/a.rs", "mode": "compile"}]},
        root=tmp_path,
    )
    assert exercise.looks_done() is False


def test_find_exercise_next_is_first_not_done(tmp_path: Path) -> None:
    exercises = parse_catalog(_write_catalog(tmp_path, [True, True, False, False]), root=tmp_path)
    assert find_exercise("next", exercises).name == "ex3"


def test_find_exercise_next_when_all_done(tmp_path: Path) -> None:
    exercises = parse_catalog(_write_catalog(tmp_path, [True, True]), root=tmp_path)
    with pytest.raises(CatalogExhausted):
        find_exercise("next", exercises)


def test_find_exercise_exact_and_unknown(tmp_path: Path) -> None:
    exercises = parse_catalog(_write_catalog(tmp_path, [False, False]), root=tmp_path)
    assert find_exercise("ex2", exercises).name == "ex2"
    with pytest.raises(UnknownExerciseName):
        find_exercise("ex9", exercises)
