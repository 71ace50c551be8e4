from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any

import yaml

from .config_runtime import _apply_env_overrides, _validate_effective_config
from .models import DEFAULT_DONE_MARKER

PROJECT_CONFIG_NAME = "excheck.yaml"
LOCAL_CONFIG_NAME = "excheck.local.yaml"

DEFAULT_PROJECT_CONFIG: dict[str, Any] = {
    "version": 1,
    "catalog": {
        "manifest": "info.yaml",
        "check_manifest": "check.yaml",
        "exercises_dir": "exercises",
        "source_extension": ".rs",
        "done_marker": DEFAULT_DONE_MARKER,
    },
    "toolchain": {
        "compile": ["rustc", "{source}", "-o", "{binary}", "--color", "always"],
        "run": ["{binary}"],
        "test_compile": ["rustc", "--test", "{source}", "-o", "{binary}", "--color", "always"],
        "test_run": ["{binary}", "--test-threads", "1"],
        "probe": ["rustc", "--version"],
        "reset": ["git", "stash", "--", "{source}"],
    },
}

DEFAULT_LOCAL_CONFIG: dict[str, Any] = {
    "runtime": {
        "batch_workers": "auto",
        "debounce_seconds": 2.0,
        "poll_interval_seconds": 1.0,
        "per_command_timeout_seconds": 600,
        "report_path": ".github/result/check_result.json",
        "telemetry_path": "data.jsonl",
        "telemetry_enabled": True,
        "user_name": None,
    },
}


def _normalize_path(path: Path) -> Path:
    return Path(os.path.abspath(str(path)))


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Failed to parse config file {path}: {exc}") from exc
        if data is None:
            return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config root must be an object: {path}")
    return data


def resolve_effective_config(
    project_dir: Path,
    cli_overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    project_dir = _normalize_path(project_dir)
    project_cfg_path = project_dir / PROJECT_CONFIG_NAME
    env_local = os.environ.get("EXCHECK_LOCAL_CONFIG")
    local_cfg_path = (
        _normalize_path(Path(env_local))
        if env_local
        else (project_dir / LOCAL_CONFIG_NAME)
    )

    project_cfg = _load_config_file(project_cfg_path)
    local_cfg = _load_config_file(local_cfg_path)
    merged = _deep_merge(copy.deepcopy(DEFAULT_PROJECT_CONFIG), project_cfg)
    merged = _deep_merge(merged, copy.deepcopy(DEFAULT_LOCAL_CONFIG))
    merged = _deep_merge(merged, local_cfg)
    merged = _apply_env_overrides(merged)
    if cli_overrides:
        merged = _deep_merge(merged, cli_overrides)

    merged["meta"] = dict(merged.get("meta", {}))
    merged["meta"]["project_dir"] = str(project_dir)
    merged["meta"]["project_config_path"] = str(project_cfg_path)
    merged["meta"]["local_config_path"] = str(local_cfg_path)

    _validate_effective_config(merged)
    return merged


def _dump_yaml(path: Path, data: dict[str, Any]) -> None:
    path.write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )


def init_project(project_dir: Path, force: bool = False) -> dict[str, Any]:
    project_dir = _normalize_path(project_dir)
    project_dir.mkdir(parents=True, exist_ok=True)
    project_cfg_path = project_dir / PROJECT_CONFIG_NAME
    local_example_path = project_dir / f"{LOCAL_CONFIG_NAME}.example"

    created: list[str] = []
    skipped: list[str] = []

    if force or not project_cfg_path.exists():
        _dump_yaml(project_cfg_path, DEFAULT_PROJECT_CONFIG)
        created.append(str(project_cfg_path))
    else:
        skipped.append(str(project_cfg_path))

    if force or not local_example_path.exists():
        _dump_yaml(local_example_path, json.loads(json.dumps(DEFAULT_LOCAL_CONFIG)))
        created.append(str(local_example_path))
    else:
        skipped.append(str(local_example_path))

    gitignore_path = project_dir / ".gitignore"
    if gitignore_path.exists():
        existing = gitignore_path.read_text(encoding="utf-8")
    else:
        existing = ""
    if LOCAL_CONFIG_NAME not in existing:
        suffix = "" if existing.endswith("\n") or not existing else "\n"
        gitignore_path.write_text(
            existing + suffix + LOCAL_CONFIG_NAME + "\n",
            encoding="utf-8",
        )
        created.append(str(gitignore_path))

    return {"created": created, "skipped": skipped}
