from __future__ import annotations

import os
from typing import Any

_TOOLCHAIN_KEYS = ("compile", "run", "test_compile", "test_run", "probe", "reset")


def _cpu_count() -> int:
    return max(1, int(os.cpu_count() or 1))


def _default_batch_workers() -> int:
    return max(1, min(32, _cpu_count()))


def _normalize_max_workers(value: Any, default_value: int) -> int:
    if str(value or "").strip().lower() == "auto":
        return max(1, int(default_value))
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default_value
    return max(1, parsed)


def _normalize_positive_int(value: Any, default_value: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return max(1, int(default_value))
    return max(1, parsed)


def _normalize_positive_float(value: Any, default_value: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return float(default_value)
    if parsed <= 0:
        return float(default_value)
    return float(parsed)


def _normalize_bool(value: Any, default_value: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default_value
    text = str(value).strip().lower()
    return text in {"1", "true", "yes", "on"}


def _normalize_extension(value: Any, default_value: str = ".rs") -> str:
    token = str(value or default_value).strip()
    if not token:
        token = default_value
    return token if token.startswith(".") else f".{token}"


def _normalize_argv(value: Any, key: str) -> list[str]:
    if isinstance(value, str):
        raise ValueError(f"toolchain.{key} must be a list of arguments, not a string")
    if not isinstance(value, list) or not value:
        raise ValueError(f"toolchain.{key} must be a non-empty list")
    return [str(item) for item in value]


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    runtime = dict(config.get("runtime", {}))

    if os.environ.get("EXCHECK_BATCH_WORKERS"):
        runtime["batch_workers"] = _normalize_max_workers(
            os.environ["EXCHECK_BATCH_WORKERS"],
            _default_batch_workers(),
        )
    if os.environ.get("EXCHECK_DEBOUNCE_SECONDS"):
        runtime["debounce_seconds"] = _normalize_positive_float(
            os.environ["EXCHECK_DEBOUNCE_SECONDS"],
            float(runtime.get("debounce_seconds", 2.0)),
        )
    if os.environ.get("EXCHECK_POLL_INTERVAL_SECONDS"):
        runtime["poll_interval_seconds"] = _normalize_positive_float(
            os.environ["EXCHECK_POLL_INTERVAL_SECONDS"],
            float(runtime.get("poll_interval_seconds", 1.0)),
        )
    if os.environ.get("EXCHECK_PER_COMMAND_TIMEOUT_SECONDS"):
        runtime["per_command_timeout_seconds"] = _normalize_positive_int(
            os.environ["EXCHECK_PER_COMMAND_TIMEOUT_SECONDS"],
            int(runtime.get("per_command_timeout_seconds", 600)),
        )
    if os.environ.get("EXCHECK_REPORT_PATH"):
        runtime["report_path"] = os.environ["EXCHECK_REPORT_PATH"]
    if os.environ.get("EXCHECK_TELEMETRY_PATH"):
        runtime["telemetry_path"] = os.environ["EXCHECK_TELEMETRY_PATH"]
    if os.environ.get("EXCHECK_TELEMETRY_ENABLED") is not None:
        runtime["telemetry_enabled"] = _normalize_bool(
            os.environ["EXCHECK_TELEMETRY_ENABLED"],
            bool(runtime.get("telemetry_enabled", True)),
        )

    config["runtime"] = runtime
    return config


def _validate_effective_config(config: dict[str, Any]) -> None:
    if int(config.get("version", 0)) <= 0:
        raise ValueError("version must be a positive integer")

    catalog = config.get("catalog", {})
    if not isinstance(catalog, dict):
        raise ValueError("catalog must be an object")
    catalog["manifest"] = str(catalog.get("manifest") or "info.yaml").strip()
    catalog["check_manifest"] = str(catalog.get("check_manifest") or "check.yaml").strip()
    catalog["exercises_dir"] = str(catalog.get("exercises_dir") or "exercises").strip()
    catalog["source_extension"] = _normalize_extension(catalog.get("source_extension"))
    marker = str(catalog.get("done_marker", "")).strip()
    if not marker:
        raise ValueError("catalog.done_marker must be a non-empty string")
    catalog["done_marker"] = marker
    config["catalog"] = catalog

    toolchain = config.get("toolchain", {})
    if not isinstance(toolchain, dict):
        raise ValueError("toolchain must be an object")
    for key in _TOOLCHAIN_KEYS:
        toolchain[key] = _normalize_argv(toolchain.get(key), key)
    config["toolchain"] = toolchain

    runtime = config.get("runtime", {})
    if not isinstance(runtime, dict):
        raise ValueError("runtime must be an object")
    runtime["batch_workers"] = _normalize_max_workers(
        runtime.get("batch_workers", "auto"),
        default_value=_default_batch_workers(),
    )
    runtime["debounce_seconds"] = _normalize_positive_float(
        runtime.get("debounce_seconds", 2.0), 2.0
    )
    runtime["poll_interval_seconds"] = _normalize_positive_float(
        runtime.get("poll_interval_seconds", 1.0), 1.0
    )
    runtime["per_command_timeout_seconds"] = _normalize_positive_int(
        runtime.get("per_command_timeout_seconds", 600), 600
    )
    runtime["report_path"] = str(
        runtime.get("report_path") or ".github/result/check_result.json"
    ).strip()
    runtime["telemetry_path"] = str(runtime.get("telemetry_path") or "data.jsonl").strip()
    runtime["telemetry_enabled"] = _normalize_bool(runtime.get("telemetry_enabled", True), True)
    user_name = str(runtime.get("user_name") or "").strip()
    runtime["user_name"] = user_name or None
    config["runtime"] = runtime
