"""Shared utility functions used across the excheck package.

Keeps timestamp, path and logging helpers in one place so the
watch, batch and CLI layers format things the same way.
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Path normalization helpers
# ---------------------------------------------------------------------------

def normalize_path_str(path: str) -> str:
    """Normalize a relative path string: backslash → slash, strip, drop './' prefix."""
    normalized = str(path or "").replace("\\", "/").strip()
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def normalize_path_abs(path: Path) -> Path:
    """Resolve a Path to an absolute path safely (avoids Windows resolve quirks)."""
    return Path(os.path.abspath(str(path)))


def path_ends_with(candidate: Path, suffix: Path) -> bool:
    """Return True when ``candidate``'s trailing components equal ``suffix``'s."""
    tail = [part for part in Path(normalize_path_str(str(suffix))).parts if part not in ("", ".")]
    if not tail:
        return False
    parts = list(candidate.parts)
    if len(parts) < len(tail):
        return False
    return parts[-len(tail):] == tail


# ---------------------------------------------------------------------------
# Logging helpers
# ---------------------------------------------------------------------------

_EXCHECK_LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a namespaced logger under the ``excheck`` hierarchy.

    Usage::

        from excheck.utils import get_logger
        logger = get_logger(__name__)
        logger.info("batch run complete")
    """
    logger = logging.getLogger(name if name.startswith("excheck") else f"excheck.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_EXCHECK_LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(
            logging.DEBUG
            if os.environ.get("EXCHECK_DEBUG", "").lower() in {"1", "true", "yes"}
            else logging.WARNING
        )
    return logger
