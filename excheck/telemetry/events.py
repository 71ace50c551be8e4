from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..utils import get_logger, utc_now_iso

logger = get_logger(__name__)


def append_event(events_path: Path, record: dict[str, Any]) -> None:
    events_path.parent.mkdir(parents=True, exist_ok=True)
    event: dict[str, Any] = {"ts": utc_now_iso(), **record}
    with events_path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(event, ensure_ascii=False) + "\n")


@dataclass
class Record:
    """Accumulates what happened to one exercise file between two successes."""

    path: str = ""
    code: str = ""
    error: str = ""

    def reset_path(self, path: Path | str) -> None:
        text = Path(path).as_posix()
        if text != self.path:
            self.path = text
            self.code = ""
            self.error = ""

    def set_error(self, error: str) -> None:
        self.error = error

    def read_right_code(self, source: Path) -> bool:
        try:
            self.code = source.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return False
        return True

    def clear(self) -> None:
        self.code = ""
        self.error = ""

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "status": "right", "code": self.code, "error": self.error}


class DataGather:
    """Append-only JSONL sink for successful attempts."""

    def __init__(self, path: Path, enabled: bool = True) -> None:
        self.path = Path(path)
        self.enabled = bool(enabled)
        self._lock = threading.Lock()

    def push(self, record: Record) -> None:
        if not self.enabled:
            return
        with self._lock:
            append_event(self.path, record.to_dict())
        logger.debug("recorded success for %s", record.path)
