from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_DONE_MARKER = "// I AM NOT DONE"


class Mode(str, Enum):
    COMPILE = "compile"
    TEST = "test"

    @classmethod
    def parse(cls, value: Any) -> "Mode":
        token = str(value or "").strip().lower()
        for mode in cls:
            if mode.value == token:
                return mode
        raise ValueError(f"unknown exercise mode: {value!r}")


@dataclass(frozen=True)
class Exercise:
    """One curriculum unit: a source file, how to check it, and its hint."""

    name: str
    path: Path
    mode: Mode
    hint: str = ""
    runnable: bool = True
    root: Path = field(default=Path("."), compare=False)
    done_marker: str = field(default=DEFAULT_DONE_MARKER, compare=False, repr=False)

    @property
    def source(self) -> Path:
        return self.root / self.path

    def looks_done(self) -> bool:
        """Pure predicate over the file's current contents.

        Safe to call repeatedly and from many threads: it only reads.
        A missing or unreadable file counts as not done.
        """
        try:
            text = self.source.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return False
        return not any(line.strip() == self.done_marker for line in text.splitlines())


@dataclass(frozen=True)
class ProcessOutcome:
    argv: list[str]
    exit_code: int
    stdout: bytes
    stderr: bytes
    duration_seconds: float
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def combined(self) -> bytes:
        return self.stdout + self.stderr


@dataclass(frozen=True)
class VerificationOutcome:
    success: bool
    message: str
    duration_seconds: float
    exit_code: int = 0


@dataclass(frozen=True)
class ExerciseFailure:
    """Returned by the verifier when an exercise does not pass."""

    exercise: Exercise
    message: str
    outcome: VerificationOutcome | None = None


@dataclass(frozen=True)
class ExerciseResult:
    name: str
    result: bool

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "result": bool(self.result)}


@dataclass
class BatchReport:
    exercises: list[ExerciseResult] = field(default_factory=list)
    user_name: str | None = None
    total_exercations: int = 0
    total_succeeds: int = 0
    total_failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "exercises": [item.to_dict() for item in self.exercises],
            "user_name": self.user_name,
            "statistics": {
                "total_exercations": int(self.total_exercations),
                "total_succeeds": int(self.total_succeeds),
                "total_failures": int(self.total_failures),
            },
        }
