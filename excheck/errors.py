from __future__ import annotations


class ExcheckError(RuntimeError):
    """Base class for errors surfaced to the command line."""


class CatalogError(ExcheckError):
    """The exercise manifest is missing or malformed."""


class ProcessSpawnError(ExcheckError):
    """The toolchain executable could not be started."""

    def __init__(self, argv: list[str], reason: str) -> None:
        self.argv = list(argv)
        self.reason = reason
        super().__init__(f"failed to spawn {' '.join(self.argv)!r}: {reason}")


class VerificationFailure(ExcheckError):
    """An exercise failed to compile or its tests failed."""

    def __init__(self, name: str, message: str = "") -> None:
        self.name = name
        self.message = message
        super().__init__(f"exercise {name} failed")


class WatchSubsystemError(ExcheckError):
    """The file watcher could not be started or died."""


class UnknownExerciseName(ExcheckError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No exercise found for '{name}'!")


class CatalogExhausted(ExcheckError):
    """``next`` was requested but every exercise is already done."""

    def __init__(self) -> None:
        super().__init__("There are no more exercises to do next!")
