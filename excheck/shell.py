from __future__ import annotations

import sys
import threading
from typing import Callable

from .progress import ProgressState

ReadLineFn = Callable[[], str]
PrintFn = Callable[[str], None]

CLEAR_SCREEN = "\x1b[2J\x1b[1;1H"

HELP_TEXT = "\n".join(
    [
        "Commands available to you in watch mode:",
        "  hint  - prints the current exercise's hint",
        "  clear - clears the screen",
        "  quit  - quits watch mode",
        "  help  - displays this help message",
        "",
        "Watch mode automatically re-evaluates the current exercise",
        "when you edit a file's contents.",
    ]
)


def _stdin_readline() -> str:
    return sys.stdin.readline()


class WatchShell:
    """Line-oriented command loop that runs beside the watch loop.

    It talks to the watch loop only through ``ProgressState``: it reads the
    current hint and sets the quit flag.
    """

    def __init__(
        self,
        state: ProgressState,
        read_line: ReadLineFn = _stdin_readline,
        print_fn: PrintFn = print,
    ) -> None:
        self._state = state
        self._read_line = read_line
        self._print = print_fn
        self._thread: threading.Thread | None = None

    def handle(self, raw: str) -> bool:
        """Execute one command; return False when the shell should stop."""
        command = raw.strip()
        if not command:
            return True
        if command == "hint":
            hint = self._state.current_hint()
            if hint:
                self._print(hint)
        elif command == "clear":
            self._print(CLEAR_SCREEN)
        elif command == "quit":
            self._state.request_quit()
            self._print("Bye!")
            return False
        elif command == "help":
            self._print(HELP_TEXT)
        else:
            self._print(f"unknown command: {command}")
        return True

    def run(self) -> None:
        while True:
            try:
                line = self._read_line()
            except (OSError, ValueError) as exc:
                self._print(f"error reading command: {exc}")
                return
            if line == "":
                return
            if not self.handle(line):
                return

    def start(self) -> threading.Thread:
        self._print(
            "Welcome to watch mode! You can type 'help' to get an overview "
            "of the commands you can use here."
        )
        self._thread = threading.Thread(target=self.run, name="excheck-shell", daemon=True)
        self._thread.start()
        return self._thread
