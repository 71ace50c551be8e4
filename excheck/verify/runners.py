from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, Callable, Sequence

from ..errors import ProcessSpawnError
from ..models import ProcessOutcome
from ..utils import get_logger

TIMEOUT_EXIT_CODE = 124
_READ_CHUNK = 65536

logger = get_logger(__name__)


def render_argv(template: Sequence[str], **values: str) -> list[str]:
    """Substitute ``{source}``-style placeholders in a toolchain template."""
    rendered: list[str] = []
    for item in template:
        text = str(item)
        for key, value in values.items():
            text = text.replace("{" + key + "}", str(value))
        rendered.append(text)
    return rendered


def _resolve_preexec_fn() -> Callable[[], None] | None:
    """Return a safe preexec function for Unix-like systems only."""
    if os.name == "nt":
        return None
    setsid = getattr(os, "setsid", None)
    if callable(setsid):
        return setsid
    return None


def _kill_process_tree(process: subprocess.Popen[bytes]) -> None:
    if process.poll() is not None:
        return

    if os.name == "nt":
        try:
            subprocess.run(
                ["taskkill", "/PID", str(process.pid), "/T", "/F"],
                check=False,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
                timeout=10,
            )
        except (subprocess.TimeoutExpired, OSError):
            process.kill()
        return

    killpg = getattr(os, "killpg", None)
    getpgid = getattr(os, "getpgid", None)
    try:
        if callable(killpg) and callable(getpgid):
            pgid = int(getpgid(process.pid))
            killpg(pgid, signal.SIGTERM)
            time.sleep(0.1)
            if process.poll() is None:
                killpg(pgid, getattr(signal, "SIGKILL", signal.SIGTERM))
        else:
            process.terminate()
            time.sleep(0.1)
            if process.poll() is None:
                process.kill()
    except (OSError, PermissionError):
        # Group already gone or not ours; fall back to the direct child.
        if process.poll() is None:
            process.kill()


def _drain_pipe(pipe: IO[bytes] | None, chunks: list[bytes]) -> None:
    if pipe is None:
        return
    try:
        while True:
            chunk = pipe.read(_READ_CHUNK)
            if not chunk:
                break
            chunks.append(chunk)
    finally:
        pipe.close()


def run_command(
    argv: Sequence[str],
    cwd: Path,
    timeout_seconds: float,
) -> ProcessOutcome:
    """Run one toolchain invocation to completion and capture its raw output.

    Both pipes are drained on helper threads so a chatty child never blocks
    on a full pipe. Nothing about the output is interpreted here.

    Raises:
        ProcessSpawnError: the executable could not be started.
    """
    command = [str(item) for item in argv]
    started = time.perf_counter()
    logger.debug("spawn %s (cwd=%s)", command, cwd)
    try:
        process = subprocess.Popen(
            command,
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            preexec_fn=_resolve_preexec_fn(),
        )
    except (OSError, ValueError, subprocess.SubprocessError) as exc:
        raise ProcessSpawnError(command, str(exc)) from exc

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []
    readers = [
        threading.Thread(
            target=_drain_pipe, args=(process.stdout, stdout_chunks), daemon=True
        ),
        threading.Thread(
            target=_drain_pipe, args=(process.stderr, stderr_chunks), daemon=True
        ),
    ]
    for reader in readers:
        reader.start()

    timed_out = False
    try:
        process.wait(timeout=timeout_seconds)
    except subprocess.TimeoutExpired:
        timed_out = True
        logger.warning("command timed out after %ss: %s", timeout_seconds, command)
        _kill_process_tree(process)
        process.wait()

    for reader in readers:
        reader.join()

    elapsed = time.perf_counter() - started
    return ProcessOutcome(
        argv=command,
        exit_code=TIMEOUT_EXIT_CODE if timed_out else int(process.returncode or 0),
        stdout=b"".join(stdout_chunks),
        stderr=b"".join(stderr_chunks),
        duration_seconds=round(elapsed, 3),
        timed_out=timed_out,
    )
