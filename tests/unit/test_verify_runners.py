from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

from excheck.errors import ProcessSpawnError
from excheck.verify.runners import TIMEOUT_EXIT_CODE, render_argv, run_command


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def test_run_command_captures_raw_bytes(tmp_path: Path) -> None:
    code = "import sys; sys.stdout.write('out\\x1b[0m'); sys.stderr.write('err'); sys.exit(3)"

    result = run_command(_python(code), cwd=tmp_path, timeout_seconds=10)

    assert result.exit_code == 3
    assert result.stdout == b"out\x1b[0m"
    assert result.stderr == b"err"
    assert result.ok is False
    assert result.timed_out is False


def test_run_command_non_interactive_stdin(tmp_path: Path) -> None:
    code = "import sys; data=sys.stdin.read(); print(len(data))"

    result = run_command(_python(code), cwd=tmp_path, timeout_seconds=10)

    assert result.ok is True
    assert result.stdout.strip() == b"0"


def test_run_command_drains_large_output(tmp_path: Path) -> None:
    code = "import sys; sys.stdout.write('x' * 500000); sys.stderr.write('y' * 500000)"

    result = run_command(_python(code), cwd=tmp_path, timeout_seconds=30)

    assert result.ok is True
    assert len(result.stdout) == 500000
    assert len(result.stderr) == 500000


def test_run_command_timeout_is_bounded(tmp_path: Path) -> None:
    started = time.perf_counter()

    result = run_command(_python("import time; time.sleep(5)"), cwd=tmp_path, timeout_seconds=1)

    elapsed = time.perf_counter() - started
    assert result.timed_out is True
    assert result.exit_code == TIMEOUT_EXIT_CODE
    assert elapsed < 6


def test_run_command_spawn_failure_raises(tmp_path: Path) -> None:
    with pytest.raises(ProcessSpawnError) as excinfo:
        run_command(["excheck-no-such-compiler-xyz", "--version"], cwd=tmp_path, timeout_seconds=5)
    assert excinfo.value.argv[0] == "excheck-no-such-compiler-xyz"


def test_render_argv_substitutes_placeholders() -> None:
    argv = render_argv(["rustc", "{source}", "-o", "{binary}"], source="a.rs", binary="/tmp/a")
    assert argv == ["rustc", "a.rs", "-o", "/tmp/a"]
