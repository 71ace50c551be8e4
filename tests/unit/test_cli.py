from __future__ import annotations

from pathlib import Path

import pytest

import excheck.cli as cli
from excheck.models import BatchReport, ProcessOutcome
from excheck.watch.scheduler import WatchStatus


def _project(tmp_path: Path) -> Path:
    (tmp_path / "exercises").mkdir()
    (tmp_path / "exercises" / "intro1.rs").write_text("fn main() {}\n", encoding="utf-8")
    (tmp_path / "info.yaml").write_text(
        "exercises:\n"
        "  - {name: intro1, path: exercises/intro1.rs, mode: compile, hint: Read the error.}\n",
        encoding="utf-8",
    )
    return tmp_path


def test_init_writes_templates(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.run(["--project", str(tmp_path), "init"]) == 0
    assert (tmp_path / "excheck.yaml").exists()
    assert (tmp_path / "excheck.local.yaml.example").exists()
    assert "excheck.local.yaml" in (tmp_path / ".gitignore").read_text(encoding="utf-8")

    assert cli.run(["--project", str(tmp_path), "init"]) == 0
    assert "skipped" in capsys.readouterr().out


def test_reset_reports_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys) -> None:
    project_dir = _project(tmp_path)
    seen: list[str] = []

    def fake_reset(exercise, config):
        seen.append(exercise.name)
        return ProcessOutcome(argv=["git"], exit_code=0, stdout=b"", stderr=b"", duration_seconds=0.0)

    monkeypatch.setattr(cli, "toolchain_available", lambda config, cwd: True)
    monkeypatch.setattr(cli, "reset_exercise", fake_reset)
    assert cli.run(["--project", str(project_dir), "reset", "intro1"]) == 0
    assert seen == ["intro1"]
    assert "The file exercises/intro1.rs has been reset!" in capsys.readouterr().out


def test_reset_failure_exit_code(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    project_dir = _project(tmp_path)
    monkeypatch.setattr(cli, "toolchain_available", lambda config, cwd: True)
    monkeypatch.setattr(
        cli,
        "reset_exercise",
        lambda exercise, config: ProcessOutcome(
            argv=["git"], exit_code=1, stdout=b"", stderr=b"not a git repository\n", duration_seconds=0.0
        ),
    )
    assert cli.run(["--project", str(project_dir), "reset", "intro1"]) == 1


@pytest.mark.parametrize("command", [["verify"], ["hint", "intro1"], ["reset", "intro1"]])
def test_missing_toolchain_is_reported(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys, command
) -> None:
    project_dir = _project(tmp_path)
    monkeypatch.setattr(cli, "toolchain_available", lambda config, cwd: False)
    monkeypatch.setattr(cli, "reset_exercise", lambda exercise, config: pytest.fail("reset ran"))
    assert cli.run(["--project", str(project_dir), *command]) == 1
    assert "toolchain not found" in capsys.readouterr().out


@pytest.mark.parametrize(
    "status, expected",
    [
        (WatchStatus.FINISHED, "All exercises completed!"),
        (WatchStatus.UNFINISHED, "We hope you're enjoying the exercises!"),
    ],
)
def test_watch_prints_closing_message(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys, status, expected
) -> None:
    project_dir = _project(tmp_path)

    class _FakeScheduler:
        def __init__(self, exercises, config, **kwargs) -> None:
            self.exercises = exercises

        def run(self):
            return status

    monkeypatch.setattr(cli, "toolchain_available", lambda config, cwd: True)
    monkeypatch.setattr(cli, "ReverificationScheduler", _FakeScheduler)

    assert cli.run(["--project", str(project_dir), "watch"]) == 0
    assert expected in capsys.readouterr().out


def test_invalid_configuration_exit_code(tmp_path: Path, capsys) -> None:
    project_dir = _project(tmp_path)
    (project_dir / "excheck.yaml").write_text("- not\n- a mapping\n", encoding="utf-8")
    assert cli.run(["--project", str(project_dir), "hint", "intro1"]) == 1
    assert "invalid configuration" in capsys.readouterr().out


def test_batch_verify_grades_check_manifest_by_default(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys
) -> None:
    project_dir = _project(tmp_path)
    (project_dir / "exercises" / "graded1.rs").write_text("fn main() {}\n", encoding="utf-8")
    (project_dir / "check.yaml").write_text(
        "exercises:\n  - {name: graded1, path: exercises/graded1.rs, mode: compile}\n",
        encoding="utf-8",
    )
    graded: list[str] = []

    def fake_batch(exercises, config, **kwargs):
        graded.extend(item.name for item in exercises)
        return BatchReport(total_exercations=len(exercises), total_succeeds=len(exercises))

    monkeypatch.setattr(cli, "toolchain_available", lambda config, cwd: True)
    monkeypatch.setattr(cli, "run_batch", fake_batch)

    assert cli.run(["--project", str(project_dir), "myverify"]) == 0
    assert graded == ["graded1"]
    assert (project_dir / ".github" / "result" / "check_result.json").exists()


def test_batch_verify_without_check_manifest(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys) -> None:
    project_dir = _project(tmp_path)
    monkeypatch.setattr(cli, "toolchain_available", lambda config, cwd: True)
    assert cli.run(["--project", str(project_dir), "batch-verify"]) == 1
    assert "check.yaml not found" in capsys.readouterr().out
