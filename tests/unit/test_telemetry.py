from __future__ import annotations

import json
from pathlib import Path

from excheck.telemetry.events import DataGather, Record


def test_record_keeps_error_until_path_changes(tmp_path: Path) -> None:
    record = Record()
    record.reset_path(Path("exercises/a.rs"))
    record.set_error("error: expected `;`")
    record.reset_path(Path("exercises/a.rs"))
    assert record.error == "error: expected `;`"

    record.reset_path(Path("exercises/b.rs"))
    assert record.error == ""
    assert record.path == "exercises/b.rs"


def test_push_appends_jsonl(tmp_path: Path) -> None:
    source = tmp_path / "a.rs"
    source.write_text("fn main() {}\n", encoding="utf-8")
    sink = DataGather(tmp_path / "logs" / "data.jsonl")
    record = Record()
    record.reset_path("exercises/a.rs")
    record.set_error("mismatched types")
    assert record.read_right_code(source) is True

    sink.push(record)
    sink.push(record)

    rows = [json.loads(line) for line in sink.path.read_text(encoding="utf-8").splitlines()]
    assert len(rows) == 2
    assert rows[0]["path"] == "exercises/a.rs"
    assert rows[0]["status"] == "right"
    assert rows[0]["code"] == "fn main() {}\n"
    assert rows[0]["error"] == "mismatched types"
    assert "ts" in rows[0]


def test_disabled_sink_writes_nothing(tmp_path: Path) -> None:
    sink = DataGather(tmp_path / "data.jsonl", enabled=False)
    sink.push(Record(path="exercises/a.rs"))
    assert not sink.path.exists()


def test_read_right_code_missing_file(tmp_path: Path) -> None:
    assert Record().read_right_code(tmp_path / "missing.rs") is False
