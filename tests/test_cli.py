"""Tests for the gridsheet command line."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from gridsheet import __version__
from gridsheet.cli_core import main
from gridsheet.logging.events import EventLevel, EventType, GridEvent
from gridsheet.logging.sink import EventSink
from gridsheet.spreadsheet import Spreadsheet


@pytest.fixture
def served(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Capture uvicorn.run calls instead of starting a server."""
    calls: list[dict[str, Any]] = []

    def fake_run(app: Any, **kwargs: Any) -> None:
        calls.append({"app": app, **kwargs})

    monkeypatch.setattr("uvicorn.run", fake_run)
    return calls


class TestVersion:
    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestOpen:
    def test_new_document(self, served: list) -> None:
        result = CliRunner().invoke(main, ["open", "--no-open", "--port", "8765"])
        assert result.exit_code == 0, result.output
        assert "http://127.0.0.1:8765" in result.output
        assert served[0]["port"] == 8765
        assert served[0]["host"] == "127.0.0.1"

    def test_existing_file(self, served: list, tmp_path: Path) -> None:
        sheet = Spreadsheet()
        sheet.set_content("A1", "3")
        sheet.save(tmp_path / "book.sprd")

        result = CliRunner().invoke(main, ["open", str(tmp_path / "book.sprd"), "--no-open"])
        assert result.exit_code == 0, result.output
        assert isinstance(served[0]["port"], int)

    def test_unreadable_file(self, served: list, tmp_path: Path) -> None:
        bad = tmp_path / "bad.sprd"
        bad.write_text("version: other\ncells: {}\n")
        result = CliRunner().invoke(main, ["open", str(bad), "--no-open"])
        assert result.exit_code != 0
        assert "version" in result.output
        assert served == []

    def test_non_utf8_file(self, served: list, tmp_path: Path) -> None:
        bad = tmp_path / "bad.sprd"
        bad.write_bytes(b"version: ps6\ncells:\n  A1: '\xff\xfe'\n")
        result = CliRunner().invoke(main, ["open", str(bad), "--no-open"])
        assert result.exit_code != 0
        assert "not a spreadsheet file" in result.output
        assert "Invalid configuration" not in result.output
        assert served == []

    def test_invalid_config(self, served: list, tmp_path: Path) -> None:
        (tmp_path / "gridsheet.yaml").write_text("saved_notice_delay: later\n")
        result = CliRunner().invoke(main, ["open", "--no-open"])
        assert result.exit_code != 0
        assert "Invalid configuration" in result.output


class TestEvents:
    def _write(self, log_dir: Path) -> None:
        sink = EventSink(log_dir)
        sink.write(GridEvent(level=EventLevel.info, event_type=EventType.save_completed, message="Saved a.sprd"))
        sink.write(
            GridEvent(
                level=EventLevel.error,
                event_type=EventType.save_failed,
                message="Save failed",
                error_code="persistence_failed",
            )
        )

    def test_lists_events(self, tmp_path: Path) -> None:
        self._write(tmp_path / "logs")
        result = CliRunner().invoke(main, ["events", "--log-dir", str(tmp_path / "logs")])
        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert "save_failed" in lines[0]
        assert "(persistence_failed)" in lines[0]
        assert "save_completed" in lines[1]

    def test_filters_and_json(self, tmp_path: Path) -> None:
        self._write(tmp_path / "logs")
        result = CliRunner().invoke(
            main, ["events", "--log-dir", str(tmp_path / "logs"), "--level", "info", "--json"]
        )
        assert result.exit_code == 0, result.output
        events = json.loads(result.output)
        assert [e["event_type"] for e in events] == ["save_completed"]

    def test_default_log_dir(self, tmp_path: Path) -> None:
        self._write(tmp_path / ".gridsheet" / "logs")
        result = CliRunner().invoke(main, ["events", "--type", "save_completed"])
        assert result.exit_code == 0, result.output
        assert "Saved a.sprd" in result.output

    def test_no_events(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["events", "--log-dir", str(tmp_path / "empty")])
        assert result.exit_code == 0
        assert "No events found." in result.output

    def test_logging_disabled(self, tmp_path: Path) -> None:
        (tmp_path / "gridsheet.yaml").write_text("log_dir: null\n")
        result = CliRunner().invoke(main, ["events"])
        assert result.exit_code != 0
        assert "disabled" in result.output
