"""Shared fixtures for the gridsheet tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from gridsheet.cell_graph import display_value
from gridsheet.formulas.errors import FormulaError


@pytest.fixture(autouse=True)
def _isolated_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Run every test in its own directory with the event sink switched off."""
    from gridsheet.logging.events import set_log_dir

    monkeypatch.chdir(tmp_path)
    set_log_dir(None)
    yield
    set_log_dir(None)


class FakeEngine:
    """Minimal engine: values are the literal contents unless overridden.

    ``values`` overrides what :meth:`get_value` returns for a cell,
    ``rejected`` holds contents that :meth:`set_content` refuses and
    ``fail_save`` makes :meth:`save` raise ``OSError``.
    """

    def __init__(self) -> None:
        self.contents: dict[str, str] = {}
        self.values: dict[str, Any] = {}
        self.rejected: set[str] = set()
        self.fail_save = False
        self.saved_to: list[Path] = []
        self.calls: list[tuple[str, ...]] = []
        self.changed = False

    def set_content(self, name: str, text: str) -> None:
        self.calls.append(("set_content", name, text))
        if text in self.rejected:
            raise FormulaError(f"rejected {text!r}")
        if text == "":
            self.contents.pop(name, None)
        else:
            self.contents[name] = text
        self.changed = True

    def get_value(self, name: str) -> Any:
        if name in self.values:
            return self.values[name]
        text = self.contents.get(name, "")
        try:
            return float(text)
        except ValueError:
            return text

    def get_raw_content(self, name: str) -> str:
        text = self.contents.get(name, "")
        try:
            return display_value(float(text))
        except ValueError:
            return text

    def list_nonempty_cells(self) -> set[str]:
        return set(self.contents)

    def save(self, path: Path) -> None:
        self.calls.append(("save", str(path)))
        if self.fail_save:
            raise PermissionError(13, "Permission denied", str(path))
        self.saved_to.append(Path(path))
        self.changed = False


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()
