"""Contract between the grid controller and a spreadsheet engine.

The controller only ever talks to the engine through this protocol, so it
can be driven by :class:`gridsheet.spreadsheet.Spreadsheet` or by a fake in
tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Collection, Protocol, runtime_checkable


class SpreadsheetReadError(OSError):
    """A spreadsheet file exists but its contents cannot be used."""


@runtime_checkable
class SpreadsheetEngine(Protocol):
    """Formula/dependency engine holding the cells of one document."""

    @property
    def changed(self) -> bool:
        """True iff an edit was accepted since the last successful save."""
        ...

    def set_content(self, name: str, text: str) -> Collection[str] | None:
        """Set the raw content of *name*.

        ``""`` empties the cell, ``"=..."`` is a formula, anything else a
        number or text literal.  Values of dependent cells are updated.

        Raises:
            FormulaError: Format failure (bad name, syntax, reference or
                circular dependency).  Nothing is changed.
        """
        ...

    def get_value(self, name: str) -> Any:
        """Return the computed value: a number, text, or ``FormulaErrorValue``."""
        ...

    def get_raw_content(self, name: str) -> str:
        """Return the content as it should appear in the edit field."""
        ...

    def list_nonempty_cells(self) -> set[str]:
        """Names of all cells with content, in no particular order."""
        ...

    def save(self, path: Path) -> None:
        """Write the sheet to *path*.

        Raises:
            OSError: If the file cannot be written.
        """
        ...

