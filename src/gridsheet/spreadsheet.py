"""Reference :class:`~gridsheet.engine.SpreadsheetEngine` implementation.

Cells are kept as plain dicts (``{"formula": "=A1+2"}`` or
``{"value": 5.0}``) and evaluated through a :class:`CellGraph`.  Files are
YAML documents::

    version: ps6
    cells:
      A1: '5'
      B1: =A1+2
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Callable

import yaml

from gridsheet.address import is_valid_name
from gridsheet.cell_graph import CellGraph, display_value
from gridsheet.engine import SpreadsheetReadError
from gridsheet.formulas.errors import FormulaError, InvalidCellNameError
from gridsheet.formulas.parser import normalize_formula

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "ps6"

_NUMBER_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


class Spreadsheet:
    """A single sheet of cells with formula evaluation.

    Parameters
    ----------
    is_valid : callable
        Extra validity check applied (after normalization) to every cell
        name, both edited cells and formula references.
    normalize : callable
        Maps names as typed to their canonical form.
    version : str
        Written to saved files and required when loading.
    """

    def __init__(
        self,
        is_valid: Callable[[str], bool] = is_valid_name,
        normalize: Callable[[str], str] = str.upper,
        version: str = DEFAULT_VERSION,
    ) -> None:
        self.is_valid = is_valid
        self.normalize = normalize
        self.version = version
        self._cells: dict[str, dict[str, Any]] = {}
        self._graph = CellGraph(self._cells, normalize=self._check_name)
        self._changed = False

    @property
    def changed(self) -> bool:
        return self._changed

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def _check_name(self, name: str) -> str:
        """Normalize *name* and validate it, raising InvalidCellNameError."""
        if not isinstance(name, str) or not re.fullmatch(r"[A-Za-z]+[0-9]+", name):
            raise InvalidCellNameError(str(name))
        normalized = self.normalize(name)
        if not self.is_valid(normalized):
            raise InvalidCellNameError(name)
        return normalized

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def set_content(self, name: str, text: str) -> None:
        """Set the content of *name*; dependents are recomputed when next read.

        Raises:
            FormulaError: If the name, formula syntax or a reference is
                invalid, or the edit would create a circular reference.
                The sheet is left unchanged.
        """
        name = self._check_name(name)
        new_cell = self._parse_content(text)

        previous = self._cells.get(name)
        if new_cell is None:
            self._cells.pop(name, None)
        else:
            self._cells[name] = new_cell
            if "formula" in new_cell:
                try:
                    self._graph.check_acyclic(name)
                except FormulaError:
                    self._restore(name, previous)
                    raise

        self._changed = True
        self._graph.invalidate()
        logger.debug("Set %s", name)

    def dependents(self, name: str) -> set[str]:
        """Cells whose values depend on *name*, directly or indirectly."""
        return self._graph.dependents(self._check_name(name))

    def _restore(self, name: str, previous: dict[str, Any] | None) -> None:
        if previous is None:
            self._cells.pop(name, None)
        else:
            self._cells[name] = previous

    def _parse_content(self, text: str) -> dict[str, Any] | None:
        """Classify raw text into a cell dict (``None`` for empty)."""
        if text is None:
            raise FormulaError("Content must be a string")
        if text == "":
            return None
        if text.startswith("="):
            formula, refs = normalize_formula(text, self.normalize)
            for ref in sorted(refs):
                if not self.is_valid(ref):
                    raise InvalidCellNameError(ref)
            return {"formula": formula}
        if _NUMBER_RE.fullmatch(text.strip()):
            return {"value": float(text)}
        return {"value": text}

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get_value(self, name: str) -> Any:
        """Return the computed value of *name* (``""`` for an empty cell)."""
        value = self._graph.evaluate_cell(self._check_name(name))
        return "" if value is None else value

    def get_raw_content(self, name: str) -> str:
        cell = self._cells.get(self._check_name(name))
        if cell is None:
            return ""
        if "formula" in cell:
            return cell["formula"]
        return display_value(cell["value"])

    def list_nonempty_cells(self) -> set[str]:
        return set(self._cells)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "cells": {name: self.get_raw_content(name) for name in sorted(self._cells)},
        }

    def save(self, path: Path) -> None:
        """Write the sheet to *path* as YAML and clear :attr:`changed`.

        The previous file at *path* is replaced only once the new one is
        fully written.

        Raises:
            OSError: If the file cannot be written.
        """
        path = Path(path)
        text = yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)
        # Atomic write: tmp file then os.replace
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(str(tmp_path), str(path))
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        self._changed = False
        logger.debug("Saved %d cell(s) to %s", len(self._cells), path)

    @classmethod
    def load(
        cls,
        path: Path,
        is_valid: Callable[[str], bool] = is_valid_name,
        normalize: Callable[[str], str] = str.upper,
        version: str = DEFAULT_VERSION,
    ) -> Spreadsheet:
        """Read a sheet previously written by :meth:`save`.

        Raises:
            OSError: If the file cannot be read.
            SpreadsheetReadError: If the contents are malformed, were saved
                with another version, or hold invalid cells.
        """
        try:
            raw = Path(path).read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise SpreadsheetReadError(f"{path}: not a spreadsheet file ({exc})") from exc
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise SpreadsheetReadError(f"{path}: not a spreadsheet file ({exc})") from exc

        if not isinstance(data, dict) or not isinstance(data.get("cells", {}), dict):
            raise SpreadsheetReadError(f"{path}: not a spreadsheet file")
        file_version = str(data.get("version", ""))
        if file_version != version:
            raise SpreadsheetReadError(
                f"{path}: version {file_version!r} does not match {version!r}"
            )

        sheet = cls(is_valid=is_valid, normalize=normalize, version=version)
        for name, content in (data.get("cells") or {}).items():
            try:
                sheet.set_content(str(name), "" if content is None else str(content))
            except FormulaError as exc:
                raise SpreadsheetReadError(f"{path}: cell {name}: {exc}") from exc
        sheet._changed = False
        return sheet
