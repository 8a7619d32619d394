"""Shared service layer for the gridsheet browser UI.

One :class:`SheetService` owns one document window: the engine, the
controller and its document lifecycle, and the in-memory
:class:`~gridsheet.display.GridDisplay` the browser renders.  Every public
method runs one command to completion and returns a JSON-ready dict.

An HTTP client cannot answer a modal dialog in the middle of a request, so
the answers travel with the request instead: ``save``/``close`` take the
destination path and the save/discard/cancel decision as arguments and the
service queues them on the display before dispatching.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable

from gridsheet import __version__
from gridsheet.address import N_COLS, N_ROWS, CellAddress
from gridsheet.controller import Command, GridController, open_window
from gridsheet.display import CloseDecision, GridDisplay, MonotonicScheduler
from gridsheet.errors import INVALID_CONTENT_HELP, GridsheetError, PersistenceError
from gridsheet.logging.events import (
    PERSISTENCE_FAILED,
    EventType,
    emit_error,
    emit_info,
    set_log_dir,
)
from gridsheet.project import config_dir_for, load_config, resolve_log_dir
from gridsheet.spreadsheet import Spreadsheet

logger = logging.getLogger(__name__)

HELP_TEXT = """\
Selecting cells
    Click a cell or use the arrow keys. The name, value and contents of the
    selected cell are shown above the grid.

Changing contents
    Type into the contents box and press Enter. Contents may be a number,
    text, or a formula starting with "=", for example =A1+B2*2 or
    =SUM(A1, A2, A3). Cell names in formulas may be typed in lower case.

Errors
    A formula that cannot be computed (division by zero, a reference to an
    empty or text cell) shows FormulaError. Invalid formulas, references
    outside A1-Z99 and circular references are rejected and the cell keeps
    its previous contents.

Files
    Save writes to the current file, asking for a name the first time.
    Save As always asks. Closing with unsaved changes asks whether to save.
"""


class SavePathRequiredError(GridsheetError):
    """Save was requested for a never-saved document without a path."""

    title = "Save"

    def __init__(self) -> None:
        super().__init__("This document has not been saved yet; a path is required")


class CloseVetoedError(GridsheetError):
    """The user cancelled closing (or the save before closing failed)."""

    title = "Close"

    def __init__(self) -> None:
        super().__init__("Close cancelled; the document has unsaved changes")


class DocumentClosedError(GridsheetError):
    title = "Closed"

    def __init__(self) -> None:
        super().__init__("The document is closed; create or open one")


class SheetService:
    """In-memory service wrapping one spreadsheet window.

    Parameters
    ----------
    file : Path | None
        Spreadsheet to open.  ``None`` starts an empty, unbound document.
    config : dict | None
        Settings; loaded from ``gridsheet.yaml`` when omitted.
    clock : callable
        Time source for the saved-notice timer.
    """

    def __init__(
        self,
        file: Path | None = None,
        config: dict[str, Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config_dir = config_dir_for(file)
        self.config = config if config is not None else load_config(config_dir)
        set_log_dir(
            resolve_log_dir(self.config, config_dir),
            fsync=bool(self.config.get("logging_fsync", False)),
            tail_bytes=self.config.get("logging_tail_bytes"),
        )
        self.scheduler = MonotonicScheduler(clock)
        self.closed = False
        self._start(self._new_engine(), None)
        if file is not None:
            self.open_document(file)

    # ------------------------------------------------------------------
    # Window management
    # ------------------------------------------------------------------

    def _new_engine(self) -> Spreadsheet:
        return Spreadsheet(version=self.config["spreadsheet_version"])

    def _start(self, engine: Spreadsheet, path: Path | None) -> None:
        self.engine = engine
        self.display = GridDisplay(self.scheduler)
        self.controller: GridController = open_window(
            engine,
            self.display,
            bound_path=path,
            notice_delay=float(self.config["saved_notice_delay"]),
            extension=self.config["file_extension"],
        )
        self.closed = False

    def _pump(self) -> None:
        self.scheduler.run_due()

    def _require_open(self) -> None:
        self._pump()
        if self.closed:
            raise DocumentClosedError()

    def _dispatch(self, command: Command, *args: Any) -> Any:
        try:
            return self.controller.dispatch(command, *args)
        finally:
            self.display.clear_answers()

    def _close_current(self, decision: str | None, path: str | None) -> None:
        """Run the close protocol on the open document, if any."""
        if self.closed:
            return
        if decision is not None:
            self.display.answer_close(CloseDecision(decision))
        if path:
            self.display.answer_save_path(path)
        if not self._dispatch(Command.close_requested):
            raise CloseVetoedError()
        self.closed = True

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_state(self) -> dict[str, Any]:
        """Everything the browser needs to render the window."""
        self._pump()
        snapshot = self.display.snapshot()
        document = self.controller.document
        path = document.bound_path
        return {
            "version": __version__,
            "size": {"columns": N_COLS, "rows": N_ROWS},
            "grid": snapshot["cells"],
            "selection": snapshot["selection"],
            "saved_notice": snapshot["saved_notice"],
            "document": {
                "title": path.name if path else self.config["default_filename"],
                "path": str(path) if path else None,
                "dirty": document.dirty,
                "closed": self.closed,
            },
        }

    def help(self) -> dict[str, str]:
        return {"help": HELP_TEXT, "cell_names": INVALID_CONTENT_HELP}

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def select(
        self,
        name: str | None = None,
        column: int | None = None,
        row: int | None = None,
    ) -> dict[str, Any]:
        """Select a cell by name, or by zero-based ``column``/``row``."""
        self._require_open()
        if name is not None:
            self._dispatch(Command.select, name)
        elif column is not None and row is not None:
            self._dispatch(Command.select, CellAddress(column, row))
        else:
            raise ValueError("Provide a cell name or both column and row")
        return self.get_state()

    def move(self, direction: str) -> dict[str, Any]:
        self._require_open()
        moved = self._dispatch(Command.move, direction)
        return {"moved": moved, **self.get_state()}

    def commit(self, content: str) -> dict[str, Any]:
        self._require_open()
        text = self._dispatch(Command.commit, content)
        return {"display": text, **self.get_state()}

    def save(self, path: str | None = None) -> dict[str, Any]:
        """Save to the bound path, or to *path* when the document is unbound."""
        self._require_open()
        if path:
            if self.controller.document.bound:
                return self.save_as(path)
            self.display.answer_save_path(path)
        elif not self.controller.document.bound:
            raise SavePathRequiredError()
        self._dispatch(Command.save_requested)
        return self.get_state()

    def save_as(self, path: str) -> dict[str, Any]:
        self._require_open()
        if not path:
            raise ValueError("A destination path is required")
        self.display.answer_save_path(path)
        self._dispatch(Command.save_as_requested)
        return self.get_state()

    def close(self, decision: str | None = None, path: str | None = None) -> dict[str, Any]:
        """Close the document.

        *decision* answers "save changes?" (``save``/``discard``/``cancel``);
        *path* is where to save if the document was never saved.

        Raises:
            CloseVetoedError: If the close was cancelled.
        """
        self._pump()
        self._close_current(decision, path)
        return self.get_state()

    def new_document(self, decision: str | None = None, path: str | None = None) -> dict[str, Any]:
        """Close the current document and start an empty, unbound one."""
        self._pump()
        self._close_current(decision, path)
        self._start(self._new_engine(), None)
        logger.debug("Started new document")
        return self.get_state()

    def open_document(
        self,
        file: Path | str,
        decision: str | None = None,
        path: str | None = None,
    ) -> dict[str, Any]:
        """Load *file* in place of the current document.

        The file is read before the current document is closed, so a file
        that cannot be read leaves the current document as it was.

        Raises:
            PersistenceError: If *file* cannot be read or is not a valid
                spreadsheet.
        """
        self._pump()
        file = Path(file)
        try:
            engine = Spreadsheet.load(file, version=self.config["spreadsheet_version"])
        except OSError as exc:
            reason = exc.strerror or str(exc)
            emit_error(
                EventType.document_open_failed,
                f"Could not open {file}",
                {"path": str(file), "reason": reason},
                error_code=PERSISTENCE_FAILED,
            )
            error = PersistenceError(str(file), reason)
            self.display.show_error(error.title, str(error))
            raise error from exc

        self._close_current(decision, path)
        self._start(engine, file)
        emit_info(
            EventType.document_opened,
            f"Opened {file}",
            {"path": str(file), "cells": len(engine.list_nonempty_cells())},
        )
        return self.get_state()
