"""Edit-commit controller and command dispatch for one document window.

Every user action arrives as a :class:`Command` through
:meth:`GridController.dispatch`:

- ``select`` / ``move`` change the selected cell and republish it,
- ``commit`` submits new content for the selected cell,
- ``save_requested`` / ``save_as_requested`` / ``close_requested`` go to
  the document lifecycle.

A commit either fully applies (engine updated, document dirty, every
non-empty cell redrawn) or, if the engine rejects the content, changes
nothing at all.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from gridsheet.address import CellAddress, address_of
from gridsheet.display import DisplaySurface, display_text
from gridsheet.document import DEFAULT_NOTICE_DELAY, Document, DocumentLifecycle
from gridsheet.engine import SpreadsheetEngine
from gridsheet.errors import (
    INVALID_CONTENT_HELP,
    InvalidContentError,
    InvalidNameError,
    PersistenceError,
    classify_value,
)
from gridsheet.formulas.errors import FormulaError
from gridsheet.logging.events import (
    EVALUATION_ERROR,
    INVALID_CONTENT,
    EventType,
    emit_info,
    emit_warning,
)
from gridsheet.selection import Direction, SelectionTracker

logger = logging.getLogger(__name__)


class Command(str, Enum):
    select = "select"
    move = "move"
    commit = "commit"
    save_requested = "save_requested"
    save_as_requested = "save_as_requested"
    close_requested = "close_requested"


class GridController:
    """Keeps the display in step with the engine for one document.

    Parameters
    ----------
    engine : SpreadsheetEngine
        Owner of cell contents and values.
    display : DisplaySurface
        Where grid text and the selected cell are shown.
    lifecycle : DocumentLifecycle
        Save/close handling and the document dirty flag.
    """

    def __init__(
        self,
        engine: SpreadsheetEngine,
        display: DisplaySurface,
        lifecycle: DocumentLifecycle,
    ) -> None:
        self.engine = engine
        self.display = display
        self.lifecycle = lifecycle
        self.selection = SelectionTracker(on_change=lambda _addr: self.refresh())
        self._commands: dict[Command, Callable[..., Any]] = {
            Command.select: self.select,
            Command.move: self.move,
            Command.commit: self.commit,
            Command.save_requested: self.lifecycle.save_requested,
            Command.save_as_requested: self.lifecycle.save_as_requested,
            Command.close_requested: self.lifecycle.close_requested,
        }

    @property
    def document(self) -> Document:
        return self.lifecycle.document

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, command: Command | str, *args: Any) -> Any:
        """Run one command to completion and return its result.

        User-facing failures are shown through ``display.show_error`` and
        then re-raised to the caller.
        """
        handler = self._commands[Command(command)]
        try:
            return handler(*args)
        except InvalidContentError as exc:
            self.display.show_error(exc.title, INVALID_CONTENT_HELP)
            raise
        except (InvalidNameError, PersistenceError) as exc:
            self.display.show_error(exc.title, str(exc))
            raise

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, target: CellAddress | str) -> CellAddress:
        """Select a cell by address or by name."""
        if isinstance(target, str):
            self.selection.select_name(target)
        else:
            self.selection.select(CellAddress(*target))
        return self.selection.current

    def move(self, direction: Direction | str) -> bool:
        return self.selection.move(Direction(direction))

    def refresh(self) -> None:
        """Republish the selected cell's name, value and content."""
        name = self.selection.name
        value = display_text(self.engine.get_value(name))
        self.display.show_selection(name, value, self.engine.get_raw_content(name))

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def commit(self, content: str) -> str:
        """Set the selected cell to *content* and redraw the grid.

        Returns:
            The text now displayed for the edited cell.

        Raises:
            InvalidContentError: The engine rejected the content; nothing
                changed.
        """
        address = self.selection.current
        name = address.name

        try:
            self.engine.set_content(name, content)
        except FormulaError as exc:
            emit_warning(
                EventType.commit_rejected,
                f"Rejected content for {name}",
                {"cell": name, "content": content, "reason": str(exc)},
                error_code=INVALID_CONTENT,
            )
            raise InvalidContentError(name, content, str(exc)) from exc

        self.lifecycle.mark_dirty()

        value = self.engine.get_value(name)
        text = display_text(value)
        self.display.set_cell(address, text)
        self.display.show_selection(name, text, self.engine.get_raw_content(name))

        context: dict[str, Any] = {"cell": name, "content": content, "display": text}
        evaluation_error = classify_value(name, value)
        if evaluation_error is not None:
            context["error_code"] = EVALUATION_ERROR
            context["reason"] = evaluation_error.reason
        emit_info(EventType.commit_accepted, f"Set {name}", context)

        self.redraw_all()
        return text

    def redraw_all(self) -> int:
        """Push the current value of every non-empty cell to the grid.

        Returns:
            Number of cells redrawn.
        """
        names = self.engine.list_nonempty_cells()
        for name in names:
            self.display.set_cell(address_of(name), display_text(self.engine.get_value(name)))
        logger.debug("Redrew %d cell(s)", len(names))
        return len(names)


def open_window(
    engine: SpreadsheetEngine,
    display: DisplaySurface,
    *,
    bound_path: Path | None = None,
    notice_delay: float = DEFAULT_NOTICE_DELAY,
    extension: str = "",
) -> GridController:
    """Wire a controller for *engine* and show its cells with ``A1`` selected.

    *bound_path* is the file the engine was loaded from, if any.
    """
    lifecycle = DocumentLifecycle(
        engine,
        display,
        Document(bound_path=bound_path),
        notice_delay=notice_delay,
        extension=extension,
    )
    controller = GridController(engine, display, lifecycle)
    controller.redraw_all()
    controller.refresh()
    return controller
