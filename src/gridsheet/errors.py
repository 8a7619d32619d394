"""User-facing error taxonomy and the engine-failure classifier.

Engine failures reach the user in exactly three categories:

- ``invalid_content`` -- the edit was rejected (syntax, bad name or
  reference, circular reference).  The transaction is aborted.
- ``evaluation`` -- the edit was kept but its value is unusable.  Shown in
  the grid as the ``FormulaError`` marker, never as an interruption.
- ``persistence`` -- a save or open failed at the I/O boundary.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from gridsheet.formulas.errors import FormulaError, FormulaErrorValue

FORMULA_ERROR_MARKER = "FormulaError"

INVALID_CONTENT_TITLE = "Invalid Cell Name"
INVALID_CONTENT_HELP = (
    "Valid cells are in the range of A1-Z99.\n"
    "\n"
    "Examples:\n"
    "    Valid Cells: A1, G22, K89\n"
    "    Invalid Cells: A100, G200, AA1, A01, K00001"
)

PERSISTENCE_TITLE = "File Error"


class ErrorCategory(str, Enum):
    invalid_content = "invalid_content"
    evaluation = "evaluation"
    persistence = "persistence"


class GridsheetError(Exception):
    """Base class for errors surfaced by the grid controller."""

    title = "Error"


class InvalidNameError(GridsheetError, ValueError):
    """A cell name or address lies outside the A1-Z99 grid.

    Attributes:
        name: The rejected name (or a ``(column, row)`` description).
    """

    title = INVALID_CONTENT_TITLE

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Invalid cell name: {name!r}")


class InvalidContentError(GridsheetError):
    """The engine refused the submitted content; nothing was changed.

    Attributes:
        name: The cell being edited.
        content: The rejected text.
        reason: The engine's description of the failure.
    """

    title = INVALID_CONTENT_TITLE

    def __init__(self, name: str, content: str, reason: str) -> None:
        self.name = name
        self.content = content
        self.reason = reason
        super().__init__(f"Cannot set {name} to {content!r}: {reason}")

    @property
    def help_text(self) -> str:
        return INVALID_CONTENT_HELP


class EvaluationError(GridsheetError):
    """A kept edit whose value could not be computed.

    Never raised by a commit; built by :func:`classify_value` so the reason
    can be reported alongside the ``FormulaError`` marker.
    """

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"{name}: {reason}")


class PersistenceError(GridsheetError):
    """A save or open failed; document state is as it was before the attempt.

    Attributes:
        path: The file involved.
        reason: Description of the I/O failure.
    """

    title = PERSISTENCE_TITLE

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Could not access {path}: {reason}")


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify(exc: BaseException) -> ErrorCategory | None:
    """Map an engine-reported failure to its user-facing category.

    Returns ``None`` for exceptions that are not engine failures; callers
    should let those propagate.
    """
    if isinstance(exc, (InvalidContentError, InvalidNameError, FormulaError)):
        return ErrorCategory.invalid_content
    if isinstance(exc, EvaluationError):
        return ErrorCategory.evaluation
    if isinstance(exc, (PersistenceError, OSError)):
        return ErrorCategory.persistence
    return None


def classify_value(name: str, value: Any) -> EvaluationError | None:
    """Return an :class:`EvaluationError` if *value* is the engine's error marker."""
    if isinstance(value, FormulaErrorValue):
        return EvaluationError(name, value.reason)
    return None
