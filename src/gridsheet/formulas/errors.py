"""Error types for formula parsing and evaluation."""

from __future__ import annotations

from dataclasses import dataclass


class FormulaError(Exception):
    """Base class for all formula-related errors.

    Raised from ``set_content`` it is a format failure: the edit is rejected
    and nothing in the sheet changes.
    """


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
        message: Human-readable description.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class InvalidCellNameError(FormulaError):
    """A cell name (edited cell or formula reference) failed validation.

    Attributes:
        name: The rejected name, as written.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Invalid cell name: {name!r}")


class FormulaRefError(FormulaError):
    """Reference to a cell that holds no usable value.

    Attributes:
        ref_name: The unresolved reference.
    """

    def __init__(self, ref_name: str, reason: str = "cell is empty") -> None:
        self.ref_name = ref_name
        super().__init__(f"Cannot use {ref_name!r}: {reason}")


class FormulaFunctionError(FormulaError):
    """Unknown function or wrong number of arguments.

    Attributes:
        func_name: The function that caused the error.
    """

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


@dataclass(frozen=True)
class FormulaErrorValue:
    """Computed value of a formula that could not be evaluated.

    Returned (never raised) by the engine, e.g. for a division by zero or a
    reference to an empty or non-numeric cell.
    """

    reason: str

    def __str__(self) -> str:
        return self.reason
