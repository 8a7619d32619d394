"""Translation between grid coordinates and cell names.

The grid is 26 columns (``A``-``Z``) by 99 rows (``1``-``99``).  A cell
name is exactly one uppercase letter followed by a row number without a
leading zero, so ``A1`` and ``Z99`` are valid while ``a1``, ``AA1``,
``A01`` and ``A100`` are not.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from gridsheet.errors import InvalidNameError

N_COLS = 26
N_ROWS = 99

_NAME_RE = re.compile(r"([A-Z])([1-9][0-9]?)")


class CellAddress(NamedTuple):
    """Zero-based ``(column, row)`` position in the grid."""

    column: int
    row: int

    @property
    def name(self) -> str:
        return name_of(self.column, self.row)


def in_grid(column: int, row: int) -> bool:
    return 0 <= column < N_COLS and 0 <= row < N_ROWS


def name_of(column: int, row: int) -> str:
    """Build a cell name from 0-based column/row.  (0, 0) -> ``"A1"``.

    The caller guarantees the position is inside the grid.
    """
    return f"{chr(ord('A') + column)}{row + 1}"


def address_of(name: str) -> CellAddress:
    """Parse ``"G22"`` -> ``CellAddress(column=6, row=21)``.

    Raises:
        InvalidNameError: If *name* is not a cell name inside the grid.
    """
    m = _NAME_RE.fullmatch(name) if isinstance(name, str) else None
    if not m:
        raise InvalidNameError(name)
    return CellAddress(ord(m.group(1)) - ord("A"), int(m.group(2)) - 1)


def is_valid_name(name: str) -> bool:
    """Predicate form of :func:`address_of`."""
    return isinstance(name, str) and _NAME_RE.fullmatch(name) is not None


def check_address(address: CellAddress) -> CellAddress:
    """Return *address* unchanged, or raise if it lies outside the grid."""
    column, row = address
    if not in_grid(column, row):
        raise InvalidNameError(f"({column}, {row})")
    return CellAddress(column, row)
