"""Current-cell selection and arrow-key navigation."""

from __future__ import annotations

from enum import Enum
from typing import Callable

from gridsheet.address import CellAddress, address_of, check_address, in_grid


class Direction(str, Enum):
    up = "up"
    down = "down"
    left = "left"
    right = "right"

    @property
    def delta(self) -> tuple[int, int]:
        """``(d_column, d_row)`` for one step in this direction."""
        return _DELTAS[self]


_DELTAS = {
    Direction.up: (0, -1),
    Direction.down: (0, 1),
    Direction.left: (-1, 0),
    Direction.right: (1, 0),
}


class SelectionTracker:
    """Holds the selected cell and notifies a refresh callback on change.

    Moves that would leave the grid are ignored and do not notify.
    """

    def __init__(
        self,
        on_change: Callable[[CellAddress], None] | None = None,
        start: CellAddress = CellAddress(0, 0),
    ) -> None:
        self._current = check_address(start)
        self._on_change = on_change

    @property
    def current(self) -> CellAddress:
        return self._current

    @property
    def name(self) -> str:
        return self._current.name

    def select(self, address: CellAddress) -> None:
        """Select *address* and refresh.

        Raises:
            InvalidNameError: If *address* lies outside the grid.
        """
        self._current = check_address(address)
        if self._on_change is not None:
            self._on_change(self._current)

    def select_name(self, name: str) -> None:
        self.select(address_of(name))

    def move(self, direction: Direction) -> bool:
        """Step one cell in *direction*.

        Returns:
            False (and leaves the selection alone) at the grid edge.
        """
        d_col, d_row = Direction(direction).delta
        column = self._current.column + d_col
        row = self._current.row + d_row
        if not in_grid(column, row):
            return False
        self.select(CellAddress(column, row))
        return True
