"""Display-surface and scheduling contracts, plus an in-memory surface.

The controller never touches widgets.  It pushes text to a
:class:`DisplaySurface` and asks it the questions a desktop program would
ask with modal dialogs (where to save, whether to keep unsaved changes).
:class:`GridDisplay` is a surface that simply records everything; the
browser UI service renders it and tests inspect it.
"""

from __future__ import annotations

import heapq
import itertools
import time
from collections import deque
from enum import Enum
from typing import Any, Callable, Protocol

from gridsheet.address import CellAddress, address_of, name_of
from gridsheet.cell_graph import display_value
from gridsheet.errors import FORMULA_ERROR_MARKER
from gridsheet.formulas.errors import FormulaErrorValue


def display_text(value: Any) -> str:
    """Text shown for an engine value; evaluation errors become the marker."""
    if isinstance(value, FormulaErrorValue):
        return FORMULA_ERROR_MARKER
    return display_value(value)


class CloseDecision(str, Enum):
    """Answer to "save changes before closing?"."""

    save = "save"
    discard = "discard"
    cancel = "cancel"


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class Scheduler(Protocol):
    """Runs a one-shot action after a delay on the caller's own thread."""

    def call_later(self, delay: float, action: Callable[[], None]) -> None:
        ...


class ManualScheduler:
    """Scheduler driven by an explicit virtual clock.

    Usage::

        sched = ManualScheduler()
        sched.call_later(5, notice.hide)
        sched.advance(5)   # runs the action
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, action: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), action))

    @property
    def pending(self) -> int:
        return len(self._queue)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every action that falls due.

        Returns:
            Number of actions run.
        """
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, action = heapq.heappop(self._queue)
            self.now = due
            action()
            ran += 1
        self.now = target
        return ran


class MonotonicScheduler(ManualScheduler):
    """Scheduler on the wall clock, pumped by whoever owns the event loop.

    Actions only run inside :meth:`run_due`, so they never interleave with
    a command in progress.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__()
        self._clock = clock
        self.now = clock()

    def call_later(self, delay: float, action: Callable[[], None]) -> None:
        self.now = self._clock()
        super().call_later(delay, action)

    def run_due(self) -> int:
        return self.advance(max(0.0, self._clock() - self.now))


# ---------------------------------------------------------------------------
# Display surface
# ---------------------------------------------------------------------------


class DisplaySurface(Protocol):
    """Everything the controller and document lifecycle need from a UI."""

    scheduler: Scheduler

    def set_cell(self, address: CellAddress, text: str) -> None:
        """Show *text* in the grid at *address*."""
        ...

    def show_selection(self, name: str, value: str, content: str) -> None:
        """Publish the selected cell's name, value and editable content."""
        ...

    def show_saved_notice(self) -> None:
        ...

    def hide_saved_notice(self) -> None:
        ...

    def prompt_save_path(self) -> str | None:
        """Ask where to save; ``None`` means the user cancelled."""
        ...

    def ask_save_changes(self) -> CloseDecision:
        """Ask whether to save unsaved changes before closing."""
        ...

    def show_error(self, title: str, message: str) -> None:
        """Blocking acknowledgment of a failed command."""
        ...


class GridDisplay:
    """In-memory display surface.

    Dialog answers are queued ahead of time with :meth:`answer_save_path`
    and :meth:`answer_close`; an unanswered save prompt behaves like a
    cancelled dialog and an unanswered close question like "cancel".
    """

    def __init__(self, scheduler: Scheduler | None = None) -> None:
        self.scheduler: Scheduler = scheduler or ManualScheduler()
        self.cells: dict[CellAddress, str] = {}
        self.selected_name = "A1"
        self.value_field = ""
        self.content_field = ""
        self.saved_notice_visible = False
        self.errors: list[tuple[str, str]] = []
        self.prompts = 0
        self._paths: deque[str | None] = deque()
        self._decisions: deque[CloseDecision] = deque()

    # -- DisplaySurface --

    def set_cell(self, address: CellAddress, text: str) -> None:
        if text == "":
            self.cells.pop(address, None)
        else:
            self.cells[address] = text

    def show_selection(self, name: str, value: str, content: str) -> None:
        self.selected_name = name
        self.value_field = value
        self.content_field = content

    def show_saved_notice(self) -> None:
        self.saved_notice_visible = True

    def hide_saved_notice(self) -> None:
        self.saved_notice_visible = False

    def prompt_save_path(self) -> str | None:
        self.prompts += 1
        return self._paths.popleft() if self._paths else None

    def ask_save_changes(self) -> CloseDecision:
        return self._decisions.popleft() if self._decisions else CloseDecision.cancel

    def show_error(self, title: str, message: str) -> None:
        self.errors.append((title, message))

    # -- Dialog answers --

    def answer_save_path(self, path: str | None) -> None:
        self._paths.append(path)

    def answer_close(self, decision: CloseDecision) -> None:
        self._decisions.append(decision)

    def clear_answers(self) -> None:
        self._paths.clear()
        self._decisions.clear()

    # -- Reading --

    def text_at(self, name: str) -> str:
        return self.cells.get(address_of(name), "")

    def snapshot(self) -> dict[str, Any]:
        return {
            "cells": {name_of(*addr): text for addr, text in sorted(self.cells.items())},
            "selection": {
                "name": self.selected_name,
                "value": self.value_field,
                "content": self.content_field,
            },
            "saved_notice": self.saved_notice_visible,
        }
