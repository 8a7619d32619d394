"""Document lifecycle: bound path, dirty flag, save / save-as / close.

A document starts *unbound* (never saved).  The first successful save
binds it to a path; after that a plain save writes there without asking.
The dirty flag is cleared only by a successful save, and a failed save
leaves both the flag and the bound path as they were.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from gridsheet.display import CloseDecision, DisplaySurface
from gridsheet.engine import SpreadsheetEngine
from gridsheet.errors import PersistenceError
from gridsheet.logging.events import (
    PERSISTENCE_FAILED,
    EventType,
    emit_error,
    emit_info,
)

logger = logging.getLogger(__name__)

DEFAULT_NOTICE_DELAY = 5.0


@dataclass
class Document:
    """Lifecycle state of one open spreadsheet."""

    bound_path: Path | None = None
    dirty: bool = False

    @property
    def bound(self) -> bool:
        return self.bound_path is not None


class SavedNotice:
    """Transient "saved" acknowledgment.

    Every :meth:`show` schedules a hide after *delay*; only the most recent
    one takes effect, so repeated saves keep the notice up until *delay*
    after the last of them.
    """

    def __init__(self, display: DisplaySurface, delay: float = DEFAULT_NOTICE_DELAY) -> None:
        self._display = display
        self.delay = delay
        self._generation = 0
        self.visible = False

    def show(self) -> None:
        self._generation += 1
        generation = self._generation
        self.visible = True
        self._display.show_saved_notice()
        self._display.scheduler.call_later(self.delay, lambda: self._expire(generation))

    def _expire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self.visible = False
        self._display.hide_saved_notice()


class DocumentLifecycle:
    """Save, save-as and close decisions for one document."""

    def __init__(
        self,
        engine: SpreadsheetEngine,
        display: DisplaySurface,
        document: Document | None = None,
        *,
        notice_delay: float = DEFAULT_NOTICE_DELAY,
        extension: str = "",
    ) -> None:
        self.engine = engine
        self.display = display
        self.document = document or Document()
        self.notice = SavedNotice(display, notice_delay)
        self.extension = extension

    def mark_dirty(self) -> None:
        self.document.dirty = True

    def save_requested(self) -> bool:
        """Save to the bound path, asking for one first if unbound.

        Returns:
            False if the user cancelled the path prompt.

        Raises:
            PersistenceError: If writing failed.
        """
        if self.document.bound_path is not None:
            self._write(self.document.bound_path)
            return True
        return self.save_as_requested()

    def save_as_requested(self) -> bool:
        """Always ask for a destination, then save and bind to it."""
        answer = self.display.prompt_save_path()
        if not answer:
            emit_info(EventType.save_cancelled, "Save cancelled")
            return False
        self._write(self._with_extension(Path(answer)))
        return True

    def _with_extension(self, path: Path) -> Path:
        if self.extension and not path.suffix:
            return path.with_suffix(self.extension)
        return path

    def _write(self, path: Path) -> None:
        try:
            self.engine.save(path)
        except OSError as exc:
            emit_error(
                EventType.save_failed,
                f"Save to {path} failed",
                {"path": str(path), "reason": str(exc)},
                error_code=PERSISTENCE_FAILED,
            )
            raise PersistenceError(str(path), exc.strerror or str(exc)) from exc

        self.document.bound_path = path
        self.document.dirty = False
        logger.debug("Saved document to %s", path)
        emit_info(EventType.save_completed, f"Saved {path}", {"path": str(path)})
        self.notice.show()

    def close_requested(self) -> bool:
        """Decide whether the document may close.

        Clean documents always close.  Dirty ones ask the user to save,
        discard or cancel; a cancelled or failed save also vetoes.

        Raises:
            PersistenceError: If the user chose to save and writing failed.
        """
        emit_info(EventType.close_requested, "Close requested", {"dirty": self.document.dirty})
        if not self.document.dirty:
            return True

        decision = CloseDecision(self.display.ask_save_changes())
        if decision is CloseDecision.discard:
            return True
        if decision is CloseDecision.save and self.save_requested():
            return True

        emit_info(EventType.close_vetoed, "Close vetoed", {"decision": decision.value})
        return False
