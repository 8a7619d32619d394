"""On-demand memoized cell formula evaluator with cycle detection.

Evaluates cell formulas lazily: a cell is computed only when referenced,
and the result is cached for the duration of one evaluation pass.  Any edit
invalidates the whole pass, so every dependent cell is recomputed the next
time it is read.

Cycles are checked structurally (by following formula references, without
evaluating anything) so that an edit can be rejected before it is kept.
"""

from __future__ import annotations

from typing import Any, Callable

from gridsheet.formulas.errors import FormulaError, FormulaErrorValue, FormulaRefError
from gridsheet.formulas.evaluator import evaluate_formula
from gridsheet.formulas.parser import extract_cell_refs, parse_formula


def display_value(val: Any) -> str:
    """Format a computed value for display.

    Integral floats drop their fraction (``5.0`` -> ``"5"``).
    """
    if val is None:
        return ""
    if isinstance(val, bool):
        return "TRUE" if val else "FALSE"
    if isinstance(val, float):
        if val.is_integer():
            return str(int(val))
        return f"{val:.10g}"
    return str(val)


class CellCycleError(FormulaError):
    """Raised when a formula would make a cell depend on itself.

    Attributes:
        cycle_path: List of cell names showing the cycle.
    """

    def __init__(self, cycle_path: list[str]) -> None:
        self.cycle_path = cycle_path
        super().__init__(f"Circular cell reference: {' -> '.join(cycle_path)}")


class CellGraph:
    """On-demand memoized evaluator for a single sheet of cells.

    Usage::

        cg = CellGraph(cells)
        value = cg.evaluate_cell("A1")

    Parameters
    ----------
    cells : dict[str, dict[str, Any]]
        Mapping of normalized cell names to cell dicts with either
        ``{"formula": "=..."}`` or ``{"value": ...}``.  The graph reads this
        mapping live; call :meth:`invalidate` after changing it.
    normalize : callable
        Applied to every reference found in a formula before lookup.
    """

    def __init__(
        self,
        cells: dict[str, dict[str, Any]],
        normalize: Callable[[str], str] = str.upper,
    ) -> None:
        self._cells = cells
        self._normalize = normalize
        self._cache: dict[str, Any] = {}
        self._in_progress: set[str] = set()
        self._eval_stack: list[str] = []
        self._errors: dict[str, str] = {}
        self._refs: dict[str, set[str]] = {}

    # ------------------------------------------------------------------
    # Dependency structure
    # ------------------------------------------------------------------

    def references(self, addr: str) -> set[str]:
        """Return the normalized cells directly referenced by *addr*'s formula."""
        cell = self._cells.get(addr)
        if cell is None or "formula" not in cell:
            return set()
        formula = cell["formula"]
        if formula not in self._refs:
            tree = parse_formula(formula)
            self._refs[formula] = {self._normalize(r) for r in extract_cell_refs(tree)}
        return self._refs[formula]

    def dependents(self, addr: str) -> set[str]:
        """Return every cell that depends on *addr*, directly or indirectly."""
        direct: dict[str, set[str]] = {}
        for name in self._cells:
            for ref in self.references(name):
                direct.setdefault(ref, set()).add(name)

        found: set[str] = set()
        pending = [addr]
        while pending:
            current = pending.pop()
            for dep in direct.get(current, ()):
                if dep not in found:
                    found.add(dep)
                    pending.append(dep)
        return found

    def check_acyclic(self, start: str) -> None:
        """Raise :class:`CellCycleError` if *start* can reach itself.

        Only formula references are followed; nothing is evaluated.
        """
        stack: list[str] = [start]
        on_path: set[str] = {start}
        done: set[str] = set()
        iters = [iter(sorted(self.references(start)))]
        while iters:
            nxt = next(iters[-1], None)
            if nxt is None:
                iters.pop()
                finished = stack.pop()
                on_path.discard(finished)
                done.add(finished)
                continue
            if nxt in on_path:
                cycle_start = stack.index(nxt)
                raise CellCycleError(stack[cycle_start:] + [nxt])
            if nxt in done:
                continue
            stack.append(nxt)
            on_path.add(nxt)
            iters.append(iter(sorted(self.references(nxt))))

    # ------------------------------------------------------------------
    # CellResolver protocol implementation
    # ------------------------------------------------------------------

    def resolve_cell(self, addr: str) -> Any:
        """Resolve a referenced cell to a usable operand.

        Empty cells, text cells and cells holding an error value cannot be
        used.
        """
        addr = self._normalize(addr)
        value = self.evaluate_cell(addr)
        if value is None:
            raise FormulaRefError(addr)
        if isinstance(value, str):
            raise FormulaRefError(addr, reason="cell holds text")
        if isinstance(value, FormulaErrorValue):
            raise FormulaRefError(addr, reason=f"cell has an error ({value.reason})")
        return value

    # ------------------------------------------------------------------
    # Core evaluation
    # ------------------------------------------------------------------

    def evaluate_cell(self, addr: str) -> Any:
        """Evaluate a single cell, with memoization and cycle detection.

        Args:
            addr: Normalized cell name (e.g. "A1").

        Returns:
            The computed value, ``None`` for an empty cell, or a
            :class:`FormulaErrorValue` when the formula cannot be evaluated.

        Raises:
            CellCycleError: If a circular reference is detected.
        """
        # Already computed?
        if addr in self._cache:
            return self._cache[addr]

        # Cycle detection
        if addr in self._in_progress:
            cycle_start = self._eval_stack.index(addr)
            raise CellCycleError(self._eval_stack[cycle_start:] + [addr])

        cell = self._cells.get(addr)
        if cell is None:
            return None

        raw_formula = cell.get("formula")
        if raw_formula is None:
            value = cell.get("value")
            self._cache[addr] = value
            return value

        self._in_progress.add(addr)
        self._eval_stack.append(addr)
        try:
            tree = parse_formula(raw_formula)
            result = evaluate_formula(tree, resolver=self)
        except CellCycleError:
            raise
        except (FormulaError, ArithmeticError, TypeError, ValueError) as exc:
            self._errors[addr] = str(exc)
            result = FormulaErrorValue(str(exc))
        finally:
            self._in_progress.discard(addr)
            if self._eval_stack and self._eval_stack[-1] == addr:
                self._eval_stack.pop()
        self._cache[addr] = result
        return result

    def evaluate_all(self) -> dict[str, Any]:
        """Evaluate every cell.

        Returns:
            Dict of addr -> computed value for all non-empty cells.
        """
        return {addr: self.evaluate_cell(addr) for addr in list(self._cells)}

    def get_errors(self) -> dict[str, str]:
        """Return all evaluation errors collected during this pass.

        Returns:
            Dict of addr -> error message.
        """
        return dict(self._errors)

    def invalidate(self) -> None:
        """Clear all cached values and errors.

        Call this when cells have been edited and need re-evaluation.
        """
        self._cache.clear()
        self._in_progress.clear()
        self._eval_stack.clear()
        self._errors.clear()
