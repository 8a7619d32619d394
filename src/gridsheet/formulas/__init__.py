"""Cell formula parsing and evaluation.

Public API::

    from gridsheet.formulas import parse_formula, extract_cell_refs, evaluate_formula
"""

from gridsheet.formulas.errors import (
    FormulaError,
    FormulaErrorValue,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    InvalidCellNameError,
)
from gridsheet.formulas.evaluator import evaluate_formula
from gridsheet.formulas.parser import (
    extract_cell_refs,
    normalize_formula,
    parse_formula,
)

__all__ = [
    "FormulaError",
    "FormulaErrorValue",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRefError",
    "InvalidCellNameError",
    "evaluate_formula",
    "extract_cell_refs",
    "normalize_formula",
    "parse_formula",
]
