"""Tree-walking evaluator for parsed formula expressions.

Cell references are resolved through a :class:`CellResolver` callback so
that the evaluator stays independent of how the sheet stores its cells.
"""

from __future__ import annotations

from typing import Any, Protocol

from lark import Token, Tree

from gridsheet.formulas.errors import FormulaError, FormulaFunctionError


class CellResolver(Protocol):
    """Protocol for resolving cell references during evaluation."""

    def resolve_cell(self, addr: str) -> Any:
        """Resolve a cell value (may trigger recursive evaluation)."""
        ...


def evaluate_formula(tree: Tree, resolver: CellResolver) -> Any:
    """Evaluate a parsed formula tree.

    Args:
        tree: Parse tree from ``parse_formula()``.
        resolver: Resolver for cell references.

    Returns:
        The computed value (float, str or bool).

    Raises:
        FormulaError, ArithmeticError, TypeError, ValueError: If the formula
            cannot produce a value.
    """
    result = _eval(tree, resolver)
    if isinstance(result, complex):
        raise ValueError("Formula result is not a real number")
    return result


def _eval(node: Tree | Token, resolver: CellResolver) -> Any:
    """Recursively evaluate a tree node."""
    if isinstance(node, Token):
        return _eval_token(node)

    rule = node.data

    # Start rule just wraps expr
    if rule == "start":
        return _eval(node.children[0], resolver)

    # Arithmetic
    if rule == "add":
        return _eval(node.children[0], resolver) + _eval(node.children[1], resolver)
    if rule == "sub":
        return _eval(node.children[0], resolver) - _eval(node.children[1], resolver)
    if rule == "mul":
        return _eval(node.children[0], resolver) * _eval(node.children[1], resolver)
    if rule == "div":
        left = _eval(node.children[0], resolver)
        right = _eval(node.children[1], resolver)
        if right == 0:
            raise ZeroDivisionError("Division by zero in formula")
        return left / right
    if rule == "neg":
        return -_eval(node.children[0], resolver)
    if rule == "pos":
        return +_eval(node.children[0], resolver)
    if rule == "pow":
        base = _eval(node.children[0], resolver)
        exp = _eval(node.children[1], resolver)
        return base ** exp
    if rule == "percent":
        return _eval(node.children[0], resolver) / 100

    # Comparison
    if rule == "gt":
        return _eval(node.children[0], resolver) > _eval(node.children[1], resolver)
    if rule == "lt":
        return _eval(node.children[0], resolver) < _eval(node.children[1], resolver)
    if rule == "gte":
        return _eval(node.children[0], resolver) >= _eval(node.children[1], resolver)
    if rule == "lte":
        return _eval(node.children[0], resolver) <= _eval(node.children[1], resolver)
    if rule == "eq":
        return _eval(node.children[0], resolver) == _eval(node.children[1], resolver)
    if rule == "neq":
        return _eval(node.children[0], resolver) != _eval(node.children[1], resolver)

    # Literals
    if rule == "number":
        return float(node.children[0])
    if rule == "boolean":
        return str(node.children[0]) == "TRUE"
    if rule == "string":
        return _unquote(str(node.children[0]))

    if rule == "cell_ref":
        return resolver.resolve_cell(str(node.children[0]))

    # Function call
    if rule == "func_call":
        return _eval_func(node, resolver)

    # args -- should not be evaluated directly
    if rule == "args":
        return [_eval(child, resolver) for child in node.children]

    raise FormulaError(f"Unknown node type: {rule}")


def _eval_token(token: Token) -> Any:
    """Evaluate a bare token (shouldn't normally happen at top level)."""
    if token.type == "NUMBER":
        return float(token)
    if token.type == "BOOL":
        return str(token) == "TRUE"
    if token.type == "ESCAPED_STRING":
        return _unquote(str(token))
    return str(token)


def _unquote(raw: str) -> str:
    return raw[1:-1].replace('\\"', '"').replace("\\\\", "\\")


# ---------- Function dispatch ----------

_LAZY_FUNCTIONS = {"IF", "IFERROR"}


def _eval_func(node: Tree, resolver: CellResolver) -> Any:
    """Evaluate a function call node."""
    func_name = str(node.children[0]).upper()
    args_node = node.children[1]
    raw_args = args_node.children if args_node.children else []

    # Lazy functions receive unevaluated AST nodes
    if func_name in _LAZY_FUNCTIONS:
        return _LAZY_TABLE[func_name](raw_args, resolver)

    if func_name not in _FUNC_TABLE:
        raise FormulaFunctionError(func_name)

    # Eager functions receive pre-evaluated values
    evaluated_args = [_eval(arg, resolver) for arg in raw_args]
    return _FUNC_TABLE[func_name](evaluated_args)


def _fn_sum(args: list) -> float:
    if len(args) < 1:
        raise FormulaFunctionError("SUM", "SUM requires at least 1 argument")
    return sum(args)


def _fn_average(args: list) -> float:
    if len(args) < 1:
        raise FormulaFunctionError("AVERAGE", "AVERAGE requires at least 1 argument")
    return sum(args) / len(args)


def _fn_min(args: list) -> Any:
    if len(args) < 1:
        raise FormulaFunctionError("MIN", "MIN requires at least 1 argument")
    return min(args)


def _fn_max(args: list) -> Any:
    if len(args) < 1:
        raise FormulaFunctionError("MAX", "MAX requires at least 1 argument")
    return max(args)


def _fn_abs(args: list) -> float:
    if len(args) != 1:
        raise FormulaFunctionError("ABS", "ABS requires exactly 1 argument")
    return abs(args[0])


def _fn_round(args: list) -> float:
    if len(args) < 1 or len(args) > 2:
        raise FormulaFunctionError("ROUND", "ROUND requires 1-2 arguments")
    digits = int(args[1]) if len(args) == 2 else 0
    return float(round(args[0], digits))


def _fn_if(raw_args: list, resolver: CellResolver) -> Any:
    """IF(condition, then_value [, else_value]) -- lazy evaluation."""
    if len(raw_args) < 2 or len(raw_args) > 3:
        raise FormulaFunctionError("IF", "IF requires 2-3 arguments")
    condition = _eval(raw_args[0], resolver)
    if condition:
        return _eval(raw_args[1], resolver)
    if len(raw_args) == 3:
        return _eval(raw_args[2], resolver)
    return False


def _fn_iferror(raw_args: list, resolver: CellResolver) -> Any:
    """IFERROR(value, fallback) -- catches errors in first arg."""
    if len(raw_args) != 2:
        raise FormulaFunctionError("IFERROR", "IFERROR requires exactly 2 arguments")
    try:
        return _eval(raw_args[0], resolver)
    except (FormulaError, ArithmeticError, TypeError, ValueError):
        return _eval(raw_args[1], resolver)


_FUNC_TABLE: dict[str, Any] = {
    "SUM": _fn_sum,
    "AVERAGE": _fn_average,
    "MIN": _fn_min,
    "MAX": _fn_max,
    "ABS": _fn_abs,
    "ROUND": _fn_round,
}

_LAZY_TABLE: dict[str, Any] = {
    "IF": _fn_if,
    "IFERROR": _fn_iferror,
}
