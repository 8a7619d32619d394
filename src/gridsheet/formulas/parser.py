"""Lark-based parser for cell formulas.

Supports:
- Cell references: ``A1``, ``b7`` (letters followed by digits, any case)
- Standard arithmetic, comparisons, functions, postfix percent (%)
- Number, string and boolean literals
"""

from __future__ import annotations

from typing import Callable

from lark import Lark, Token, Tree, Visitor

from gridsheet.formulas.errors import FormulaParseError

# LALR(1) grammar for cell formulas.
# Operator precedence (lowest to highest):
#   1. Comparison: > < >= <= = <>
#   2. Addition/subtraction: + -
#   3. Multiplication/division: * /
#   4. Unary plus/minus: + -
#   5. Exponentiation: ^ (right-associative)
#   6. Postfix percent: %  (3% = 0.03)
#   7. Atoms: number, bool, string, function call, cell reference, parenthesized expr
GRAMMAR = r"""
start: "=" expr

?expr: comparison

?comparison: addition
    | comparison ">" addition   -> gt
    | comparison "<" addition   -> lt
    | comparison ">=" addition  -> gte
    | comparison "<=" addition  -> lte
    | comparison "=" addition   -> eq
    | comparison "<>" addition  -> neq

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos

?exponentiation: postfix
    | postfix "^" unary  -> pow

?postfix: atom
    | postfix "%"  -> percent

?atom: NUMBER                   -> number
    | BOOL                      -> boolean
    | ESCAPED_STRING            -> string
    | NAME "(" args ")"         -> func_call
    | CELL_REF                  -> cell_ref
    | "(" expr ")"

args: expr ("," expr)*
    |

BOOL.3: "TRUE" | "FALSE"

// Cell ref: letters then digits, e.g. A1, g22, AA10.  Range limits are not
// enforced here; the sheet validates every reference when content is set.
CELL_REF.2: /[A-Za-z]+[0-9]+/

NAME.1: /[A-Za-z_][A-Za-z0-9_]*/

%import common.NUMBER
%import common.ESCAPED_STRING
%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


def parse_formula(text: str) -> Tree:
    """Parse a formula string (must start with ``=``) into a Lark Tree.

    Args:
        text: The formula text, e.g. ``"=A1 * (1 - B2)"``.

    Returns:
        A Lark parse tree.

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    text = text.strip()
    if not text.startswith("="):
        raise FormulaParseError("Formula must start with '='", position=0)
    try:
        return _parser.parse(text)
    except Exception as exc:
        # Extract position info from Lark exception if available
        pos = getattr(exc, "column", None)
        raise FormulaParseError(str(exc), position=pos) from exc


class _RefCollector(Visitor):
    """Visitor that collects cell reference tokens from a parse tree."""

    def __init__(self) -> None:
        self.tokens: list[Token] = []

    def cell_ref(self, tree: Tree) -> None:
        token = tree.children[0]
        if isinstance(token, Token):
            self.tokens.append(token)


def extract_cell_refs(tree: Tree) -> set[str]:
    """Extract all cell references from a parsed formula tree, as written.

    Args:
        tree: A parse tree from ``parse_formula()``.

    Returns:
        Set of referenced cell names (not normalized).
    """
    collector = _RefCollector()
    collector.visit(tree)
    return {str(t) for t in collector.tokens}


def normalize_formula(text: str, normalize: Callable[[str], str]) -> tuple[str, set[str]]:
    """Rewrite every cell reference in a formula through *normalize*.

    Everything other than the references (spacing, literals, function
    names) is kept as typed.

    Returns:
        Tuple of (normalized formula text, set of normalized references).

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    text = text.strip()
    tree = parse_formula(text)
    collector = _RefCollector()
    collector.visit(tree)

    parts: list[str] = []
    refs: set[str] = set()
    last_end = 0
    for token in sorted(collector.tokens, key=lambda t: t.start_pos):
        name = normalize(str(token))
        refs.add(name)
        parts.append(text[last_end:token.start_pos])
        parts.append(name)
        last_end = token.end_pos
    parts.append(text[last_end:])
    return "".join(parts), refs
