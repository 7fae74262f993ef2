"""Arithmetic evaluator for prepared formulas.

Recursive descent over the expression text. At each level the expression
is split at every top-level operator of the lowest precedence present and
the operands are folded left to right, so long sums do not nest.

Precedence (lowest to highest)::

    1. additive        (+, -)
    2. multiplicative  (*, /, %)
    3. unary sign      (-x, +x)
    4. power           (^, right associative)

Values are always floats. Division and modulo by zero follow IEEE float
semantics instead of raising.
"""

import math
import re
from typing import Dict, List, Optional, Tuple

from cellgraph.exceptions import EvaluationError

_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# A '+'/'-' preceded by one of these is a sign, not a binary operator
_OPERATOR_CHARS = ("(", "+", "-", "*", "/", "%", "^")

_ADDITIVE = ("+", "-")
_MULTIPLICATIVE = ("*", "/", "%")


def evaluate_arithmetic(expr: str, variables: Optional[Dict[str, float]] = None) -> float:
    """Evaluate ``expr`` with identifiers looked up in ``variables``.

    Args:
        expr: Expression text, e.g. ``"cell_A7 + cell_B2 * 2"``.
        variables: Identifier to value mapping.

    Returns:
        The value as a float.

    Raises:
        EvaluationError: If the expression is empty, malformed, nested too
            deeply or uses an unknown identifier.
    """
    try:
        return _eval(expr, variables or {})
    except RecursionError as e:
        raise EvaluationError("Result is not a number: expression too deep") from e


def _eval(expr: str, variables: Dict[str, float]) -> float:
    expr = expr.strip()
    if not expr:
        raise EvaluationError("Result is not a number: empty expression")

    # 1. Binary operators, additive then multiplicative, folded left to right
    for operators in (_ADDITIVE, _MULTIPLICATIVE):
        operands, ops = _split_top_level(expr, operators)
        if ops:
            result = _eval(operands[0], variables)
            for op, operand in zip(ops, operands[1:]):
                result = _binary_op(result, op, _eval(operand, variables))
            return result

    # 2. Unary sign
    if expr[0] == "-":
        return -_eval(expr[1:], variables)
    if expr[0] == "+":
        return _eval(expr[1:], variables)

    # 3. Power
    power = _find_power_split(expr)
    if power:
        base_str, exponent_str = power
        return _power(_eval(base_str, variables), _eval(exponent_str, variables))

    # 4. Parenthesized sub-expression
    if expr[0] == "(":
        close = _find_matching_paren(expr, 0)
        if close == len(expr) - 1:
            return _eval(expr[1:close], variables)
        raise EvaluationError(f"Unbalanced parentheses in '{expr}'")

    # 5. Numeric literal
    if _NUMBER_RE.fullmatch(expr):
        return float(expr)

    # 6. Identifier
    if _IDENTIFIER_RE.fullmatch(expr):
        if expr not in variables:
            raise EvaluationError(f"Unknown variable: {expr}")
        return float(variables[expr])

    raise EvaluationError(f"Result is not a number: cannot evaluate '{expr}'")


def _find_matching_paren(expr: str, start: int) -> int:
    """Index of the ``')'`` matching the ``'('`` at *expr[start]*, or -1."""
    depth = 0
    for i in range(start, len(expr)):
        if expr[i] == "(":
            depth += 1
        elif expr[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _is_exponent_sign(expr: str, op_start: int) -> bool:
    """True for the sign in a literal like ``2.5e-1``."""
    j = op_start - 1
    if j < 1 or expr[j] not in ("e", "E"):
        return False
    k = j - 1
    digits = 0
    while k >= 0 and (expr[k].isdigit() or expr[k] == "."):
        digits += expr[k].isdigit()
        k -= 1
    # Identifiers such as cell_1e end in the same characters
    return digits > 0 and (k < 0 or not (expr[k].isalnum() or expr[k] == "_"))


def _split_top_level(expr: str, operators: Tuple[str, ...]) -> Tuple[List[str], List[str]]:
    """Split ``expr`` at every binary operator in ``operators`` at paren depth 0.

    Signs (an operator following another operator or an open paren) and the
    exponent sign of a literal like ``2.5e-1`` are not split points.

    Returns:
        ``(operands, ops)`` with ``len(operands) == len(ops) + 1``; ``ops`` is
        empty when nothing splits.
    """
    operands: List[str] = []
    ops: List[str] = []
    depth = 0
    last = 0
    for i, ch in enumerate(expr):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif depth == 0 and i > 0 and ch in operators:
            j = i - 1
            while j >= 0 and expr[j] == " ":
                j -= 1
            is_sign = j < 0 or expr[j] in _OPERATOR_CHARS
            if is_sign or (ch in "+-" and _is_exponent_sign(expr, i)):
                continue
            operands.append(expr[last:i])
            ops.append(ch)
            last = i + 1
    operands.append(expr[last:])
    return operands, ops


def _find_power_split(expr: str) -> Optional[Tuple[str, str]]:
    """Split at the leftmost top-level ``^`` so that ``a^b^c`` is ``a^(b^c)``."""
    depth = 0
    for i, ch in enumerate(expr):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif ch == "^" and depth == 0:
            base = expr[:i].strip()
            exponent = expr[i + 1 :].strip()
            if base and exponent:
                return (base, exponent)
            return None
    return None


def _binary_op(left: float, op: str, right: float) -> float:
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if op == "/":
        if right == 0:
            if left == 0 or math.isnan(left):
                return math.nan
            return math.copysign(math.inf, left) * math.copysign(1.0, right)
        return left / right
    if op == "%":
        if right == 0:
            return math.nan
        return math.fmod(left, right)
    raise EvaluationError(f"Unknown operator: {op}")


def _power(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return math.inf
    except ValueError:
        # Negative base with a fractional exponent, or 0 to a negative power
        if base == 0:
            return math.inf
        return math.nan
