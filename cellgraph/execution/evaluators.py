"""Per-type cell evaluators.

Two capability tables keyed by CellType: one for real runs and one for dry
runs. Every CellType has an entry in both.
"""

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from cellgraph.exceptions import CycleError, EvaluationError
from cellgraph.execution.code import CodeEvaluator
from cellgraph.formula import (
    detect_circular_references,
    evaluate_expression,
    parse_number,
)
from cellgraph.models import Cell, CellType

if TYPE_CHECKING:
    from cellgraph.graph import CellGraph

CellEvaluator = Callable[
    [Cell, List[Any], "CellGraph", Optional[CodeEvaluator]], Any
]

DRY_RUN_TEXT = "(dry-run)"
DRY_RUN_FORMULA = "(dry-run-math)"
DRY_RUN_NUMBER = "(dry-run-number)"
DRY_RUN_CODE = "(syntax valid)"


def _inline_text(cell: Cell, kind: str) -> str:
    text = cell.inline_text()
    if text is None:
        raise EvaluationError(f"{kind} cell {cell.short_id} has no inline content")
    return text


def _require_code_evaluator(
    cell: Cell, code_evaluator: Optional[CodeEvaluator]
) -> CodeEvaluator:
    if code_evaluator is None:
        raise EvaluationError(f"No code evaluator configured for cell {cell.short_id}")
    return code_evaluator


# ==================== Run ====================


def evaluate_text(cell, inputs, graph, code_evaluator):
    """Text cells pass their first input through."""
    return inputs[0] if inputs else None


def evaluate_number(cell, inputs, graph, code_evaluator):
    return parse_number(_inline_text(cell, "Number"), cell.short_id)


def evaluate_formula(cell, inputs, graph, code_evaluator):
    """Cycle check, then arithmetic. A cyclic formula never reaches the evaluator."""
    formula = _inline_text(cell, "Formula")

    cycle = detect_circular_references(cell.id, graph)
    if cycle:
        raise CycleError(cycle)

    try:
        return evaluate_expression(formula, graph)
    except EvaluationError as e:
        raise EvaluationError(
            f"Formula evaluation error in cell {cell.short_id}: {e}"
        ) from e


def evaluate_code(cell, inputs, graph, code_evaluator):
    content = _inline_text(cell, "Code")
    return _require_code_evaluator(cell, code_evaluator).evaluate(content, inputs)


RUN_EVALUATORS: Dict[CellType, CellEvaluator] = {
    CellType.TEXT: evaluate_text,
    CellType.NUMBER_INT: evaluate_number,
    CellType.NUMBER_FLOAT: evaluate_number,
    CellType.NUMBER_CURRENCY: evaluate_number,
    CellType.FORMULA: evaluate_formula,
    CellType.CODE: evaluate_code,
}


# ==================== Dry run ====================


def _placeholder(value: str) -> CellEvaluator:
    def evaluate(cell, inputs, graph, code_evaluator):
        return value

    return evaluate


def validate_code(cell, inputs, graph, code_evaluator):
    content = _inline_text(cell, "Code")
    _require_code_evaluator(cell, code_evaluator).validate(content)
    return DRY_RUN_CODE


DRY_RUN_EVALUATORS: Dict[CellType, CellEvaluator] = {
    CellType.TEXT: _placeholder(DRY_RUN_TEXT),
    CellType.NUMBER_INT: _placeholder(DRY_RUN_NUMBER),
    CellType.NUMBER_FLOAT: _placeholder(DRY_RUN_NUMBER),
    CellType.NUMBER_CURRENCY: _placeholder(DRY_RUN_NUMBER),
    CellType.FORMULA: _placeholder(DRY_RUN_FORMULA),
    CellType.CODE: validate_code,
}
