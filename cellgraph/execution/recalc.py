"""Recalculation of formulas that reference a changed cell."""

import logging
import math
from typing import TYPE_CHECKING, List

from cellgraph.exceptions import CycleError, EvaluationError
from cellgraph.execution.models import RecalcOutcome
from cellgraph.formula import (
    detect_circular_references,
    evaluate_expression,
    get_dependent_formula_cells,
)
from cellgraph.models import Cell, CellType, inline

if TYPE_CHECKING:
    from cellgraph.graph import CellGraph

logger = logging.getLogger(__name__)


def format_number(value: float, cell: Cell) -> str:
    """Render ``value`` for a number cell's display content."""
    if cell.cell_type == CellType.NUMBER_INT:
        # int() truncates toward zero; inf and nan have no int form
        return str(int(value)) if math.isfinite(value) else str(value)
    return f"{value:.{cell.decimal_precision}f}"


def recalculate_dependents(changed_id: str, graph: "CellGraph") -> List[RecalcOutcome]:
    """Re-evaluate every formula that directly references ``changed_id``.

    Only one hop is followed. Each success stores ``computed_result`` on the
    formula and, when the formula has a result target, on the target too;
    number targets also get their content rewritten with the formatted
    value. A failing formula is reported in its outcome and does not stop
    the others.

    Args:
        changed_id: Id of the cell whose value changed.
        graph: The graph to update in place.

    Returns:
        One RecalcOutcome per dependent formula, in id order.
    """
    outcomes: List[RecalcOutcome] = []

    for cell_id in get_dependent_formula_cells(changed_id, graph):
        cell = graph.get_cell(cell_id)
        try:
            value = _evaluate(cell, graph)
        except EvaluationError as e:
            logger.warning(f"Recalculation failed: cell={cell.short_id}, error={e}")
            outcomes.append(RecalcOutcome(cell_id=cell_id, error=str(e)))
            continue

        graph.set_computed_result(cell_id, value)
        if cell.result_target:
            _write_target(cell.result_target, value, graph)
        outcomes.append(RecalcOutcome(cell_id=cell_id, value=value))

    logger.debug(f"Recalculated {len(outcomes)} dependents of {changed_id}")
    return outcomes


def _evaluate(cell: Cell, graph: "CellGraph") -> float:
    formula = cell.inline_text()
    if formula is None:
        raise EvaluationError(f"Formula cell {cell.short_id} has no inline content")

    cycle = detect_circular_references(cell.id, graph)
    if cycle:
        raise CycleError(cycle)
    return evaluate_expression(formula, graph)


def _write_target(target_id: str, value: float, graph: "CellGraph") -> None:
    if not graph.has_cell(target_id):
        logger.warning(f"Result target not found: {target_id}")
        return

    graph.set_computed_result(target_id, value)
    target = graph.get_cell(target_id)
    if target.cell_type.is_numeric:
        graph.update_cell_content(target_id, inline(format_number(value, target)))
