"""Formula evaluation against a graph.

Formula cells reference other cells by short id (``[[A7]] + [[B2]] * 2``).
References are resolved through the graph's short-id index, rewritten to
``cell_<id>`` identifiers and handed to the arithmetic evaluator.
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Set

from cellgraph.exceptions import EvaluationError
from cellgraph.formula.arithmetic import evaluate_arithmetic
from cellgraph.formula.links import parse_cell_links
from cellgraph.models import Cell, CellType

if TYPE_CHECKING:
    from cellgraph.graph import CellGraph

logger = logging.getLogger(__name__)


def parse_formula_references(formula: str) -> List[str]:
    """Short ids referenced by ``formula``, in order, duplicates kept."""
    return [link.target_id for link in parse_cell_links(formula)]


def parse_number(text: str, short_id: str) -> float:
    """Parse number cell text as a float.

    Surrounding whitespace is ignored. Digit separators (``1_000``) are
    rejected even though Python's float() accepts them.

    Raises:
        EvaluationError: If the text is not a number.
    """
    text = text.strip()
    if "_" in text:
        raise EvaluationError(
            f"Cannot parse number from cell {short_id}: invalid literal '{text}'"
        )
    try:
        return float(text)
    except ValueError as e:
        raise EvaluationError(f"Cannot parse number from cell {short_id}: {e}") from e


def resolve_cell_value(cell: Cell) -> float:
    """Numeric value a formula sees when it references ``cell``.

    A cached ``computed_result`` wins. Otherwise number cells parse their
    inline text.

    Raises:
        EvaluationError: For unparsable numbers, formulas that have not been
            computed yet and non-numeric cell types.
    """
    if cell.computed_result is not None:
        return cell.computed_result

    if cell.cell_type.is_numeric:
        text = cell.inline_text()
        if text is None:
            raise EvaluationError(f"Cell {cell.short_id} has no inline content")
        return parse_number(text, cell.short_id)

    if cell.cell_type == CellType.FORMULA:
        raise EvaluationError(f"Formula cell {cell.short_id} has not been computed yet")

    raise EvaluationError(
        f"Cell {cell.short_id} is not a numeric type (type: {cell.cell_type.value})"
    )


def build_variables(formula: str, graph: "CellGraph") -> Dict[str, float]:
    """Map each ``cell_<id>`` identifier in ``formula`` to its value.

    Raises:
        EvaluationError: If a reference does not resolve or has no value.
    """
    variables: Dict[str, float] = {}
    for ref_id in parse_formula_references(formula):
        cell = graph.get_cell_by_short_id(ref_id)
        if cell is None:
            raise EvaluationError(f"Cell {ref_id} not found")
        variables[f"cell_{ref_id}"] = resolve_cell_value(cell)
    return variables


def prepare_formula(formula: str) -> str:
    """Rewrite every ``[[id]]`` as ``cell_<id>``.

    Ids such as ``07`` would otherwise read as numeric literals.
    """
    links = parse_cell_links(formula)
    if not links:
        return formula

    parts = []
    last_end = 0
    for link in links:
        parts.append(formula[last_end : link.start])
        parts.append(f"cell_{link.target_id}")
        last_end = link.end
    parts.append(formula[last_end:])
    return "".join(parts)


def evaluate_expression(formula: str, graph: "CellGraph") -> float:
    """Resolve references and evaluate ``formula``.

    Raises:
        EvaluationError: On missing references, unresolvable values or
            malformed arithmetic.
    """
    variables = build_variables(formula, graph)
    return evaluate_arithmetic(prepare_formula(formula), variables)


def detect_circular_references(cell_id: str, graph: "CellGraph") -> Optional[List[str]]:
    """Look for a reference cycle reachable from a formula cell.

    Only formula-to-formula references are followed. Any other cell type
    ends the branch.

    Returns:
        None if there is no cycle, otherwise the short ids along the cycle
        ending with the repeated one (``["00", "00"]`` for a self reference).
    """
    on_path: Set[str] = set()
    path: List[str] = []

    def visit(current_id: str) -> Optional[List[str]]:
        if current_id in on_path:
            path.append(graph.get_cell(current_id).short_id)
            return list(path)

        if not graph.has_cell(current_id):
            return None
        cell = graph.get_cell(current_id)
        if cell.cell_type != CellType.FORMULA:
            return None

        on_path.add(current_id)
        path.append(cell.short_id)

        formula = cell.inline_text()
        if formula:
            for ref_id in parse_formula_references(formula):
                ref_cell = graph.get_cell_by_short_id(ref_id)
                if ref_cell is not None:
                    cycle = visit(ref_cell.id)
                    if cycle:
                        return cycle

        on_path.discard(current_id)
        path.pop()
        return None

    return visit(cell_id)


def _references_short_id(cell: Cell, short_id: str) -> bool:
    formula = cell.inline_text()
    if not formula:
        return False
    wanted = short_id.upper()
    return any(ref.upper() == wanted for ref in parse_formula_references(formula))


def get_dependent_formula_cells(cell_id: str, graph: "CellGraph") -> List[str]:
    """Ids of formula cells whose text directly references ``cell_id``.

    A full scan of the graph. Returns an empty list for unknown ids.
    """
    if not graph.has_cell(cell_id):
        return []
    short_id = graph.get_cell(cell_id).short_id
    if not short_id:
        return []

    return [
        cell.id
        for cell in graph.cells()
        if cell.cell_type == CellType.FORMULA and _references_short_id(cell, short_id)
    ]


def build_dependent_index(graph: "CellGraph") -> Dict[str, List[str]]:
    """Reverse reference index: cell id -> formula cells that reference it.

    Rebuilt from scratch on every call.
    """
    index: Dict[str, List[str]] = {}
    for cell in graph.cells():
        if cell.cell_type != CellType.FORMULA:
            continue
        formula = cell.inline_text()
        if not formula:
            continue
        for ref_id in parse_formula_references(formula):
            ref_cell = graph.get_cell_by_short_id(ref_id)
            if ref_cell is None:
                continue
            dependents = index.setdefault(ref_cell.id, [])
            if cell.id not in dependents:
                dependents.append(cell.id)

    logger.debug(f"Built dependent index: {len(index)} referenced cells")
    return index
