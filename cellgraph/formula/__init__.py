"""Formula subsystem - ``[[short_id]]`` references and arithmetic."""

from cellgraph.formula.arithmetic import evaluate_arithmetic
from cellgraph.formula.links import CellLink, get_link_at_position, parse_cell_links
from cellgraph.formula.references import (
    build_dependent_index,
    build_variables,
    detect_circular_references,
    evaluate_expression,
    get_dependent_formula_cells,
    parse_formula_references,
    parse_number,
    prepare_formula,
    resolve_cell_value,
)

__all__ = [
    "CellLink",
    "build_dependent_index",
    "build_variables",
    "detect_circular_references",
    "evaluate_arithmetic",
    "evaluate_expression",
    "get_dependent_formula_cells",
    "get_link_at_position",
    "parse_cell_links",
    "parse_formula_references",
    "parse_number",
    "prepare_formula",
    "resolve_cell_value",
]
