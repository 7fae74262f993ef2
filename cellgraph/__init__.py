"""cellgraph - typed cells on a canvas, wired into a stepped dataflow graph.

This package exports:
- CellGraph: the cell and relationship store with its event log
- ExecutionEngine: step-by-step execution from a start cell
- validate_graph: static checks before a run
- Project: on-disk persistence
"""

from cellgraph.config import CellGraphConfig, get_config, set_config
from cellgraph.execution import (
    ExecutionEngine,
    ExecutionMode,
    ExecutionReport,
    ExecutionStatus,
    PythonCodeEvaluator,
    recalculate_dependents,
)
from cellgraph.graph import CellGraph
from cellgraph.models import Cell, CellType, Rectangle, SplitDirection, external, inline
from cellgraph.persistence import Manifest, Project
from cellgraph.validation import ValidationResult, cells_with_issues, validate_graph

__version__ = "0.1.0"

__all__ = [
    "Cell",
    "CellGraph",
    "CellGraphConfig",
    "CellType",
    "ExecutionEngine",
    "ExecutionMode",
    "ExecutionReport",
    "ExecutionStatus",
    "Manifest",
    "Project",
    "PythonCodeEvaluator",
    "Rectangle",
    "SplitDirection",
    "ValidationResult",
    "cells_with_issues",
    "external",
    "get_config",
    "inline",
    "recalculate_dependents",
    "set_config",
    "validate_graph",
]
