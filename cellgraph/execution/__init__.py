"""Execution - stepped dataflow engine and formula recalculation."""

from cellgraph.execution.code import CodeEvaluator, PythonCodeEvaluator
from cellgraph.execution.engine import ExecutionEngine
from cellgraph.execution.evaluators import (
    DRY_RUN_CODE,
    DRY_RUN_EVALUATORS,
    DRY_RUN_FORMULA,
    DRY_RUN_NUMBER,
    DRY_RUN_TEXT,
    RUN_EVALUATORS,
)
from cellgraph.execution.models import (
    ExecutionLogEntry,
    ExecutionMode,
    ExecutionReport,
    ExecutionStatus,
    RecalcOutcome,
)
from cellgraph.execution.recalc import format_number, recalculate_dependents

__all__ = [
    "CodeEvaluator",
    "DRY_RUN_CODE",
    "DRY_RUN_EVALUATORS",
    "DRY_RUN_FORMULA",
    "DRY_RUN_NUMBER",
    "DRY_RUN_TEXT",
    "ExecutionEngine",
    "ExecutionLogEntry",
    "ExecutionMode",
    "ExecutionReport",
    "ExecutionStatus",
    "PythonCodeEvaluator",
    "RUN_EVALUATORS",
    "RecalcOutcome",
    "format_number",
    "recalculate_dependents",
]
