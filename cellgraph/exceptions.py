"""Exceptions for the cellgraph package."""

from typing import List, Optional


class CellGraphError(Exception):
    """Base class for all cellgraph errors."""

    pass


class NotFoundError(CellGraphError):
    """Raised when a cell or relationship does not exist."""

    pass


class CellNotFoundError(NotFoundError):
    """Raised when a cell id cannot be resolved.

    Attributes:
        cell_id: The id (or short id) that was looked up.
    """

    def __init__(self, cell_id: str, message: Optional[str] = None) -> None:
        self.cell_id = cell_id
        super().__init__(message or f"Cell not found: {cell_id}")


class RelationshipNotFoundError(NotFoundError):
    """Raised when a relationship between two cells does not exist."""

    def __init__(self, source: str, target: str) -> None:
        self.source = source
        self.target = target
        super().__init__(f"Relationship not found: {source} -> {target}")


class InvalidArgumentError(CellGraphError):
    """Raised for bad split ratios, self relationships and undersized merges."""

    pass


class NoStartPointError(CellGraphError):
    """Raised when execution begins without exactly one start cell."""

    pass


class ConflictError(CellGraphError):
    """Raised when a cell is scheduled twice within one step.

    Attributes:
        cell_id: The cell that was written twice.
        step: The 1-indexed step in which the conflict happened.
    """

    def __init__(self, cell_id: str, step: int) -> None:
        self.cell_id = cell_id
        self.step = step
        super().__init__(f"Conflict: Cell {cell_id} written twice in step {step}")


class ExecutionStateError(CellGraphError):
    """Raised when an engine operation is invalid for its current status."""

    pass


class EvaluationError(CellGraphError):
    """Raised when a cell cannot be evaluated.

    Covers formula parse errors, missing references, non-numeric results
    and failures reported by a delegated code evaluator.
    """

    pass


class CodeSyntaxError(EvaluationError):
    """Raised by a code evaluator when cell source does not compile."""

    pass


class CycleError(EvaluationError):
    """Raised when a circular reference is found.

    Attributes:
        path: Ids along the cycle, ending with the repeated id.
    """

    def __init__(self, path: List[str]) -> None:
        self.path = path
        super().__init__(f"Circular reference detected: {' → '.join(path)}")


class ProjectError(CellGraphError):
    """Raised when a project directory cannot be created, read or written."""

    pass
