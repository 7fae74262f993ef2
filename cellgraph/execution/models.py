"""Execution state, log and report models."""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ExecutionMode(str, Enum):
    """How far an engine runs per call."""

    RUN = "run"  # drain the queue
    STEP = "step"  # one step, then pause
    DRY_RUN = "dry_run"  # placeholders instead of real evaluation


class ExecutionStatus(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETE = "complete"
    DRY_RUN_COMPLETE = "dry_run_complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExecutionStatus.COMPLETE,
            ExecutionStatus.DRY_RUN_COMPLETE,
            ExecutionStatus.ERROR,
        )


class ExecutionLogEntry(BaseModel):
    """One cell evaluation within a run."""

    step: int
    cell_id: str
    cell_name: Optional[str] = Field(
        default=None, description="Cell name at the time it ran"
    )
    output: Any = None
    dry_run: bool = False
    error: Optional[str] = None


class ExecutionReport(BaseModel):
    """Summary returned by execute() and continue_execution()."""

    status: ExecutionStatus
    step: int
    log: List[ExecutionLogEntry] = Field(default_factory=list)
    total_cells_executed: int = 0
    error: Optional[str] = None


class RecalcOutcome(BaseModel):
    """Result of re-evaluating one dependent formula.

    Exactly one of ``value`` and ``error`` is set.
    """

    cell_id: str
    value: Optional[float] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
