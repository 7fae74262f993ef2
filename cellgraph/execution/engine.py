"""Stepped dataflow execution engine.

Execution starts at the graph's single start cell and advances in steps:
the cells run in step N schedule their downstream targets for step N+1.

Usage:
    ```python
    engine = ExecutionEngine(ExecutionMode.RUN)
    report = engine.execute(graph)
    for entry in report.log:
        print(entry.step, entry.cell_id, entry.output)
    ```
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from cellgraph.exceptions import (
    ConflictError,
    ExecutionStateError,
    NoStartPointError,
)
from cellgraph.execution.code import CodeEvaluator
from cellgraph.execution.evaluators import DRY_RUN_EVALUATORS, RUN_EVALUATORS
from cellgraph.execution.models import (
    ExecutionLogEntry,
    ExecutionMode,
    ExecutionReport,
    ExecutionStatus,
    RecalcOutcome,
)
from cellgraph.execution.recalc import recalculate_dependents
from cellgraph.validation import IssueSeverity, validate_graph

if TYPE_CHECKING:
    from cellgraph.graph import CellGraph

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """Runs a CellGraph step by step.

    The engine only reads the graph. Outputs live in the engine's own cache
    (``outputs``) keyed by cell id, and every evaluation appends a log entry.

    An engine is meant for one run; create a new one for an independent run.
    """

    def __init__(
        self,
        mode: ExecutionMode = ExecutionMode.RUN,
        code_evaluator: Optional[CodeEvaluator] = None,
    ) -> None:
        self.mode = mode
        self.code_evaluator = code_evaluator
        self.current_step = 0
        self.error: Optional[str] = None
        self._status = ExecutionStatus.NOT_STARTED
        self._queue: List[str] = []
        self._executed_this_step: Set[str] = set()
        self._log: List[ExecutionLogEntry] = []
        self._outputs: Dict[str, Any] = {}

    @property
    def status(self) -> ExecutionStatus:
        return self._status

    @property
    def log(self) -> List[ExecutionLogEntry]:
        return list(self._log)

    @property
    def outputs(self) -> Dict[str, Any]:
        """Committed outputs by cell id."""
        return dict(self._outputs)

    @property
    def queue(self) -> List[str]:
        """Cells scheduled for the next step."""
        return list(self._queue)

    def execute(self, graph: "CellGraph") -> ExecutionReport:
        """Start a run from the start cell.

        Raises:
            NoStartPointError: If the graph does not have exactly one start
                cell, or the start cell is a split container.
            ExecutionStateError: If a previous run on this engine failed.
                Error is terminal; use a new engine.
            CellGraphError: If a step fails. The engine is left in ERROR.
        """
        if self._status == ExecutionStatus.ERROR:
            raise ExecutionStateError(
                f"Execution failed and cannot be restarted: {self.error}"
            )

        start_cells = graph.start_points()
        if len(start_cells) != 1:
            raise NoStartPointError(
                "No start point set"
                if not start_cells
                else f"Expected one start point, found {len(start_cells)}"
            )
        start = start_cells[0]
        if not start.is_leaf:
            raise NoStartPointError(
                f"Start cell {start.short_id} is a split container and cannot execute"
            )

        self._preflight(graph)

        logger.info(
            f"Starting execution: mode={self.mode.value}, start={start.short_id}, "
            f"cells={graph.cell_count}"
        )
        self._status = ExecutionStatus.RUNNING
        self._queue = [start.id]
        self.current_step = 0
        self.error = None
        self._executed_this_step.clear()
        self._outputs.clear()
        self._log.clear()

        return self._drain(graph)

    def continue_execution(self, graph: "CellGraph") -> ExecutionReport:
        """Resume a paused Step-mode run.

        Raises:
            ExecutionStateError: If the engine is not paused.
        """
        if self._status != ExecutionStatus.PAUSED:
            raise ExecutionStateError(
                f"Execution is not paused (status: {self._status.value})"
            )

        logger.debug(f"Resuming execution at step {self.current_step + 1}")
        self._status = ExecutionStatus.RUNNING
        return self._drain(graph)

    def recalculate_dependents(
        self, changed_id: str, graph: "CellGraph"
    ) -> List[RecalcOutcome]:
        """Recalculate dependents and cache their values as outputs."""
        outcomes = recalculate_dependents(changed_id, graph)
        for outcome in outcomes:
            if outcome.ok:
                self._outputs[outcome.cell_id] = outcome.value
        return outcomes

    def report(self) -> ExecutionReport:
        return ExecutionReport(
            status=self._status,
            step=self.current_step,
            log=list(self._log),
            total_cells_executed=len(self._log),
            error=self.error,
        )

    # =========================================================================
    # Stepping
    # =========================================================================

    def _drain(self, graph: "CellGraph") -> ExecutionReport:
        while self._queue:
            self.current_step += 1
            self._execute_step(graph)

            if self.mode == ExecutionMode.STEP:
                self._status = ExecutionStatus.PAUSED
                logger.debug(f"Paused after step {self.current_step}")
                return self.report()

        self._status = (
            ExecutionStatus.DRY_RUN_COMPLETE
            if self.mode == ExecutionMode.DRY_RUN
            else ExecutionStatus.COMPLETE
        )
        logger.info(
            f"Execution finished: status={self._status.value}, "
            f"steps={self.current_step}, cells={len(self._log)}"
        )
        return self.report()

    def _execute_step(self, graph: "CellGraph") -> None:
        """Run every queued cell. Nothing is committed unless all succeed."""
        step_cells = sorted(self._queue)
        self._queue = []
        self._executed_this_step.clear()

        dry_run = self.mode == ExecutionMode.DRY_RUN
        evaluators = DRY_RUN_EVALUATORS if dry_run else RUN_EVALUATORS
        pending_outputs: Dict[str, Any] = {}
        pending_log: List[ExecutionLogEntry] = []
        next_queue: List[str] = []

        for cell_id in step_cells:
            cell_name = None
            try:
                cell = graph.get_cell(cell_id)
                cell_name = cell.name
                inputs = self._gather_inputs(graph, cell_id, pending_outputs)
                output = evaluators[cell.cell_type](
                    cell, inputs, graph, self.code_evaluator
                )
                pending_log.append(
                    ExecutionLogEntry(
                        step=self.current_step,
                        cell_id=cell_id,
                        cell_name=cell_name,
                        output=output,
                        dry_run=dry_run,
                    )
                )
                pending_outputs[cell_id] = output
                self._schedule_downstream(graph, cell_id, next_queue)
            except Exception as e:
                self._fail(cell_id, cell_name, e)
                raise

        self._outputs.update(pending_outputs)
        self._log.extend(pending_log)
        self._queue = next_queue
        logger.debug(
            f"Step {self.current_step} complete: ran={len(step_cells)}, "
            f"next={len(next_queue)}"
        )

    def _schedule_downstream(
        self, graph: "CellGraph", cell_id: str, next_queue: List[str]
    ) -> None:
        for rel in graph.outgoing(cell_id):
            target_id = rel.target
            if not graph.get_cell(target_id).is_leaf:
                continue

            if target_id in self._executed_this_step:
                raise ConflictError(target_id, self.current_step)
            self._executed_this_step.add(target_id)

            if target_id not in next_queue:
                next_queue.append(target_id)

    def _gather_inputs(
        self, graph: "CellGraph", cell_id: str, pending_outputs: Dict[str, Any]
    ) -> List[Any]:
        """Outputs of upstream cells by source id. Missing outputs are skipped."""
        inputs = []
        for rel in graph.incoming(cell_id):
            if rel.source in pending_outputs:
                inputs.append(pending_outputs[rel.source])
            elif rel.source in self._outputs:
                inputs.append(self._outputs[rel.source])
        return inputs

    def _fail(self, cell_id: str, cell_name: Optional[str], error: Exception) -> None:
        self.error = str(error)
        self._status = ExecutionStatus.ERROR
        self._log.append(
            ExecutionLogEntry(
                step=self.current_step,
                cell_id=cell_id,
                cell_name=cell_name,
                output=None,
                dry_run=self.mode == ExecutionMode.DRY_RUN,
                error=self.error,
            )
        )
        logger.error(
            f"Execution failed: step={self.current_step}, cell={cell_id}, error={error}"
        )

    def _preflight(self, graph: "CellGraph") -> None:
        """Log validation issues. Whether they block a run is the caller's call."""
        result = validate_graph(graph)
        for issue in result.issues:
            level = logging.INFO if issue.severity == IssueSeverity.INFO else logging.WARNING
            logger.log(level, f"Pre-flight {issue.severity.value}: {issue.message}")
