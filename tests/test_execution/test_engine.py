"""Tests for the stepped execution engine."""

import pytest

from cellgraph.exceptions import (
    ConflictError,
    CycleError,
    EvaluationError,
    ExecutionStateError,
    NoStartPointError,
)
from cellgraph.execution import (
    DRY_RUN_CODE,
    DRY_RUN_EVALUATORS,
    DRY_RUN_FORMULA,
    DRY_RUN_NUMBER,
    DRY_RUN_TEXT,
    RUN_EVALUATORS,
    ExecutionEngine,
    ExecutionMode,
    ExecutionStatus,
    PythonCodeEvaluator,
)
from cellgraph.models import CellType, SplitDirection, inline


class RecordingEvaluator:
    """Code evaluator double that returns a fixed value and records calls."""

    def __init__(self, value=None):
        self.value = value
        self.calls = []
        self.validated = []

    def evaluate(self, content, inputs):
        self.calls.append((content, list(inputs)))
        return self.value

    def validate(self, content):
        self.validated.append(content)


class TestCapabilityTables:
    """Tests for the evaluator tables."""

    def test_every_type_has_evaluators(self):
        """Test both tables cover every CellType."""
        assert set(RUN_EVALUATORS) == set(CellType)
        assert set(DRY_RUN_EVALUATORS) == set(CellType)


class TestRunMode:
    """Tests for Run mode."""

    def test_two_cell_chain(self, chain_graph):
        """Test root=10, child=2*root produces a 2-entry log ending in 20.0."""
        graph, root, child = chain_graph
        engine = ExecutionEngine(ExecutionMode.RUN)

        report = engine.execute(graph)

        assert report.status == ExecutionStatus.COMPLETE
        assert report.total_cells_executed == 2
        assert report.step == 2
        assert [e.cell_id for e in report.log] == [root, child]
        assert report.log[0].output == 10.0
        assert report.log[1].output == 20.0
        assert report.log[1].cell_name == "child"
        assert engine.outputs == {root: 10.0, child: 20.0}

    def test_engine_does_not_mutate_graph(self, chain_graph):
        """Test running leaves cell content and cached results alone."""
        graph, root, child = chain_graph
        before = [c.model_copy(deep=True) for c in graph.cells()]
        events_before = len(graph.events)

        ExecutionEngine(ExecutionMode.RUN).execute(graph)

        assert graph.cells() == before
        assert len(graph.events) == events_before

    def test_text_passes_first_input_through(self, graph, make_cell):
        """Test text cells forward the first upstream output."""
        a = make_cell(CellType.NUMBER_INT, "5")
        t = make_cell(CellType.TEXT, "label")
        graph.create_relationship(a, t)
        graph.set_start_point(a)

        report = ExecutionEngine().execute(graph)
        assert report.log[1].output == 5.0

    def test_text_without_inputs_is_none(self, graph, make_cell):
        """Test a lone text cell outputs None."""
        t = make_cell(CellType.TEXT, "hello")
        graph.set_start_point(t)

        report = ExecutionEngine().execute(graph)
        assert report.log[0].output is None

    def test_inputs_ordered_by_source_id(self, graph, make_cell):
        """Test code cells see inputs sorted by upstream id."""
        start = make_cell(CellType.NUMBER_INT, "1")
        mid = make_cell(CellType.NUMBER_INT, "2")
        recorder = RecordingEvaluator(value="ok")
        sink = make_cell(CellType.CODE, "body")
        graph.create_relationship(start, mid)
        graph.create_relationship(mid, sink)
        graph.create_relationship(start, sink)
        graph.set_start_point(start)

        ExecutionEngine(code_evaluator=recorder).execute(graph)

        # sink runs in step 2 after mid, then again in step 3
        assert recorder.calls == [("body", [1.0, 2.0]), ("body", [1.0, 2.0])]

    def test_steps_run_in_id_order(self, graph, make_cell):
        """Test cells within a step run in ascending id order."""
        start = make_cell(CellType.TEXT)
        first = make_cell(CellType.NUMBER_INT, "1")
        second = make_cell(CellType.NUMBER_INT, "2")
        # insert relationships in reverse order
        graph.create_relationship(start, second)
        graph.create_relationship(start, first)
        graph.set_start_point(start)

        report = ExecutionEngine().execute(graph)

        assert [e.cell_id for e in report.log if e.step == 2] == sorted([first, second])

    def test_missing_upstream_outputs_are_skipped(self, graph, make_cell):
        """Test inputs only include upstream cells that already ran."""
        start = make_cell(CellType.NUMBER_INT, "3")
        never_run = make_cell(CellType.NUMBER_INT, "99")
        recorder = RecordingEvaluator(value="ok")
        sink = make_cell(CellType.CODE, "whatever")
        graph.create_relationship(start, sink)
        graph.create_relationship(never_run, sink)
        graph.set_start_point(start)

        ExecutionEngine(code_evaluator=recorder).execute(graph)

        assert recorder.calls == [("whatever", [3.0])]

    def test_same_target_in_later_step_is_not_a_conflict(self, graph, make_cell):
        """Test different steps may feed the same target."""
        a = make_cell(CellType.NUMBER_INT, "1")
        b = make_cell(CellType.TEXT)
        c = make_cell(CellType.TEXT)
        graph.create_relationship(a, b)
        graph.create_relationship(b, c)
        graph.create_relationship(a, c)
        graph.set_start_point(a)

        report = ExecutionEngine().execute(graph)

        assert report.status == ExecutionStatus.COMPLETE
        assert [e.cell_id for e in report.log] == [a, b, c, c]

    def test_non_leaf_targets_are_not_scheduled(self, graph, make_cell):
        """Test split containers never execute."""
        a = make_cell(CellType.NUMBER_INT, "1")
        container = make_cell(CellType.TEXT)
        graph.create_relationship(a, container)
        graph.split_cell(container, SplitDirection.VERTICAL, 0.5)
        graph.set_start_point(a)

        report = ExecutionEngine().execute(graph)
        assert [e.cell_id for e in report.log] == [a]

    def test_relationship_loop_in_step_mode(self, graph, make_cell):
        """Test a relationship loop keeps advancing one step per call."""
        a = make_cell(CellType.TEXT)
        b = make_cell(CellType.TEXT)
        graph.create_relationship(a, b)
        graph.create_relationship(b, a)
        graph.set_start_point(a)
        engine = ExecutionEngine(ExecutionMode.STEP)

        engine.execute(graph)
        report = engine.continue_execution(graph)

        assert report.status == ExecutionStatus.PAUSED
        assert [e.cell_id for e in report.log] == [a, b]


class TestConflict:
    """Tests for same-step conflict detection."""

    def test_two_producers_same_target(self, graph, make_cell):
        """Test two cells in one step writing the same target conflict."""
        start = make_cell(CellType.TEXT)
        left = make_cell(CellType.TEXT)
        right = make_cell(CellType.TEXT)
        target = make_cell(CellType.TEXT)
        for producer in (left, right):
            graph.create_relationship(start, producer)
            graph.create_relationship(producer, target)
        graph.set_start_point(start)
        engine = ExecutionEngine()

        with pytest.raises(ConflictError) as exc_info:
            engine.execute(graph)

        assert exc_info.value.cell_id == target
        assert exc_info.value.step == 2
        assert "written twice in step 2" in str(exc_info.value)
        assert engine.status == ExecutionStatus.ERROR

    def test_failed_step_is_not_committed(self, graph, make_cell):
        """Test outputs of a failing step are discarded, earlier ones kept."""
        start = make_cell(CellType.NUMBER_INT, "1")
        left = make_cell(CellType.TEXT)
        right = make_cell(CellType.TEXT)
        target = make_cell(CellType.TEXT)
        for producer in (left, right):
            graph.create_relationship(start, producer)
            graph.create_relationship(producer, target)
        graph.set_start_point(start)
        engine = ExecutionEngine()

        with pytest.raises(ConflictError):
            engine.execute(graph)

        assert engine.outputs == {start: 1.0}
        log = engine.log
        assert [e.step for e in log] == [1, 2]
        assert log[-1].error is not None
        assert engine.report().error == log[-1].error


class TestErrors:
    """Tests for failures."""

    def test_no_start_point(self, graph, make_cell):
        """Test execute requires a start cell."""
        make_cell(CellType.TEXT)
        with pytest.raises(NoStartPointError):
            ExecutionEngine().execute(graph)

    def test_bad_number_fails_run(self, graph, make_cell):
        """Test malformed number text aborts the run."""
        cell = make_cell(CellType.NUMBER_FLOAT, "abc")
        graph.set_start_point(cell)
        engine = ExecutionEngine()

        with pytest.raises(EvaluationError, match="Cannot parse number"):
            engine.execute(graph)
        assert engine.status == ExecutionStatus.ERROR

    def test_self_referencing_formula(self, graph, make_cell):
        """Test a cyclic formula fails before evaluation and produces no number."""
        cell = make_cell(CellType.FORMULA)
        short_id = graph.get_cell(cell).short_id
        graph.update_cell_content(cell, inline(f"[[{short_id}]] + 1"))
        graph.set_start_point(cell)
        engine = ExecutionEngine()

        with pytest.raises(CycleError):
            engine.execute(graph)

        assert cell not in engine.outputs
        assert graph.get_cell(cell).computed_result is None

    def test_code_cell_without_evaluator(self, graph, make_cell):
        """Test code cells need an injected evaluator."""
        cell = make_cell(CellType.CODE, "set_output(1)")
        graph.set_start_point(cell)

        with pytest.raises(EvaluationError, match="No code evaluator"):
            ExecutionEngine().execute(graph)

    def test_split_container_start_is_rejected(self, graph, make_cell):
        """Test a start flag left on a split container does not execute it."""
        container = make_cell(CellType.NUMBER_INT, "5")
        graph.split_cell(container, SplitDirection.VERTICAL, 0.5)
        # as after loading a hand-edited project
        for cell in graph.cells():
            cell.is_start_point = cell.id == container
        engine = ExecutionEngine()

        with pytest.raises(NoStartPointError, match="split container"):
            engine.execute(graph)

        assert engine.log == []
        assert engine.status == ExecutionStatus.NOT_STARTED

    def test_error_is_terminal(self, graph, make_cell):
        """Test a failed engine refuses to run again."""
        cell = make_cell(CellType.NUMBER_FLOAT, "abc")
        graph.set_start_point(cell)
        engine = ExecutionEngine()
        with pytest.raises(EvaluationError):
            engine.execute(graph)

        graph.update_cell_content(cell, inline("1"))
        with pytest.raises(ExecutionStateError, match="cannot be restarted"):
            engine.execute(graph)

        assert engine.status == ExecutionStatus.ERROR
        assert len(engine.log) == 1

    def test_digit_separators_are_rejected(self, graph, make_cell):
        """Test number text like 1_000 fails instead of parsing."""
        cell = make_cell(CellType.NUMBER_INT, "1_000")
        graph.set_start_point(cell)

        with pytest.raises(EvaluationError, match="Cannot parse number"):
            ExecutionEngine().execute(graph)

    def test_continue_when_not_paused(self, chain_graph):
        """Test continue_execution requires a paused engine."""
        graph, _, _ = chain_graph
        engine = ExecutionEngine()

        with pytest.raises(ExecutionStateError):
            engine.continue_execution(graph)

        engine.execute(graph)
        with pytest.raises(ExecutionStateError):
            engine.continue_execution(graph)


class TestStepMode:
    """Tests for Step mode."""

    def test_pause_and_resume(self, chain_graph):
        """Test one step per call until complete."""
        graph, root, child = chain_graph
        engine = ExecutionEngine(ExecutionMode.STEP)

        report = engine.execute(graph)
        assert report.status == ExecutionStatus.PAUSED
        assert report.step == 1
        assert engine.queue == [child]

        report = engine.continue_execution(graph)
        assert report.status == ExecutionStatus.PAUSED
        assert report.step == 2
        assert report.log[-1].output == 20.0

        report = engine.continue_execution(graph)
        assert report.status == ExecutionStatus.COMPLETE
        assert report.total_cells_executed == 2


class TestDryRun:
    """Tests for DryRun mode."""

    def test_placeholders(self, graph, make_cell):
        """Test every type returns its placeholder and entries are flagged."""
        recorder = RecordingEvaluator()
        start = make_cell(CellType.TEXT, "t")
        number = make_cell(CellType.NUMBER_CURRENCY, "not a number")
        formula = make_cell(CellType.FORMULA, "[[ZZ]] +")
        code = make_cell(CellType.CODE, "x = 1")
        graph.create_relationship(start, number)
        graph.create_relationship(number, formula)
        graph.create_relationship(formula, code)
        graph.set_start_point(start)
        engine = ExecutionEngine(ExecutionMode.DRY_RUN, code_evaluator=recorder)

        report = engine.execute(graph)

        assert report.status == ExecutionStatus.DRY_RUN_COMPLETE
        assert [e.output for e in report.log] == [
            DRY_RUN_TEXT,
            DRY_RUN_NUMBER,
            DRY_RUN_FORMULA,
            DRY_RUN_CODE,
        ]
        assert all(e.dry_run for e in report.log)
        assert recorder.validated == ["x = 1"]
        assert recorder.calls == []

    def test_dry_run_does_not_mutate(self, chain_graph):
        """Test dry runs leave content untouched."""
        graph, _, _ = chain_graph
        before = [c.model_copy(deep=True) for c in graph.cells()]

        ExecutionEngine(ExecutionMode.DRY_RUN).execute(graph)

        assert graph.cells() == before

    def test_dry_run_reports_syntax_errors(self, graph, make_cell):
        """Test dry runs still validate code syntax."""
        cell = make_cell(CellType.CODE, "def broken(:")
        graph.set_start_point(cell)

        with pytest.raises(EvaluationError, match="syntax error"):
            ExecutionEngine(ExecutionMode.DRY_RUN, code_evaluator=PythonCodeEvaluator()).execute(graph)


class TestRecalculateOnEngine:
    """Tests for ExecutionEngine.recalculate_dependents."""

    def test_caches_outputs(self, chain_graph):
        """Test recalculated values land in the output cache."""
        graph, root, child = chain_graph
        engine = ExecutionEngine()

        outcomes = engine.recalculate_dependents(root, graph)

        assert [o.value for o in outcomes] == [20.0]
        assert engine.outputs[child] == 20.0
