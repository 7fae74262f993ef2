"""cellgraph CLI for building, validating and running cell graphs.

Every command works on a project directory. Cells can be addressed by id,
short id or name.
"""

import sys
from pathlib import Path
from typing import Any, List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cellgraph.config import get_config
from cellgraph.exceptions import CellGraphError, CellNotFoundError
from cellgraph.execution import (
    ExecutionEngine,
    ExecutionLogEntry,
    ExecutionMode,
    ExecutionStatus,
    PythonCodeEvaluator,
    recalculate_dependents,
)
from cellgraph.graph import CellGraph
from cellgraph.logging_config import configure_logging
from cellgraph.models import Cell, CellType, Rectangle, SplitDirection, inline
from cellgraph.persistence import Project
from cellgraph.validation import IssueSeverity, ValidationResult, validate_graph

console = Console()

MODE_CHOICES = {
    "run": ExecutionMode.RUN,
    "step": ExecutionMode.STEP,
    "dry-run": ExecutionMode.DRY_RUN,
}

SEVERITY_STYLES = {
    IssueSeverity.ERROR: "red",
    IssueSeverity.WARNING: "yellow",
    IssueSeverity.INFO: "blue",
}


def print_output(text: str, style: Optional[str] = None) -> None:
    if style:
        console.print(text, style=style)
    else:
        console.print(text)


def print_error(text: str) -> None:
    console.print(f"[red]Error: {escape(text)}[/red]")


def truncate(value: Any, limit: Optional[int] = None) -> str:
    limit = limit or get_config().max_output_length
    text = "" if value is None else str(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def resolve_cell(graph: CellGraph, ref: str) -> Cell:
    """Find a cell by id, short id or name.

    Raises:
        CellNotFoundError: If nothing matches.
    """
    if graph.has_cell(ref):
        return graph.get_cell(ref)
    cell = graph.get_cell_by_short_id(ref) or graph.get_cell_by_name(ref)
    if cell is None:
        raise CellNotFoundError(ref)
    return cell


def load_project(path: str):
    project = Project.open(Path(path))
    _, graph = project.load()
    return project, graph


def print_issues(result: ValidationResult, graph: CellGraph) -> None:
    if not result.issues:
        print_output("No issues found.", style="green")
        return

    table = Table(title="Validation")
    table.add_column("Severity")
    table.add_column("Type", style="cyan")
    table.add_column("Message")
    table.add_column("Cells", style="magenta")

    for issue in result.issues:
        style = SEVERITY_STYLES[issue.severity]
        cells = ", ".join(
            graph.get_cell(cid).short_id if graph.has_cell(cid) else cid
            for cid in issue.affected_cells
        )
        table.add_row(
            f"[{style}]{issue.severity.value}[/{style}]",
            issue.issue_type.value,
            escape(issue.message),
            cells,
        )
    console.print(table)


def print_log(entries: List[ExecutionLogEntry], graph: CellGraph) -> None:
    table = Table(title="Execution Log")
    table.add_column("Step", style="cyan", justify="right")
    table.add_column("Cell", style="magenta")
    table.add_column("Output")
    table.add_column("Error", style="red")

    for entry in entries:
        label = (
            graph.get_cell(entry.cell_id).display_name
            if graph.has_cell(entry.cell_id)
            else entry.cell_id
        )
        table.add_row(
            str(entry.step),
            escape(label),
            escape(truncate(entry.output)),
            escape(entry.error or ""),
        )
    console.print(table)


@click.group()
@click.option("--log-level", default=None, help="Override CELLGRAPH_LOG_LEVEL")
def cli(log_level: Optional[str]):
    """cellgraph - typed cells wired into a dataflow graph."""
    config = get_config()
    configure_logging(log_level or config.log_level, config.log_format)


@cli.command()
@click.argument("path", type=click.Path(file_okay=False))
def init(path: str):
    """Create an empty project directory."""
    try:
        Project.create(Path(path))
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)
    print_output(f"Created project at {path}", style="green")


@cli.command("add-cell")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.argument("cell_type", type=click.Choice([t.value for t in CellType]))
@click.argument("content", default="")
@click.option("--name", default=None, help="Cell name")
@click.option("--x", type=float, default=None, help="Left edge (default: right of existing cells)")
@click.option("--y", type=float, default=0.0, help="Top edge")
@click.option("--width", type=float, default=None)
@click.option("--height", type=float, default=None)
@click.option("--start", is_flag=True, help="Make this the start cell")
def add_cell(
    path: str,
    cell_type: str,
    content: str,
    name: Optional[str],
    x: Optional[float],
    y: float,
    width: Optional[float],
    height: Optional[float],
    start: bool,
):
    """Add a cell to the project."""
    config = get_config()
    try:
        project, graph = load_project(path)
        if x is None:
            x = max((c.bounds.right for c in graph.leaf_cells()), default=0.0)
        bounds = Rectangle(
            x=x,
            y=y,
            width=width or config.default_cell_width,
            height=height or config.default_cell_height,
        )
        cell_id = graph.create_cell(CellType(cell_type), bounds, inline(content), name=name)
        if start:
            graph.set_start_point(cell_id)
        project.save(graph)
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)

    cell = graph.get_cell(cell_id)
    print_output(f"Added {cell_type} cell {cell.short_id} ({cell.id})", style="green")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.argument("source")
@click.argument("target")
def connect(path: str, source: str, target: str):
    """Connect SOURCE to TARGET (TARGET consumes SOURCE's output)."""
    try:
        project, graph = load_project(path)
        src = resolve_cell(graph, source)
        dst = resolve_cell(graph, target)
        graph.create_relationship(src.id, dst.id)
        project.save(graph)
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)
    print_output(f"Connected {src.short_id} -> {dst.short_id}", style="green")


@cli.command("set-start")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.argument("cell")
def set_start(path: str, cell: str):
    """Make CELL the start cell."""
    try:
        project, graph = load_project(path)
        target = resolve_cell(graph, cell)
        graph.set_start_point(target.id)
        project.save(graph)
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)
    print_output(f"Start cell: {target.short_id}", style="green")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.argument("cell")
@click.option(
    "--direction",
    type=click.Choice([d.value for d in SplitDirection]),
    default=SplitDirection.VERTICAL.value,
    help="horizontal = top/bottom, vertical = left/right",
)
@click.option("--ratio", type=float, default=0.5, help="Split position in (0, 1)")
def split(path: str, cell: str, direction: str, ratio: float):
    """Split CELL into two children."""
    try:
        project, graph = load_project(path)
        target = resolve_cell(graph, cell)
        first, second = graph.split_cell(target.id, SplitDirection(direction), ratio)
        project.save(graph)
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)
    print_output(
        f"Split {target.short_id} into {graph.get_cell(first).short_id} "
        f"and {graph.get_cell(second).short_id}",
        style="green",
    )


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
def show(path: str):
    """Show cells and relationships."""
    try:
        _, graph = load_project(path)
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)

    if graph.cell_count == 0:
        print_output("No cells.", style="yellow")
        return

    table = Table(title="Cells")
    table.add_column("Short", style="cyan")
    table.add_column("Name")
    table.add_column("Type", style="magenta")
    table.add_column("Content")
    table.add_column("Result", style="green")
    table.add_column("Start")

    for cell in graph.leaf_cells():
        text = cell.inline_text()
        content = text if text is not None else f"<external: {cell.content.path}>"
        table.add_row(
            cell.short_id,
            escape(cell.name or ""),
            cell.cell_type.value,
            escape(truncate(content)),
            "" if cell.computed_result is None else str(cell.computed_result),
            "*" if cell.is_start_point else "",
        )
    console.print(table)

    if graph.relationship_count:
        console.print("\n[bold]Relationships:[/bold]")
        for rel in graph.relationships():
            console.print(
                f"  {graph.get_cell(rel.source).short_id} -> {graph.get_cell(rel.target).short_id}"
            )


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
def validate(path: str):
    """Validate the graph. Exits 1 when there are errors."""
    try:
        _, graph = load_project(path)
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)

    result = validate_graph(graph)
    print_issues(result, graph)
    if result.has_errors:
        sys.exit(1)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--mode",
    type=click.Choice(list(MODE_CHOICES)),
    default="run",
    help="run to completion, pause after each step, or dry-run",
)
def run(path: str, mode: str):
    """Execute the graph from its start cell."""
    config = get_config()
    try:
        _, graph = load_project(path)
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)

    execution_mode = MODE_CHOICES[mode]
    if execution_mode != ExecutionMode.DRY_RUN:
        result = validate_graph(graph)
        if result.has_errors:
            print_issues(result, graph)
            print_error("Validation failed; use --mode dry-run to inspect the graph")
            sys.exit(1)

    code_evaluator = PythonCodeEvaluator() if config.enable_code_cells else None
    engine = ExecutionEngine(execution_mode, code_evaluator=code_evaluator)

    try:
        report = engine.execute(graph)
        shown = 0
        while report.status == ExecutionStatus.PAUSED:
            print_log(report.log[shown:], graph)
            shown = len(report.log)
            if not click.confirm(f"Step {report.step} done. Continue?", default=True):
                print_output("Stopped.", style="yellow")
                return
            report = engine.continue_execution(graph)
    except CellGraphError as e:
        print_log(engine.log, graph)
        print_error(str(e))
        sys.exit(1)

    print_log(report.log, graph)
    print_output(
        f"Status: {report.status.value}, steps: {report.step}, "
        f"cells executed: {report.total_cells_executed}",
        style="green",
    )


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.argument("cell")
def recalc(path: str, cell: str):
    """Recalculate formulas that reference CELL."""
    try:
        project, graph = load_project(path)
        changed = resolve_cell(graph, cell)
        outcomes = recalculate_dependents(changed.id, graph)
        project.save(graph)
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)

    if not outcomes:
        print_output(f"No formulas reference {changed.short_id}.", style="yellow")
        return

    for outcome in outcomes:
        short_id = graph.get_cell(outcome.cell_id).short_id
        if outcome.ok:
            print_output(f"{short_id} = {outcome.value}", style="green")
        else:
            print_output(f"{short_id}: {escape(outcome.error)}", style="red")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--limit", "-l", default=None, type=int, help="Show only the last N events")
def events(path: str, limit: Optional[int]):
    """Show the event log."""
    try:
        project = Project.open(Path(path))
        event_log = project.load_events()
    except CellGraphError as e:
        print_error(str(e))
        sys.exit(1)

    if limit is not None:
        event_log = event_log[-limit:] if limit > 0 else []
    if not event_log:
        print_output("No events.", style="yellow")
        return

    table = Table(title="Events")
    table.add_column("Time", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Details")

    for event in event_log:
        details = event.payload.model_dump(exclude={"type"}, mode="json")
        table.add_row(
            event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            event.event_type.value,
            escape(truncate(details)),
        )
    console.print(table)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
