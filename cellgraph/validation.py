"""Static checks over a cell graph.

Validation never raises. It returns every issue it finds and leaves the
decision of whether a graph may run to the caller.
"""

import logging
import re
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from cellgraph.models import CellType

if TYPE_CHECKING:
    from cellgraph.graph import CellGraph

logger = logging.getLogger(__name__)

# cell:Name references inside Code cell content
_CELL_NAME_REF_RE = re.compile(r"cell:(\w+)")


class IssueSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    IssueSeverity.INFO: 0,
    IssueSeverity.WARNING: 1,
    IssueSeverity.ERROR: 2,
}


class IssueType(str, Enum):
    NO_START_POINT = "no_start_point"
    CYCLE = "cycle"
    ORPHAN_CELL = "orphan_cell"
    MISSING_REFERENCE = "missing_reference"
    TYPE_MISMATCH = "type_mismatch"


class ValidationIssue(BaseModel):
    """A single problem found in a graph."""

    severity: IssueSeverity
    message: str
    affected_cells: List[str] = Field(default_factory=list)
    issue_type: IssueType


class ValidationResult(BaseModel):
    issues: List[ValidationIssue] = Field(default_factory=list)

    def _by_severity(self, severity: IssueSeverity) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == severity]

    @property
    def errors(self) -> List[ValidationIssue]:
        return self._by_severity(IssueSeverity.ERROR)

    @property
    def warnings(self) -> List[ValidationIssue]:
        return self._by_severity(IssueSeverity.WARNING)

    @property
    def info(self) -> List[ValidationIssue]:
        return self._by_severity(IssueSeverity.INFO)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors


def validate_graph(graph: "CellGraph") -> ValidationResult:
    """Run every check against ``graph``.

    Checks are independent; a failing check never hides the others.

    Args:
        graph: The graph to inspect. It is not modified.

    Returns:
        ValidationResult with issues in check order: start point, cycle,
        orphans, then cell references.
    """
    issues: List[ValidationIssue] = []

    start = graph.get_start_point()
    if start is None and graph.cell_count > 0:
        issues.append(
            ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="No start point set. Execution cannot begin.",
                issue_type=IssueType.NO_START_POINT,
            )
        )

    cycle = _detect_cycle(graph)
    if cycle:
        labels = " -> ".join(graph.get_cell(cid).display_name for cid in cycle)
        issues.append(
            ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Cycle detected in relationship graph: {labels}",
                affected_cells=list(dict.fromkeys(cycle)),
                issue_type=IssueType.CYCLE,
            )
        )

    if start is not None:
        orphans = _find_orphan_cells(graph, start.id)
        if orphans:
            issues.append(
                ValidationIssue(
                    severity=IssueSeverity.INFO,
                    message=(
                        f"{len(orphans)} cell(s) are unreachable from the start "
                        "point and will not execute."
                    ),
                    affected_cells=orphans,
                    issue_type=IssueType.ORPHAN_CELL,
                )
            )

    issues.extend(_check_cell_references(graph))

    logger.debug(f"Validation found {len(issues)} issue(s)")
    return ValidationResult(issues=issues)


def cells_with_issues(result: ValidationResult) -> Dict[str, IssueSeverity]:
    """Worst severity per affected cell id."""
    worst: Dict[str, IssueSeverity] = {}
    for issue in result.issues:
        for cell_id in issue.affected_cells:
            current = worst.get(cell_id)
            if current is None or issue.severity.rank > current.rank:
                worst[cell_id] = issue.severity
    return worst


def _detect_cycle(graph: "CellGraph") -> Optional[List[str]]:
    """DFS over relationship edges.

    Returns:
        The cycle as a list of ids ending with the repeated id, or None.
    """
    visited: Set[str] = set()
    rec_stack: Set[str] = set()
    path: List[str] = []

    def has_cycle(node: str) -> bool:
        visited.add(node)
        rec_stack.add(node)
        path.append(node)

        for rel in graph.outgoing(node):
            neighbor = rel.target
            if neighbor not in visited:
                if has_cycle(neighbor):
                    return True
            elif neighbor in rec_stack:
                # Found cycle - add the neighbor to show the loop
                path.append(neighbor)
                return True

        path.pop()
        rec_stack.remove(node)
        return False

    for cell in graph.cells():
        if cell.id not in visited:
            if has_cycle(cell.id):
                repeated = path[-1]
                return path[path.index(repeated) :]

    return None


def _find_orphan_cells(graph: "CellGraph", start_id: str) -> List[str]:
    """Leaf cells not reachable from the start by following relationships."""
    reachable: Set[str] = set()
    stack = [start_id]

    while stack:
        cell_id = stack.pop()
        if cell_id in reachable:
            continue
        reachable.add(cell_id)
        stack.extend(rel.target for rel in graph.outgoing(cell_id))

    # Split containers never execute, so they are not orphans
    return [c.id for c in graph.leaf_cells() if c.id not in reachable]


def _check_cell_references(graph: "CellGraph") -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []

    for cell in graph.cells():
        if cell.cell_type != CellType.CODE:
            continue
        content = cell.inline_text()
        if not content or "cell:" not in content:
            continue

        missing: Set[str] = set()
        mismatched: Set[str] = set()
        for match in _CELL_NAME_REF_RE.finditer(content):
            name = match.group(1)
            referenced = graph.get_cell_by_name(name)
            if referenced is None:
                missing.add(f"cell:{name}")
            elif referenced.cell_type != CellType.CODE:
                mismatched.add(f"cell:{name} ({referenced.cell_type.value})")

        if missing:
            issues.append(
                ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Missing cell references: {', '.join(sorted(missing))}",
                    affected_cells=[cell.id],
                    issue_type=IssueType.MISSING_REFERENCE,
                )
            )
        if mismatched:
            issues.append(
                ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=(
                        "References to non-code cells: "
                        f"{', '.join(sorted(mismatched))}"
                    ),
                    affected_cells=[cell.id],
                    issue_type=IssueType.TYPE_MISMATCH,
                )
            )

    return issues
