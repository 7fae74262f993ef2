"""CellGraph - owns cells, relationships and the event log."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from cellgraph.config import CellGraphConfig, get_config
from cellgraph.exceptions import (
    CellNotFoundError,
    InvalidArgumentError,
    RelationshipNotFoundError,
)
from cellgraph.ids import ShortIdGenerator, generate_cell_id
from cellgraph.models import (
    Cell,
    CellBoundsChangedPayload,
    CellContent,
    CellContentChangedPayload,
    CellCreatedPayload,
    CellDeletedPayload,
    CellMergedPayload,
    CellRenamedPayload,
    CellSplitPayload,
    CellType,
    CellTypeChangedPayload,
    DecimalPrecisionChangedPayload,
    EventPayload,
    GraphEvent,
    InlineContent,
    Rectangle,
    Relationship,
    RelationshipCreatedPayload,
    RelationshipDeletedPayload,
    ResultTargetChangedPayload,
    SplitDirection,
    StartPointChangedPayload,
)

logger = logging.getLogger(__name__)


class CellGraph:
    """Cells and data-flow relationships, plus an append-only event log.

    Cells are kept in a dict keyed by id and relationships in a dict keyed by
    ``(source, target)``, so cycles are representable without object links.

    Usage:
        ```python
        graph = CellGraph()
        a = graph.create_cell(CellType.NUMBER_FLOAT, Rectangle(x=0, y=0, width=100, height=100), inline("10"))
        b = graph.create_cell(CellType.FORMULA, Rectangle(x=100, y=0, width=100, height=100), inline("2*[[00]]"))
        graph.create_relationship(a, b)
        graph.set_start_point(a)
        ```
    """

    def __init__(self, config: Optional[CellGraphConfig] = None) -> None:
        self._config = config or get_config()
        self._cells: Dict[str, Cell] = {}
        self._relationships: Dict[Tuple[str, str], Relationship] = {}
        self._root_id: Optional[str] = None
        self._events: List[GraphEvent] = []
        self._short_ids = ShortIdGenerator(self._config.short_id_length)
        # upper-cased short id -> cell id
        self._short_id_index: Dict[str, str] = {}

    @classmethod
    def with_root_cell(
        cls,
        cell_type: CellType,
        bounds: Rectangle,
        content: Optional[CellContent] = None,
        config: Optional[CellGraphConfig] = None,
    ) -> "CellGraph":
        """Create a graph holding a single root cell."""
        graph = cls(config=config)
        graph._root_id = graph.create_cell(cell_type, bounds, content)
        return graph

    @classmethod
    def from_parts(
        cls,
        cells: Iterable[Cell],
        relationships: Iterable[Relationship],
        root_id: Optional[str] = None,
        events: Iterable[GraphEvent] = (),
        config: Optional[CellGraphConfig] = None,
    ) -> "CellGraph":
        """Rebuild a graph from stored entities without logging new events.

        Used by persistence. Short id generation resumes after the highest
        short id found among ``cells``.
        """
        graph = cls(config=config)
        for cell in cells:
            graph._cells[cell.id] = cell
            if cell.short_id:
                graph._short_id_index[cell.short_id.upper()] = cell.id
        for rel in relationships:
            graph._relationships[rel.key] = rel
        graph._root_id = root_id
        graph._events = list(events)
        graph._short_ids = ShortIdGenerator.from_existing(
            (c.short_id for c in graph._cells.values()),
            min_length=graph._config.short_id_length,
        )
        return graph

    # =========================================================================
    # Cell CRUD
    # =========================================================================

    def create_cell(
        self,
        cell_type: CellType,
        bounds: Rectangle,
        content: Optional[CellContent] = None,
        name: Optional[str] = None,
    ) -> str:
        """Create a new cell and return its id."""
        cell = Cell(
            id=generate_cell_id(),
            name=name,
            short_id=self._next_short_id(),
            cell_type=cell_type,
            bounds=bounds,
            content=content if content is not None else InlineContent(),
            decimal_precision=self._config.default_decimal_precision,
        )
        self._insert_cell(cell)

        self._log_event(
            CellCreatedPayload(
                cell_id=cell.id, cell_type=cell_type, bounds=bounds, name=name
            )
        )
        logger.debug(
            f"Created cell: id={cell.id}, short_id={cell.short_id}, type={cell_type.value}"
        )
        return cell.id

    def get_cell(self, cell_id: str) -> Cell:
        """Get a cell by id.

        Raises:
            CellNotFoundError: If no cell has this id.
        """
        cell = self._cells.get(cell_id)
        if cell is None:
            raise CellNotFoundError(cell_id)
        return cell

    def has_cell(self, cell_id: str) -> bool:
        return cell_id in self._cells

    def get_cell_by_short_id(self, short_id: str) -> Optional[Cell]:
        """Look up a cell by its short id (case-insensitive)."""
        cell_id = self._short_id_index.get(short_id.strip().upper())
        return self._cells.get(cell_id) if cell_id else None

    def get_cell_id_by_short_id(self, short_id: str) -> Optional[str]:
        cell = self.get_cell_by_short_id(short_id)
        return cell.id if cell else None

    def get_cell_by_name(self, name: str) -> Optional[Cell]:
        """First cell (in id order) with this exact name."""
        for cell_id in sorted(self._cells):
            if self._cells[cell_id].name == name:
                return self._cells[cell_id]
        return None

    def update_cell_content(self, cell_id: str, content: CellContent) -> None:
        cell = self.get_cell(cell_id)
        cell.content = content
        self._log_event(CellContentChangedPayload(cell_id=cell_id, new_content=content))

    def update_cell_type(self, cell_id: str, new_type: CellType) -> None:
        cell = self.get_cell(cell_id)
        old_type = cell.cell_type
        cell.cell_type = new_type
        self._log_event(
            CellTypeChangedPayload(cell_id=cell_id, old_type=old_type, new_type=new_type)
        )

    def rename_cell(self, cell_id: str, name: Optional[str]) -> None:
        cell = self.get_cell(cell_id)
        cell.name = name
        self._log_event(CellRenamedPayload(cell_id=cell_id, new_name=name))

    def update_cell_bounds(self, cell_id: str, bounds: Rectangle) -> None:
        cell = self.get_cell(cell_id)
        cell.bounds = bounds
        self._log_event(CellBoundsChangedPayload(cell_id=cell_id, bounds=bounds))

    def set_result_target(self, cell_id: str, target_id: Optional[str]) -> None:
        """Point a formula at the cell that receives its recalculated value."""
        cell = self.get_cell(cell_id)
        if target_id is not None:
            self.get_cell(target_id)
        cell.result_target = target_id
        self._log_event(ResultTargetChangedPayload(cell_id=cell_id, target_id=target_id))

    def set_decimal_precision(self, cell_id: str, precision: int) -> None:
        if precision < 0:
            raise InvalidArgumentError("Decimal precision cannot be negative")
        cell = self.get_cell(cell_id)
        cell.decimal_precision = precision
        self._log_event(
            DecimalPrecisionChangedPayload(cell_id=cell_id, precision=precision)
        )

    def set_computed_result(self, cell_id: str, value: Optional[float]) -> None:
        """Cache a formula value on a cell. Derived data, so no event is logged."""
        self.get_cell(cell_id).computed_result = value

    def delete_cell(self, cell_id: str) -> None:
        """Delete a cell together with every relationship touching it."""
        cell = self.get_cell(cell_id)

        touching = [key for key in self._relationships if cell_id in key]
        for source, target in touching:
            self.delete_relationship(source, target)

        del self._cells[cell_id]
        if self._short_id_index.get(cell.short_id.upper()) == cell_id:
            del self._short_id_index[cell.short_id.upper()]

        # Keep split links pointing at live cells only
        if cell.parent and cell.parent in self._cells:
            parent = self._cells[cell.parent]
            parent.children = [c for c in parent.children if c != cell_id]
        for child_id in cell.children:
            if child_id in self._cells:
                self._cells[child_id].parent = None

        if self._root_id == cell_id:
            self._root_id = None

        self._log_event(CellDeletedPayload(cell_id=cell_id))
        logger.debug(f"Deleted cell: id={cell_id}, relationships_removed={len(touching)}")

    # =========================================================================
    # Start point
    # =========================================================================

    def set_start_point(self, cell_id: str) -> None:
        """Make ``cell_id`` the single start cell, clearing any previous one.

        Raises:
            CellNotFoundError: If the cell does not exist.
            InvalidArgumentError: If the cell is a split container.
        """
        cell = self.get_cell(cell_id)
        if not cell.is_leaf:
            raise InvalidArgumentError(
                f"Cannot start from split cell {cell.short_id}; choose one of its children"
            )

        old_start = self.get_start_point()
        for other in self._cells.values():
            if other.is_start_point and other.id != cell_id:
                other.is_start_point = False
        cell.is_start_point = True

        self._log_event(
            StartPointChangedPayload(
                old_id=old_start.id if old_start else None, new_id=cell_id
            )
        )

    def get_start_point(self) -> Optional[Cell]:
        """The start cell, or None when there is none (or, after a bad load, several)."""
        starts = self.start_points()
        return starts[0] if len(starts) == 1 else None

    def start_points(self) -> List[Cell]:
        return [self._cells[i] for i in sorted(self._cells) if self._cells[i].is_start_point]

    # =========================================================================
    # Relationships
    # =========================================================================

    def create_relationship(self, source: str, target: str) -> None:
        """Connect ``source`` to ``target``. Re-creating a pair is an upsert.

        Raises:
            CellNotFoundError: If either endpoint is missing.
            InvalidArgumentError: If source == target.
        """
        if source not in self._cells:
            raise CellNotFoundError(source, f"Source cell not found: {source}")
        if target not in self._cells:
            raise CellNotFoundError(target, f"Destination cell not found: {target}")
        if source == target:
            raise InvalidArgumentError("Cannot create self-referential relationship")

        self._relationships[(source, target)] = Relationship(source=source, target=target)
        self._log_event(RelationshipCreatedPayload(source=source, target=target))

    def get_relationship(self, source: str, target: str) -> Optional[Relationship]:
        return self._relationships.get((source, target))

    def delete_relationship(self, source: str, target: str) -> None:
        if self._relationships.pop((source, target), None) is None:
            raise RelationshipNotFoundError(source, target)
        self._log_event(RelationshipDeletedPayload(source=source, target=target))

    def relationships(self) -> List[Relationship]:
        """All relationships, ordered by (source, target)."""
        return [self._relationships[k] for k in sorted(self._relationships)]

    def outgoing(self, cell_id: str) -> List[Relationship]:
        """Relationships starting at ``cell_id``, ordered by target id."""
        return sorted(
            (r for r in self._relationships.values() if r.source == cell_id),
            key=lambda r: r.target,
        )

    def incoming(self, cell_id: str) -> List[Relationship]:
        """Relationships ending at ``cell_id``, ordered by source id."""
        return sorted(
            (r for r in self._relationships.values() if r.target == cell_id),
            key=lambda r: r.source,
        )

    # =========================================================================
    # Split / merge
    # =========================================================================

    def split_cell(
        self, cell_id: str, direction: SplitDirection, split_ratio: float
    ) -> Tuple[str, str]:
        """Split a cell into two children along ``direction``.

        Child 1 inherits the content and the start flag, child 2 starts
        empty. The parent stays in the graph as a non-executable container.

        Returns:
            Tuple of (child1_id, child2_id).

        Raises:
            InvalidArgumentError: If split_ratio is not strictly between 0 and 1.
            CellNotFoundError: If the cell does not exist.
        """
        if not 0.0 < split_ratio < 1.0:
            raise InvalidArgumentError(
                "Split ratio must be between 0.0 and 1.0 (exclusive)"
            )

        parent = self.get_cell(cell_id)
        b = parent.bounds

        if direction == SplitDirection.HORIZONTAL:
            split_y = b.y + b.height * split_ratio
            bounds1 = Rectangle(x=b.x, y=b.y, width=b.width, height=split_y - b.y)
            bounds2 = Rectangle(x=b.x, y=split_y, width=b.width, height=b.bottom - split_y)
        else:
            split_x = b.x + b.width * split_ratio
            bounds1 = Rectangle(x=b.x, y=b.y, width=split_x - b.x, height=b.height)
            bounds2 = Rectangle(x=split_x, y=b.y, width=b.right - split_x, height=b.height)

        child1 = Cell(
            id=generate_cell_id(),
            short_id=self._next_short_id(),
            cell_type=parent.cell_type,
            bounds=bounds1,
            content=parent.content.model_copy(deep=True),
            is_start_point=parent.is_start_point,
            parent=cell_id,
            decimal_precision=parent.decimal_precision,
        )
        child2 = Cell(
            id=generate_cell_id(),
            short_id=self._next_short_id(),
            cell_type=parent.cell_type,
            bounds=bounds2,
            content=InlineContent(),
            is_start_point=False,
            parent=cell_id,
            decimal_precision=parent.decimal_precision,
        )

        # The start flag moves to child 1
        parent.is_start_point = False
        parent.add_child(child1.id)
        parent.add_child(child2.id)
        self._insert_cell(child1)
        self._insert_cell(child2)

        self._log_event(
            CellSplitPayload(
                parent_id=cell_id,
                children=[child1.id, child2.id],
                direction=direction,
                split_ratio=split_ratio,
            )
        )
        logger.debug(
            f"Split cell: id={cell_id}, direction={direction.value}, ratio={split_ratio}"
        )
        return child1.id, child2.id

    def merge_cells(
        self,
        cell_ids: List[str],
        new_type: CellType,
        merged_content: Optional[CellContent] = None,
    ) -> str:
        """Replace several cells by one covering their combined bounds.

        When every input is a child of the same split container, the merged
        cell takes their place as that container's child, so the container
        stays a non-leaf.

        Returns:
            Id of the new cell.

        Raises:
            InvalidArgumentError: If fewer than two distinct ids are given.
            CellNotFoundError: If any id is missing. Nothing is deleted then.
        """
        unique_ids = list(dict.fromkeys(cell_ids))
        if len(unique_ids) < 2:
            raise InvalidArgumentError("Must merge at least 2 cells")
        for cid in unique_ids:
            if cid not in self._cells:
                raise CellNotFoundError(cid)

        merged_bounds = Rectangle.covering(self._cells[cid].bounds for cid in unique_ids)
        parents = {self._cells[cid].parent for cid in unique_ids}
        shared_parent = parents.pop() if len(parents) == 1 else None

        for cid in unique_ids:
            self.delete_cell(cid)

        merged = Cell(
            id=generate_cell_id(),
            short_id=self._next_short_id(),
            cell_type=new_type,
            bounds=merged_bounds,
            content=merged_content if merged_content is not None else InlineContent(),
            decimal_precision=self._config.default_decimal_precision,
        )
        self._insert_cell(merged)
        if shared_parent is not None and shared_parent in self._cells:
            merged.parent = shared_parent
            self._cells[shared_parent].add_child(merged.id)

        self._log_event(
            CellMergedPayload(merged_ids=unique_ids, new_id=merged.id, new_type=new_type)
        )
        logger.debug(f"Merged {len(unique_ids)} cells into {merged.id}")
        return merged.id

    # =========================================================================
    # Adjacency
    # =========================================================================

    def are_cells_adjacent(self, first_id: str, second_id: str) -> bool:
        first = self.get_cell(first_id)
        second = self.get_cell(second_id)
        return first.bounds.is_adjacent_to(second.bounds)

    def find_adjacent_cells(self, cell_id: str) -> List[str]:
        """Ids of every other cell sharing an edge with ``cell_id`` (linear scan)."""
        cell = self.get_cell(cell_id)
        return [
            other_id
            for other_id in sorted(self._cells)
            if other_id != cell_id
            and cell.bounds.is_adjacent_to(self._cells[other_id].bounds)
        ]

    # =========================================================================
    # Queries
    # =========================================================================

    def cells(self) -> List[Cell]:
        """All cells in id order."""
        return [self._cells[i] for i in sorted(self._cells)]

    def leaf_cells(self) -> List[Cell]:
        """Cells without children, in id order."""
        return [c for c in self.cells() if c.is_leaf]

    def short_ids(self) -> List[str]:
        return sorted(c.short_id for c in self._cells.values() if c.short_id)

    @property
    def cell_count(self) -> int:
        return len(self._cells)

    @property
    def relationship_count(self) -> int:
        return len(self._relationships)

    @property
    def root_id(self) -> Optional[str]:
        return self._root_id

    @property
    def events(self) -> List[GraphEvent]:
        """The event log, oldest first. Returned as a copy."""
        return list(self._events)

    def clear_events(self) -> None:
        self._events.clear()

    # =========================================================================
    # Internals
    # =========================================================================

    def _insert_cell(self, cell: Cell) -> None:
        self._cells[cell.id] = cell
        if cell.short_id:
            self._short_id_index[cell.short_id.upper()] = cell.id

    def _next_short_id(self) -> str:
        short_id = self._short_ids.next()
        # Loaded graphs can hold ids the generator would produce again
        while short_id.upper() in self._short_id_index:
            short_id = self._short_ids.next()
        return short_id

    def _log_event(self, payload: EventPayload) -> None:
        self._events.append(GraphEvent(payload=payload))
