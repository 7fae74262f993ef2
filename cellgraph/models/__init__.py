"""Entity models - cells, relationships and graph events.

This module exports:
- Cell and its value types: CellType, Rectangle, content variants
- Relationship: directed data-flow edge
- GraphEvent and its payloads: the append-only mutation log
"""

from cellgraph.models.cell import (
    NUMERIC_TYPES,
    Cell,
    CellContent,
    CellType,
    ExternalContent,
    InlineContent,
    Rectangle,
    SplitDirection,
    external,
    inline,
)
from cellgraph.models.events import (
    CellBoundsChangedPayload,
    CellContentChangedPayload,
    CellCreatedPayload,
    CellDeletedPayload,
    CellMergedPayload,
    CellRenamedPayload,
    CellSplitPayload,
    CellTypeChangedPayload,
    DecimalPrecisionChangedPayload,
    EventPayload,
    EventType,
    GraphEvent,
    RelationshipCreatedPayload,
    RelationshipDeletedPayload,
    ResultTargetChangedPayload,
    StartPointChangedPayload,
)
from cellgraph.models.relationship import Relationship

__all__ = [
    # Cells
    "Cell",
    "CellContent",
    "CellType",
    "ExternalContent",
    "InlineContent",
    "NUMERIC_TYPES",
    "Rectangle",
    "SplitDirection",
    "external",
    "inline",
    # Relationships
    "Relationship",
    # Events
    "EventPayload",
    "EventType",
    "GraphEvent",
    "CellBoundsChangedPayload",
    "CellContentChangedPayload",
    "CellCreatedPayload",
    "CellDeletedPayload",
    "CellMergedPayload",
    "CellRenamedPayload",
    "CellSplitPayload",
    "CellTypeChangedPayload",
    "DecimalPrecisionChangedPayload",
    "RelationshipCreatedPayload",
    "RelationshipDeletedPayload",
    "ResultTargetChangedPayload",
    "StartPointChangedPayload",
]
