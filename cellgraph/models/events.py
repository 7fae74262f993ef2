"""Graph event models.

Every mutation of a CellGraph appends one GraphEvent to the graph's
append-only log. Events are immutable; the log is never rewritten.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cellgraph.models.cell import CellContent, CellType, Rectangle, SplitDirection


class EventType(str, Enum):
    """Types of events that can occur in the graph."""

    CELL_CREATED = "cell_created"
    CELL_DELETED = "cell_deleted"
    CELL_SPLIT = "cell_split"
    CELL_MERGED = "cell_merged"
    CELL_CONTENT_CHANGED = "cell_content_changed"
    CELL_TYPE_CHANGED = "cell_type_changed"
    CELL_RENAMED = "cell_renamed"
    CELL_BOUNDS_CHANGED = "cell_bounds_changed"
    RESULT_TARGET_CHANGED = "result_target_changed"
    DECIMAL_PRECISION_CHANGED = "decimal_precision_changed"
    RELATIONSHIP_CREATED = "relationship_created"
    RELATIONSHIP_DELETED = "relationship_deleted"
    START_POINT_CHANGED = "start_point_changed"


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


# ==================== Event Payload Models ====================


class CellCreatedPayload(_Payload):
    type: Literal["cell_created"] = "cell_created"
    cell_id: str
    cell_type: CellType
    bounds: Rectangle
    name: Optional[str] = None


class CellDeletedPayload(_Payload):
    type: Literal["cell_deleted"] = "cell_deleted"
    cell_id: str


class CellSplitPayload(_Payload):
    type: Literal["cell_split"] = "cell_split"
    parent_id: str
    children: List[str]
    direction: SplitDirection
    split_ratio: float


class CellMergedPayload(_Payload):
    type: Literal["cell_merged"] = "cell_merged"
    merged_ids: List[str]
    new_id: str
    new_type: CellType


class CellContentChangedPayload(_Payload):
    type: Literal["cell_content_changed"] = "cell_content_changed"
    cell_id: str
    new_content: CellContent


class CellTypeChangedPayload(_Payload):
    type: Literal["cell_type_changed"] = "cell_type_changed"
    cell_id: str
    old_type: CellType
    new_type: CellType


class CellRenamedPayload(_Payload):
    type: Literal["cell_renamed"] = "cell_renamed"
    cell_id: str
    new_name: Optional[str] = None


class CellBoundsChangedPayload(_Payload):
    type: Literal["cell_bounds_changed"] = "cell_bounds_changed"
    cell_id: str
    bounds: Rectangle


class ResultTargetChangedPayload(_Payload):
    type: Literal["result_target_changed"] = "result_target_changed"
    cell_id: str
    target_id: Optional[str] = None


class DecimalPrecisionChangedPayload(_Payload):
    type: Literal["decimal_precision_changed"] = "decimal_precision_changed"
    cell_id: str
    precision: int


class RelationshipCreatedPayload(_Payload):
    type: Literal["relationship_created"] = "relationship_created"
    source: str
    target: str


class RelationshipDeletedPayload(_Payload):
    type: Literal["relationship_deleted"] = "relationship_deleted"
    source: str
    target: str


class StartPointChangedPayload(_Payload):
    type: Literal["start_point_changed"] = "start_point_changed"
    old_id: Optional[str] = None
    new_id: str


EventPayload = Annotated[
    Union[
        CellCreatedPayload,
        CellDeletedPayload,
        CellSplitPayload,
        CellMergedPayload,
        CellContentChangedPayload,
        CellTypeChangedPayload,
        CellRenamedPayload,
        CellBoundsChangedPayload,
        ResultTargetChangedPayload,
        DecimalPrecisionChangedPayload,
        RelationshipCreatedPayload,
        RelationshipDeletedPayload,
        StartPointChangedPayload,
    ],
    Field(discriminator="type"),
]


class GraphEvent(BaseModel):
    """A graph event with its timestamp."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    payload: EventPayload

    @property
    def event_type(self) -> EventType:
        return EventType(self.payload.type)
