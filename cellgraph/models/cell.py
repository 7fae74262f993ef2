"""Cell model and its value types."""

from enum import Enum
from typing import Annotated, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from cellgraph.ids import generate_cell_id


class CellType(str, Enum):
    """Type tag that selects how a cell is evaluated."""

    TEXT = "text"
    NUMBER_INT = "number_int"
    NUMBER_FLOAT = "number_float"
    NUMBER_CURRENCY = "number_currency"
    FORMULA = "formula"
    CODE = "code"

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_TYPES


NUMERIC_TYPES = frozenset(
    {CellType.NUMBER_INT, CellType.NUMBER_FLOAT, CellType.NUMBER_CURRENCY}
)


class SplitDirection(str, Enum):
    """Axis used by split_cell."""

    HORIZONTAL = "horizontal"  # top / bottom
    VERTICAL = "vertical"  # left / right


class Rectangle(BaseModel):
    """Position and size on the canvas."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def intersects(self, other: "Rectangle") -> bool:
        """True when the interiors overlap. Touching edges do not count."""
        return not (
            self.right <= other.x
            or other.right <= self.x
            or self.bottom <= other.y
            or other.bottom <= self.y
        )

    def contains_point(self, x: float, y: float) -> bool:
        return self.x <= x <= self.right and self.y <= y <= self.bottom

    def is_adjacent_to(self, other: "Rectangle") -> bool:
        """True when the rectangles share part of an edge.

        Edge coordinates are compared with exact equality; callers normalize
        geometry beforehand.
        """
        horizontal = (self.right == other.x or other.right == self.x) and not (
            self.bottom <= other.y or other.bottom <= self.y
        )
        vertical = (self.bottom == other.y or other.bottom == self.y) and not (
            self.right <= other.x or other.right <= self.x
        )
        return horizontal or vertical

    @classmethod
    def covering(cls, rects: Iterable["Rectangle"]) -> "Rectangle":
        """Smallest rectangle containing every rectangle in ``rects``."""
        rects = list(rects)
        if not rects:
            raise ValueError("covering() needs at least one rectangle")
        min_x = min(r.x for r in rects)
        min_y = min(r.y for r in rects)
        max_x = max(r.right for r in rects)
        max_y = max(r.bottom for r in rects)
        return cls(x=min_x, y=min_y, width=max_x - min_x, height=max_y - min_y)


class InlineContent(BaseModel):
    """Content stored directly in the cell."""

    kind: Literal["inline"] = "inline"
    text: str = ""

    def as_str(self) -> Optional[str]:
        return self.text

    def is_empty(self) -> bool:
        return not self.text


class ExternalContent(BaseModel):
    """Reference to a file kept outside the graph."""

    kind: Literal["external"] = "external"
    path: str
    summary: str = Field(default="", description="User-provided description")
    use_mmap: bool = Field(
        default=False, description="Read through a memory map (large files)"
    )

    def as_str(self) -> Optional[str]:
        return None

    def is_empty(self) -> bool:
        return False


CellContent = Annotated[
    Union[InlineContent, ExternalContent], Field(discriminator="kind")
]


def inline(text: str) -> InlineContent:
    """Shorthand for InlineContent(text=...)."""
    return InlineContent(text=text)


def external(path: str, summary: str = "", use_mmap: bool = False) -> ExternalContent:
    """Shorthand for ExternalContent(...)."""
    return ExternalContent(path=path, summary=summary, use_mmap=use_mmap)


class Cell(BaseModel):
    """A single unit of content in the graph."""

    # Identity
    id: str = Field(default_factory=generate_cell_id)
    name: Optional[str] = Field(
        default=None, description="Human-readable name, used by cell:Name references"
    )
    short_id: str = Field(
        default="", description="Alphanumeric id used by [[short_id]] formulas"
    )

    # Behavior
    cell_type: CellType
    bounds: Rectangle
    content: CellContent = Field(default_factory=InlineContent)

    # Execution
    is_start_point: bool = False

    # Split hierarchy
    parent: Optional[str] = None
    children: List[str] = Field(default_factory=list)

    # Formula results
    computed_result: Optional[float] = None
    decimal_precision: int = Field(default=2, ge=0)
    result_target: Optional[str] = Field(
        default=None,
        description="Number cell that receives this formula's value on recalculation",
    )

    @property
    def is_leaf(self) -> bool:
        """Cells that were split keep their children and never execute."""
        return not self.children

    @property
    def display_name(self) -> str:
        return self.name or self.short_id or self.id

    def inline_text(self) -> Optional[str]:
        return self.content.as_str()

    def add_child(self, child_id: str) -> None:
        if child_id not in self.children:
            self.children.append(child_id)
