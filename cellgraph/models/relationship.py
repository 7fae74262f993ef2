"""Relationship model - data flows from source to target."""

from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field


class Relationship(BaseModel):
    """Directed edge: target consumes source's output."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., description="Cell the data flows from")
    target: str = Field(..., description="Cell the data flows to")

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source, self.target)

    def involves(self, cell_id: str) -> bool:
        return self.source == cell_id or self.target == cell_id

    def starts_from(self, cell_id: str) -> bool:
        return self.source == cell_id

    def ends_at(self, cell_id: str) -> bool:
        return self.target == cell_id

    def reversed(self) -> "Relationship":
        return Relationship(source=self.target, target=self.source)
