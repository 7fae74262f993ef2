"""``[[token]]`` link lexer.

Shared by formula evaluation and hyperlink scanning so the syntax is parsed
the same way wherever it appears.
"""

import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

# [[ ... ]] with at least one non-']' character inside
_LINK_RE = re.compile(r"\[\[([^\]]+)\]\]")


class CellLink(BaseModel):
    """A single ``[[token]]`` occurrence.

    Attributes:
        target_id: The token between the brackets, whitespace-trimmed.
        start: Offset of the first ``[``.
        end: Offset just past the last ``]``.
        full_text: The matched text including brackets.
    """

    model_config = ConfigDict(frozen=True)

    target_id: str
    start: int
    end: int
    full_text: str


def parse_cell_links(text: str) -> List[CellLink]:
    """Find every ``[[token]]`` in ``text``, in order, duplicates kept."""
    return [
        CellLink(
            target_id=match.group(1).strip(),
            start=match.start(),
            end=match.end(),
            full_text=match.group(0),
        )
        for match in _LINK_RE.finditer(text)
    ]


def get_link_at_position(text: str, position: int) -> Optional[CellLink]:
    """The link covering ``position`` (start inclusive, end exclusive)."""
    for link in parse_cell_links(text):
        if link.start <= position < link.end:
            return link
    return None
