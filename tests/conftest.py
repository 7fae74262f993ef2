"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cellgraph.config import CellGraphConfig, set_config  # noqa: E402
from cellgraph.graph import CellGraph  # noqa: E402
from cellgraph.models import CellType, Rectangle, inline  # noqa: E402


@pytest.fixture(autouse=True)
def reset_config():
    """Use default config for each test, independent of the environment."""
    set_config(CellGraphConfig())
    yield
    set_config(None)


def rect(x: float = 0.0, y: float = 0.0, width: float = 100.0, height: float = 100.0) -> Rectangle:
    return Rectangle(x=x, y=y, width=width, height=height)


@pytest.fixture
def graph():
    """Empty graph."""
    return CellGraph()


@pytest.fixture
def make_cell(graph):
    """Factory adding a cell laid out left to right."""
    counter = {"n": 0}

    def _make(cell_type: CellType, text: str = "", name: str = None) -> str:
        x = counter["n"] * 150.0
        counter["n"] += 1
        return graph.create_cell(cell_type, rect(x=x), inline(text), name=name)

    return _make


@pytest.fixture
def chain_graph(graph, make_cell):
    """root (number 10) -> child (formula 2 * root), root is the start cell."""
    root = make_cell(CellType.NUMBER_FLOAT, "10", name="root")
    root_short = graph.get_cell(root).short_id
    child = make_cell(CellType.FORMULA, f"2 * [[{root_short}]]", name="child")
    graph.create_relationship(root, child)
    graph.set_start_point(root)
    return graph, root, child
