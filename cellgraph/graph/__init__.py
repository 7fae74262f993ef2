"""Graph store for cells and relationships."""

from cellgraph.graph.store import CellGraph

__all__ = ["CellGraph"]
