"""Project directory persistence.

A project is a directory laid out as::

    my-project/
        manifest.json   version, timestamps, start cell
        cells.json      cells, relationships, root id
        events.jsonl    one GraphEvent per line
        external/       files referenced by ExternalContent
        snapshots/      reserved

Usage:
    ```python
    project = Project.create(Path("my-project"))
    project.save(graph)

    manifest, graph = Project.open(Path("my-project")).load()
    ```
"""

import json
import logging
import mmap
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from cellgraph.config import CellGraphConfig, get_config
from cellgraph.exceptions import ProjectError
from cellgraph.graph import CellGraph
from cellgraph.models import Cell, ExternalContent, GraphEvent, Relationship

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
CELLS_FILE = "cells.json"
EVENTS_FILE = "events.jsonl"
EXTERNAL_DIR = "external"
SNAPSHOTS_DIR = "snapshots"


def _now() -> datetime:
    return datetime.now(UTC)


class Manifest(BaseModel):
    """Project metadata stored in manifest.json."""

    version: str = "0.1.0"
    created: datetime = Field(default_factory=_now)
    modified: datetime = Field(default_factory=_now)
    start_cell: Optional[str] = None

    def touch(self) -> None:
        self.modified = _now()


class GraphDocument(BaseModel):
    """Shape of cells.json."""

    cells: List[Cell] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)
    root_id: Optional[str] = None


class Project:
    """A graph stored in a project directory."""

    def __init__(self, root_dir: Path, config: Optional[CellGraphConfig] = None) -> None:
        self.root_dir = Path(root_dir)
        self._config = config or get_config()

    @classmethod
    def create(cls, path: Path, config: Optional[CellGraphConfig] = None) -> "Project":
        """Create the directory layout with an empty graph.

        Raises:
            ProjectError: If the directories or files cannot be written.
        """
        project = cls(path, config=config)
        try:
            project.external_dir.mkdir(parents=True, exist_ok=True)
            project.snapshots_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProjectError(f"Failed to create project directory {path}: {e}") from e

        project.save_manifest(Manifest(version=project._config.manifest_version))
        project._write_graph(GraphDocument())
        project._write_events([])

        logger.info(f"Created project: {project.root_dir}")
        return project

    @classmethod
    def open(cls, path: Path, config: Optional[CellGraphConfig] = None) -> "Project":
        """Open an existing project.

        Raises:
            ProjectError: If the directory, manifest.json or cells.json is missing.
        """
        path = Path(path)
        if not path.is_dir():
            raise ProjectError(f"Project directory does not exist: {path}")
        if not (path / MANIFEST_FILE).exists():
            raise ProjectError(f"{MANIFEST_FILE} not found in project directory: {path}")
        if not (path / CELLS_FILE).exists():
            raise ProjectError(f"{CELLS_FILE} not found in project directory: {path}")
        return cls(path, config=config)

    # ==================== Paths ====================

    @property
    def manifest_path(self) -> Path:
        return self.root_dir / MANIFEST_FILE

    @property
    def cells_path(self) -> Path:
        return self.root_dir / CELLS_FILE

    @property
    def events_path(self) -> Path:
        return self.root_dir / EVENTS_FILE

    @property
    def external_dir(self) -> Path:
        return self.root_dir / EXTERNAL_DIR

    @property
    def snapshots_dir(self) -> Path:
        return self.root_dir / SNAPSHOTS_DIR

    # ==================== Save / load ====================

    def save(self, graph: CellGraph) -> Manifest:
        """Write manifest, cells and the graph's full event log."""
        if self.manifest_path.exists():
            manifest = self.load_manifest()
        else:
            manifest = Manifest(version=self._config.manifest_version)
        manifest.touch()
        start = graph.get_start_point()
        manifest.start_cell = start.id if start else None

        self.save_manifest(manifest)
        self._write_graph(
            GraphDocument(
                cells=graph.cells(),
                relationships=graph.relationships(),
                root_id=graph.root_id,
            )
        )
        self._write_events(graph.events)

        logger.info(
            f"Saved project: path={self.root_dir}, cells={graph.cell_count}, "
            f"relationships={graph.relationship_count}, events={len(graph.events)}"
        )
        return manifest

    def load(self) -> Tuple[Manifest, CellGraph]:
        """Read manifest, cells and events back into a graph.

        Raises:
            ProjectError: If a file is missing or malformed.
        """
        manifest = self.load_manifest()
        try:
            document = GraphDocument.model_validate(self._read_json(self.cells_path))
        except ValidationError as e:
            raise ProjectError(f"Invalid {CELLS_FILE}: {e}") from e
        graph = CellGraph.from_parts(
            cells=document.cells,
            relationships=document.relationships,
            root_id=document.root_id,
            events=self.load_events(),
            config=self._config,
        )
        logger.debug(f"Loaded project: path={self.root_dir}, cells={graph.cell_count}")
        return manifest, graph

    def save_manifest(self, manifest: Manifest) -> None:
        self._write_json(self.manifest_path, manifest.model_dump(mode="json"))

    def load_manifest(self) -> Manifest:
        try:
            return Manifest.model_validate(self._read_json(self.manifest_path))
        except ValidationError as e:
            raise ProjectError(f"Invalid {MANIFEST_FILE}: {e}") from e

    # ==================== Events ====================

    def append_events(self, events: Iterable[GraphEvent]) -> None:
        """Append events to events.jsonl, one JSON object per line."""
        try:
            with open(self.events_path, "a", encoding="utf-8") as f:
                for event in events:
                    f.write(event.model_dump_json() + "\n")
        except OSError as e:
            raise ProjectError(f"Failed to write {self.events_path}: {e}") from e

    def load_events(self) -> List[GraphEvent]:
        """Read events.jsonl. A missing file means no events."""
        if not self.events_path.exists():
            return []

        events: List[GraphEvent] = []
        try:
            with open(self.events_path, encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        events.append(GraphEvent.model_validate_json(line))
                    except ValidationError as e:
                        raise ProjectError(
                            f"Failed to parse event on line {line_num} of {self.events_path}: {e}"
                        ) from e
        except OSError as e:
            raise ProjectError(f"Failed to read {self.events_path}: {e}") from e
        return events

    # ==================== External content ====================

    def resolve_external(self, content: ExternalContent) -> Path:
        """Absolute path for external content. Relative paths live in external/."""
        path = Path(content.path)
        return path if path.is_absolute() else self.external_dir / path

    def read_external(self, content: ExternalContent) -> str:
        """Read an external file as UTF-8, through a memory map when requested."""
        path = self.resolve_external(content)
        try:
            if content.use_mmap and path.stat().st_size > 0:
                with open(path, "rb") as f, mmap.mmap(
                    f.fileno(), 0, access=mmap.ACCESS_READ
                ) as mapped:
                    return mapped[:].decode("utf-8")
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ProjectError(f"Failed to read external file {path}: {e}") from e

    # ==================== Internals ====================

    def _write_graph(self, document: GraphDocument) -> None:
        self._write_json(self.cells_path, document.model_dump(mode="json"))

    def _write_events(self, events: Iterable[GraphEvent]) -> None:
        try:
            self.events_path.write_text("", encoding="utf-8")
        except OSError as e:
            raise ProjectError(f"Failed to write {self.events_path}: {e}") from e
        self.append_events(events)

    @staticmethod
    def _write_json(path: Path, data: Dict[str, Any]) -> None:
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise ProjectError(f"Failed to write {path}: {e}") from e

    @staticmethod
    def _read_json(path: Path) -> Dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise ProjectError(f"{path.name} not found in project directory") from e
        except json.JSONDecodeError as e:
            raise ProjectError(f"Failed to parse {path}: {e}") from e
        except OSError as e:
            raise ProjectError(f"Failed to read {path}: {e}") from e
