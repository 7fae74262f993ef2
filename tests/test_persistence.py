"""Tests for project directory persistence."""

import json

import pytest

from cellgraph.exceptions import ProjectError
from cellgraph.models import CellType, EventType, SplitDirection, external
from cellgraph.persistence import (
    CELLS_FILE,
    EVENTS_FILE,
    MANIFEST_FILE,
    Manifest,
    Project,
)


@pytest.fixture
def project(tmp_path):
    return Project.create(tmp_path / "proj")


class TestCreateAndOpen:
    """Tests for Project.create and Project.open."""

    def test_create_layout(self, project):
        """Test the directory layout is written."""
        root = project.root_dir
        assert (root / MANIFEST_FILE).is_file()
        assert (root / CELLS_FILE).is_file()
        assert (root / EVENTS_FILE).is_file()
        assert project.external_dir.is_dir()
        assert project.snapshots_dir.is_dir()

    def test_new_project_loads_empty(self, project):
        """Test a fresh project holds an empty graph."""
        manifest, graph = Project.open(project.root_dir).load()

        assert graph.cell_count == 0
        assert graph.events == []
        assert manifest.start_cell is None
        assert manifest.version == "0.1.0"

    def test_open_missing_directory(self, tmp_path):
        """Test opening a missing directory fails."""
        with pytest.raises(ProjectError, match="does not exist"):
            Project.open(tmp_path / "nope")

    def test_open_without_manifest(self, project):
        """Test manifest.json is required."""
        project.manifest_path.unlink()
        with pytest.raises(ProjectError, match=MANIFEST_FILE):
            Project.open(project.root_dir)

    def test_open_without_cells(self, project):
        """Test cells.json is required."""
        project.cells_path.unlink()
        with pytest.raises(ProjectError, match=CELLS_FILE):
            Project.open(project.root_dir)


class TestSaveAndLoad:
    """Tests for saving and loading graphs."""

    def test_round_trip(self, project, chain_graph):
        """Test cells, relationships, start cell and events survive a save."""
        graph, root, child = chain_graph
        graph.split_cell(child, SplitDirection.VERTICAL, 0.25)
        graph.set_decimal_precision(root, 4)

        saved_manifest = project.save(graph)
        manifest, loaded = Project.open(project.root_dir).load()

        assert manifest.start_cell == root
        assert manifest.modified == saved_manifest.modified
        assert loaded.cells() == graph.cells()
        assert loaded.relationships() == graph.relationships()
        assert loaded.get_start_point().id == root
        assert [e.event_type for e in loaded.events] == [
            e.event_type for e in graph.events
        ]

    def test_loaded_graph_continues_short_ids(self, project, chain_graph):
        """Test new cells after a load do not reuse short ids."""
        graph, _, _ = chain_graph
        project.save(graph)

        _, loaded = project.load()
        cell_id = loaded.create_cell(CellType.TEXT, graph.cells()[0].bounds)

        assert loaded.get_cell(cell_id).short_id not in graph.short_ids()

    def test_save_keeps_created_timestamp(self, project, chain_graph):
        """Test saving only moves the modified timestamp."""
        graph, _, _ = chain_graph
        created = project.load_manifest().created

        manifest = project.save(graph)

        assert manifest.created == created
        assert manifest.modified >= created

    def test_cells_file_is_json(self, project, chain_graph):
        """Test cells.json holds cells, relationships and root_id."""
        graph, root, child = chain_graph
        project.save(graph)

        data = json.loads(project.cells_path.read_text(encoding="utf-8"))

        assert set(data) == {"cells", "relationships", "root_id"}
        assert [c["id"] for c in data["cells"]] == sorted([root, child])
        assert data["relationships"] == [{"source": root, "target": child}]

    def test_malformed_cells_file(self, project):
        """Test invalid JSON is a ProjectError."""
        project.cells_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ProjectError, match="Failed to parse"):
            project.load()

    def test_invalid_cells_document(self, project):
        """Test JSON with the wrong shape is a ProjectError."""
        project.cells_path.write_text(json.dumps({"cells": [{"id": 1}]}), encoding="utf-8")
        with pytest.raises(ProjectError, match="Invalid cells.json"):
            project.load()

    def test_save_manifest(self, project):
        """Test the manifest round-trips."""
        project.save_manifest(Manifest(version="9.9.9", start_cell="abc"))
        manifest = project.load_manifest()

        assert manifest.version == "9.9.9"
        assert manifest.start_cell == "abc"


class TestEvents:
    """Tests for events.jsonl."""

    def test_append_and_load(self, project, chain_graph):
        """Test appended events are read back in order."""
        graph, _, _ = chain_graph

        project.append_events(graph.events[:2])
        project.append_events(graph.events[2:])

        loaded = project.load_events()
        assert loaded == graph.events
        assert loaded[0].event_type == EventType.CELL_CREATED

    def test_one_event_per_line(self, project, chain_graph):
        """Test the file holds one JSON object per line."""
        graph, _, _ = chain_graph
        project.save(graph)

        lines = project.events_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == len(graph.events)
        assert all(json.loads(line)["payload"]["type"] for line in lines)

    def test_missing_events_file(self, project):
        """Test a missing events.jsonl means no events."""
        project.events_path.unlink()
        assert project.load_events() == []

    def test_bad_event_line(self, project):
        """Test a malformed line reports its line number."""
        project.events_path.write_text("\n{}\n", encoding="utf-8")
        with pytest.raises(ProjectError, match="line 2"):
            project.load_events()


class TestExternalContent:
    """Tests for external content files."""

    def test_relative_path_resolves_under_external(self, project):
        """Test relative paths live in external/."""
        path = project.resolve_external(external("data.txt"))
        assert path == project.external_dir / "data.txt"

    def test_absolute_path_is_kept(self, project, tmp_path):
        """Test absolute paths are used as-is."""
        target = tmp_path / "elsewhere.txt"
        assert project.resolve_external(external(str(target))) == target

    @pytest.mark.parametrize("use_mmap", [False, True])
    def test_read_external(self, project, use_mmap):
        """Test files are read with and without a memory map."""
        (project.external_dir / "data.txt").write_text("héllo", encoding="utf-8")

        text = project.read_external(external("data.txt", use_mmap=use_mmap))
        assert text == "héllo"

    def test_read_empty_with_mmap(self, project):
        """Test empty files do not go through mmap."""
        (project.external_dir / "empty.txt").write_text("", encoding="utf-8")
        assert project.read_external(external("empty.txt", use_mmap=True)) == ""

    def test_read_missing_external(self, project):
        """Test a missing file is a ProjectError."""
        with pytest.raises(ProjectError, match="Failed to read external file"):
            project.read_external(external("missing.txt", use_mmap=True))
