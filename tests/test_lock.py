"""
tests/test_lock.py — Lock graph document tests.
"""

import json
import os
import sys
import shutil
import tempfile
import pytest
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from mosaic.errors import GraphParseError
from mosaic.graph.lock import (
    LOCK_VERSION, LockGraph, load_graph, load_graph_or_empty,
    parse_graph, parse_graph_dict, write_graph,
)
from mosaic.graph.source import GitSource


SAMPLE = {
    "root": "root",
    "version": 7,
    "nodes": {
        "root": {"inputs": {"lib": "lib", "app": "app"}},
        "lib": {
            "locked": {"type": "github", "owner": "org", "repo": "lib",
                       "rev": "r1", "hash": "sha256:1"},
            "inputs": {"nixpkgs": ["app", "nixpkgs"]},
        },
        "app": {
            "locked": {"type": "git", "url": "https://x/app.git", "rev": "a1"},
            "inputs": {"nixpkgs": "nixpkgs"},
        },
        "nixpkgs": {"locked": {"type": "path", "path": "/opt/pkgs"}},
    },
}


class TestParse:
    def test_sample(self):
        g = parse_graph_dict(SAMPLE)
        assert g.root == "root"
        assert g.version == 7
        assert set(g.nodes) == {"root", "lib", "app", "nixpkgs"}
        assert g.root_node.inputs == {"lib": "lib", "app": "app"}
        assert g.nodes["lib"].inputs["nixpkgs"] == ("app", "nixpkgs")
        assert g.locked_source("lib").rev == "r1"
        assert g.locked_source("root") is None
        assert g.locked_source("missing") is None

    def test_dependencies_excludes_root(self):
        g = parse_graph_dict(SAMPLE)
        assert set(g.dependencies()) == {"lib", "app", "nixpkgs"}

    def test_defaults(self):
        g = parse_graph_dict({"nodes": {"root": {}}})
        assert g.root == "root"
        assert g.version == LOCK_VERSION

    def test_missing_root_node(self):
        with pytest.raises(GraphParseError, match="Root node 'top' is missing"):
            parse_graph_dict({"root": "top", "nodes": {"root": {}}})

    def test_unknown_direct_ref(self):
        with pytest.raises(GraphParseError, match="unknown node 'ghost'"):
            parse_graph_dict({"nodes": {"root": {"inputs": {"x": "ghost"}}}})

    def test_follow_path_not_checked_at_parse(self):
        g = parse_graph_dict({"nodes": {"root": {"inputs": {"x": ["nowhere"]}}}})
        assert g.root_node.inputs["x"] == ("nowhere",)

    def test_bad_version(self):
        with pytest.raises(GraphParseError, match="'version' must be an integer"):
            parse_graph_dict({"version": True, "nodes": {"root": {}}})
        with pytest.raises(GraphParseError, match="'version' must be an integer"):
            parse_graph_dict({"version": "7", "nodes": {"root": {}}})

    def test_bad_input_ref(self):
        with pytest.raises(GraphParseError, match="must be a node id or a list"):
            parse_graph_dict({"nodes": {"root": {"inputs": {"x": 3}}}})

    def test_bad_locked(self):
        with pytest.raises(GraphParseError, match="nodes.lib.locked"):
            parse_graph_dict({"nodes": {"root": {}, "lib": {"locked": {"type": "cvs"}}}})

    def test_not_mapping(self):
        with pytest.raises(GraphParseError, match="must be a mapping"):
            parse_graph_dict([])
        with pytest.raises(GraphParseError, match="'nodes' must be a mapping"):
            parse_graph_dict({"root": "root"})

    def test_invalid_json(self):
        with pytest.raises(GraphParseError, match="Invalid lock graph JSON"):
            parse_graph("{nope")


class TestEdit:
    def test_empty(self):
        g = LockGraph.empty()
        assert list(g.nodes) == ["root"]
        assert g.dependencies() == {}

    def test_add_and_remove_project(self):
        g = LockGraph.empty()
        g.add_project("lib", GitSource(url="https://x/lib.git", rev="r1"))
        assert g.root_node.inputs["lib"] == "lib"
        assert g.locked_source("lib").rev == "r1"

        g.add_project("lib", GitSource(url="https://x/lib.git", rev="r2"))
        assert g.locked_source("lib").rev == "r2"

        g.remove_project("lib")
        assert "lib" not in g.nodes
        assert "lib" not in g.root_node.inputs


# ─── Files ───────────────────────────────────────────────────

class TestFiles:
    def setup_method(self):
        self.tmpdir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.tmpdir)

    def test_write_then_load(self):
        path = Path(self.tmpdir) / ".mosaic" / "dev.lock"
        write_graph(parse_graph_dict(SAMPLE), path)

        text = path.read_text()
        assert text.endswith("\n")
        assert json.loads(text)["nodes"]["lib"]["inputs"]["nixpkgs"] == ["app", "nixpkgs"]

        g = load_graph(path)
        assert g.to_dict() == parse_graph_dict(SAMPLE).to_dict()

    def test_load_missing(self):
        with pytest.raises(GraphParseError, match="Lock file not found"):
            load_graph(Path(self.tmpdir) / "none.lock")

    def test_load_or_empty(self):
        g = load_graph_or_empty(Path(self.tmpdir) / "none.lock")
        assert list(g.nodes) == ["root"]

    def test_load_reports_file(self):
        path = Path(self.tmpdir) / "bad.lock"
        path.write_text('{"nodes": {}}')
        with pytest.raises(GraphParseError, match="bad.lock"):
            load_graph(path)
