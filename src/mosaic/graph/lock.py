"""
mosaic.graph.lock — Lock graph documents.

Lock graph format (JSON):

    {
      "root": "root",
      "version": 7,
      "nodes": {
        "root": {"inputs": {"lib": "lib", "app": "app"}},
        "lib":  {"locked": {"type": "github", "owner": "org", "repo": "lib",
                            "rev": "4f1c...", "hash": "sha256:..."},
                 "inputs": {"nixpkgs": ["app", "nixpkgs"]}},
        ...
      }
    }

An input is either a node id (string) or a follow path (list of input
names walked from the root). Workspace environments keep one such document
per environment under .mosaic/<env>.lock; projects publish their own as
project.lock.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from mosaic.errors import GraphParseError
from mosaic.graph.source import SourceDescriptor, descriptor_from_dict

LOCK_VERSION = 7

InputRef = Union[str, tuple[str, ...]]


@dataclass
class Node:
    """One lock graph node."""
    node_id: str
    locked: SourceDescriptor | None = None
    inputs: dict[str, InputRef] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.inputs:
            data["inputs"] = {
                name: ref if isinstance(ref, str) else list(ref)
                for name, ref in self.inputs.items()
            }
        if self.locked is not None:
            data["locked"] = self.locked.to_dict()
        return data


@dataclass
class LockGraph:
    """Parsed lock graph."""
    root: str
    version: int
    nodes: dict[str, Node] = field(default_factory=dict)

    @property
    def root_node(self) -> Node:
        return self.nodes[self.root]

    @classmethod
    def empty(cls) -> LockGraph:
        """A single root node with no inputs."""
        return cls(root="root", version=LOCK_VERSION, nodes={"root": Node("root")})

    def dependencies(self) -> dict[str, Node]:
        """All nodes except the root."""
        return {nid: n for nid, n in self.nodes.items() if nid != self.root}

    def locked_source(self, node_id: str) -> SourceDescriptor | None:
        node = self.nodes.get(node_id)
        return node.locked if node else None

    def add_project(self, name: str, source: SourceDescriptor) -> None:
        """Pin a project and wire it as a direct root input."""
        node = self.nodes.get(name)
        if node is None:
            self.nodes[name] = Node(name, locked=source)
        else:
            node.locked = source
        self.root_node.inputs[name] = name

    def remove_project(self, name: str) -> None:
        self.nodes.pop(name, None)
        self.root_node.inputs.pop(name, None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": {nid: node.to_dict() for nid, node in self.nodes.items()},
            "root": self.root,
            "version": self.version,
        }


def parse_graph_dict(data: Any) -> LockGraph:
    """Create a LockGraph from a decoded document.

    Raises:
        GraphParseError: Structural error
    """
    if not isinstance(data, dict):
        raise GraphParseError(f"Lock graph must be a mapping, got {type(data).__name__}")

    root = data.get("root", "root")
    if not isinstance(root, str) or not root:
        raise GraphParseError("'root' must be a non-empty string")

    version = data.get("version", LOCK_VERSION)
    if isinstance(version, bool) or not isinstance(version, int):
        raise GraphParseError(f"'version' must be an integer, got {version!r}")

    nodes_raw = data.get("nodes")
    if not isinstance(nodes_raw, dict):
        raise GraphParseError("'nodes' must be a mapping")

    nodes: dict[str, Node] = {}
    for node_id, raw in nodes_raw.items():
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise GraphParseError(f"nodes.{node_id} must be a mapping")

        locked = None
        if raw.get("locked") is not None:
            try:
                locked = descriptor_from_dict(raw["locked"])
            except GraphParseError as e:
                raise GraphParseError(f"nodes.{node_id}.locked: {e.message}") from e

        inputs_raw = raw.get("inputs") or {}
        if not isinstance(inputs_raw, dict):
            raise GraphParseError(f"nodes.{node_id}.inputs must be a mapping")

        inputs: dict[str, InputRef] = {}
        for name, ref in inputs_raw.items():
            if isinstance(ref, str):
                inputs[name] = ref
            elif isinstance(ref, list) and all(isinstance(p, str) for p in ref):
                inputs[name] = tuple(ref)
            else:
                raise GraphParseError(
                    f"nodes.{node_id}.inputs.{name} must be a node id or a list of input names"
                )

        nodes[node_id] = Node(node_id, locked=locked, inputs=inputs)

    if root not in nodes:
        raise GraphParseError(f"Root node '{root}' is missing from 'nodes'")

    # direct references must point at existing nodes
    for node in nodes.values():
        for name, ref in node.inputs.items():
            if isinstance(ref, str) and ref not in nodes:
                raise GraphParseError(
                    f"nodes.{node.node_id}.inputs.{name} references unknown node '{ref}'"
                )

    return LockGraph(root=root, version=version, nodes=nodes)


def parse_graph(text: str) -> LockGraph:
    """Parse a lock graph from JSON text."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise GraphParseError(f"Invalid lock graph JSON: {e}") from e
    return parse_graph_dict(data)


def load_graph(path: str | Path) -> LockGraph:
    """Read a lock graph file.

    Raises:
        GraphParseError: File missing or malformed
    """
    p = Path(path)
    if not p.exists():
        raise GraphParseError(f"Lock file not found: {p}")
    try:
        return parse_graph(p.read_text())
    except GraphParseError as e:
        raise GraphParseError(f"{p}: {e.message}") from e


def load_graph_or_empty(path: str | Path) -> LockGraph:
    """Read a lock graph, or synthesize an empty one if the file is absent."""
    p = Path(path)
    if not p.exists():
        return LockGraph.empty()
    return load_graph(p)


def write_graph(graph: LockGraph, path: str | Path) -> None:
    """Write a lock graph file."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w") as f:
        json.dump(graph.to_dict(), f, indent=2, sort_keys=True)
        f.write("\n")
