"""mosaic.graph — Lock graphs and their evaluation."""

from mosaic.graph.source import (
    ArchiveSource, GitSource, PathSource, TarballSource,
    SourceDescriptor, descriptor_from_dict, parse_ref,
)
from mosaic.graph.lock import (
    Node, LockGraph, parse_graph, parse_graph_dict,
    load_graph, load_graph_or_empty, write_graph,
)
from mosaic.graph.follows import resolve_input, resolve_path, check_follows
from mosaic.graph.evaluator import (
    Lazy, ResolvedInstance, InputSet, HandleMap, NodeTable,
    evaluate, force_handles, as_lazy,
)

__all__ = [
    "ArchiveSource", "GitSource", "PathSource", "TarballSource",
    "SourceDescriptor", "descriptor_from_dict", "parse_ref",
    "Node", "LockGraph", "parse_graph", "parse_graph_dict",
    "load_graph", "load_graph_or_empty", "write_graph",
    "resolve_input", "resolve_path", "check_follows",
    "Lazy", "ResolvedInstance", "InputSet", "HandleMap", "NodeTable",
    "evaluate", "force_handles", "as_lazy",
]
