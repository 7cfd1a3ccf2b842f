"""
mosaic.graph.follows — Input reference resolver.

A node's input is either a node id or a follow path. A follow path is a
list of input names walked from the graph root:

    root:  {"inputs": {"app": "app", "nixpkgs": "nixpkgs"}}
    lib:   {"inputs": {"nixpkgs": ["app", "nixpkgs"]}}

lib's "nixpkgs" resolves to whatever app's "nixpkgs" resolves to. Each hop
is itself resolved with the same procedure, so follow paths can chain.
"""

from __future__ import annotations

from mosaic.errors import CyclicFollowError, UnresolvedFollowError
from mosaic.graph.lock import LockGraph


def resolve_input(
    graph: LockGraph,
    node_id: str,
    input_name: str,
    _stack: list[tuple[str, str]] | None = None,
) -> str:
    """Resolve a node's input to a node id.

    Raises:
        UnresolvedFollowError: The input (or a hop) does not exist
        CyclicFollowError: Resolution revisits a (node, input) pair
    """
    stack = _stack if _stack is not None else []

    node = graph.nodes.get(node_id)
    if node is None:
        raise UnresolvedFollowError(
            f"Unknown node '{node_id}'", path=(input_name,),
        )

    ref = node.inputs.get(input_name)
    if ref is None:
        raise UnresolvedFollowError(
            f"Node '{node_id}' has no input '{input_name}'",
            path=(input_name,),
        )

    if isinstance(ref, str):
        return ref

    key = (node_id, input_name)
    if key in stack:
        cycle = " → ".join(f"{n}.{i}" for n, i in stack[stack.index(key):] + [key])
        raise CyclicFollowError(
            f"Follow path does not terminate: {cycle}", path=ref,
        )

    stack.append(key)
    try:
        return resolve_path(graph, ref, stack)
    except UnresolvedFollowError as e:
        raise UnresolvedFollowError(
            f"Cannot follow {list(ref)} for input '{input_name}' of '{node_id}': {e.message}",
            path=ref,
        ) from e
    finally:
        stack.pop()


def resolve_path(
    graph: LockGraph,
    path: tuple[str, ...] | list[str],
    _stack: list[tuple[str, str]] | None = None,
) -> str:
    """Walk a follow path from the root. An empty path is the root."""
    current = graph.root
    for segment in path:
        current = resolve_input(graph, current, segment, _stack)
    return current


def check_follows(graph: LockGraph) -> None:
    """Resolve every follow path in the graph; raise on the first failure."""
    for node in graph.nodes.values():
        for name, ref in node.inputs.items():
            if not isinstance(ref, str):
                resolve_input(graph, node.node_id, name)
