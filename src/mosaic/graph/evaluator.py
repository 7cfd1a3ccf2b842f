"""
mosaic.graph.evaluator — Lock graph evaluator.

Every node gets a Lazy handle. Forcing a handle fetches the node's source,
loads its manifest and calls the manifest's output function, exactly once.
Nothing is forced up front, so nodes that reference each other (the root
listing itself as an input, a manifest binding "self") only cost something
when a value is actually read.

    table = evaluate(graph, overrides={"lib": lib_instance},
                     root_source=tree, fetcher=f, loader=l)
    table["root"].outputs["packages"]["x86_64-linux"]["default"]

Failures are memoized on the failing handle and raised to whoever forces
it, each time as a fresh copy chained to the stored one; handles that do
not depend on it are unaffected.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, NoReturn

from mosaic.errors import (
    CyclicEvaluationError, GraphParseError, ManifestError, MosaicError,
    UnresolvedFollowError,
)
from mosaic.fetch.base import FetchedTree, Fetcher
from mosaic.graph.follows import resolve_input
from mosaic.graph.lock import LockGraph, Node
from mosaic.manifest.base import Manifest, ManifestLoader

logger = logging.getLogger(__name__)

_UNSET = object()

# thread ident → handle it is blocked on; used to refuse waits that would
# close a cycle across threads
_waiting: dict[int, Lazy] = {}
_waiting_lock = threading.Lock()


class Lazy:
    """Once-computed, thread-safe value handle."""

    def __init__(self, compute: Callable[[], Any], label: str = ""):
        self.label = label
        self._compute: Callable[[], Any] | None = compute
        self._lock = threading.Lock()
        self._value: Any = _UNSET
        self._error: BaseException | None = None
        self._owner: int | None = None

    @classmethod
    def of(cls, value: Any, label: str = "") -> Lazy:
        """A handle that is already forced."""
        handle = cls(lambda: value, label)
        handle._value = value
        handle._compute = None
        return handle

    @classmethod
    def failed(cls, error: BaseException, label: str = "") -> Lazy:
        """A handle whose forcing always raises ``error``."""
        handle = cls(lambda: None, label)
        handle._error = error
        handle._compute = None
        return handle

    @property
    def is_forced(self) -> bool:
        return self._value is not _UNSET or self._error is not None

    def force(self) -> Any:
        if self._value is not _UNSET:
            return self._value
        if self._error is not None:
            self._raise_error()

        me = threading.get_ident()
        if self._owner == me:
            raise CyclicEvaluationError(
                f"'{self.label}' was forced while it was being computed",
                hint="Capture the handle (e.g. inputs['self']) and force it after evaluation",
            )

        self._register_wait(me)
        try:
            with self._lock:
                with _waiting_lock:
                    _waiting.pop(me, None)
                if self._value is not _UNSET:
                    return self._value
                if self._error is not None:
                    self._raise_error()
                self._owner = me
                try:
                    self._value = self._compute()
                except Exception as e:
                    self._error = e
                    raise
                finally:
                    self._owner = None
                    self._compute = None
                return self._value
        finally:
            with _waiting_lock:
                _waiting.pop(me, None)

    def _raise_error(self) -> NoReturn:
        """Raise the memoized failure without touching the stored error."""
        error = self._error
        if isinstance(error, MosaicError):
            raise error.with_context() from error
        raise error.with_traceback(None)

    def _register_wait(self, me: int) -> None:
        with _waiting_lock:
            owner = self._owner
            seen: set[int] = set()
            while owner is not None and owner not in seen:
                if owner == me:
                    raise CyclicEvaluationError(
                        f"'{self.label}' depends on itself through another thread",
                    )
                seen.add(owner)
                blocked_on = _waiting.get(owner)
                owner = blocked_on._owner if blocked_on is not None else None
            _waiting[me] = self

    def __repr__(self) -> str:
        state = "forced" if self.is_forced else "pending"
        return f"<Lazy {self.label!r} {state}>"


@dataclass(eq=False)
class ResolvedInstance:
    """The evaluated result for one node. Shared by identity."""
    node_id: str
    source: FetchedTree
    inputs: Mapping[str, Any] = field(default_factory=dict)
    outputs: dict[str, Any] | None = None
    manifest: Manifest | None = field(default=None, repr=False)

    @property
    def out_path(self) -> Path:
        return self.source.out_path

    @property
    def is_buildable(self) -> bool:
        return self.outputs is not None

    @property
    def attrs(self) -> dict[str, Any]:
        """Source metadata with the output namespace laid over it."""
        merged = self.source.as_dict()
        merged.update(self.outputs or {})
        return merged

    def __getitem__(self, key: str) -> Any:
        return self.attrs[key]

    def category(self, name: str, platform: str | None = None) -> dict[str, Any]:
        """One output category (or one platform of it); empty if absent."""
        section = (self.outputs or {}).get(name) or {}
        if platform is not None:
            section = section.get(platform) or {}
        return section


Resolvable = ResolvedInstance | Lazy


def as_lazy(value: Resolvable, label: str = "") -> Lazy:
    if isinstance(value, Lazy):
        return value
    return Lazy.of(value, label)


class InputSet(Mapping[str, Any]):
    """Inputs handed to a manifest's output function.

    Reading an input forces it. ``inputs["self"]`` is the node's own
    handle, unforced: it can be kept and forced once evaluation is done.
    """

    def __init__(self, bindings: dict[str, Lazy], self_handle: Lazy):
        self._bindings = bindings
        self._self = self_handle

    def handle(self, name: str) -> Lazy:
        if name == "self":
            return self._self
        return self._bindings[name]

    def __getitem__(self, name: str) -> Any:
        if name == "self":
            return self._self
        try:
            return self._bindings[name].force()
        except MosaicError as e:
            raise e.with_context(input=name) from e

    def __iter__(self) -> Iterator[str]:
        yield from self._bindings
        yield "self"

    def __len__(self) -> int:
        return len(self._bindings) + 1

    def __repr__(self) -> str:
        return f"InputSet({list(self)!r})"


class HandleMap(Mapping[str, ResolvedInstance]):
    """name → ResolvedInstance. Reading a key forces its handle."""

    def __init__(self, handles: dict[str, Lazy]):
        self._handles = handles

    def handle(self, key: str) -> Lazy:
        return self._handles[key]

    def __getitem__(self, key: str) -> ResolvedInstance:
        return self._handles[key].force()

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def force_all(
        self, max_workers: int | None = None,
    ) -> tuple[dict[str, ResolvedInstance], dict[str, Exception]]:
        """Force every handle. Failures are collected, not raised.

        Args:
            max_workers: Thread pool size (None or 1 = sequential)

        Returns:
            (resolved, errors) keyed by name
        """
        return force_handles(self._handles, max_workers)


class NodeTable(HandleMap):
    """node id → ResolvedInstance for one lock graph."""

    def __init__(self, graph: LockGraph, handles: dict[str, Lazy]):
        super().__init__(handles)
        self.graph = graph

    @property
    def root(self) -> ResolvedInstance:
        return self[self.graph.root]


def force_handles(
    handles: Mapping[str, Lazy], max_workers: int | None = None,
) -> tuple[dict[str, Any], dict[str, Exception]]:
    """Force a set of handles, optionally on a thread pool."""
    resolved: dict[str, Any] = {}
    errors: dict[str, Exception] = {}

    def _one(key: str) -> None:
        try:
            resolved[key] = handles[key].force()
        except Exception as e:
            errors[key] = e

    if max_workers is None or max_workers <= 1:
        for key in handles:
            _one(key)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            list(pool.map(_one, list(handles)))

    return resolved, errors


def evaluate(
    graph: LockGraph,
    overrides: Mapping[str, Resolvable] | None = None,
    root_source: FetchedTree | None = None,
    *,
    fetcher: Fetcher,
    loader: ManifestLoader,
) -> NodeTable:
    """Build lazy handles for every node of a lock graph.

    Args:
        graph: Lock graph to evaluate
        overrides: node id (or, for the root's declared inputs, input
            name) → instance to use instead of fetching
        root_source: Tree for the root node (e.g. the project checkout);
            when None the root is fetched from its locked descriptor
        fetcher: Source fetcher
        loader: Manifest loader

    Returns:
        NodeTable (nothing is forced yet)
    """
    overrides = dict(overrides or {})
    handles: dict[str, Lazy] = {}

    for node_id, node in graph.nodes.items():
        if node_id in overrides and node_id != graph.root:
            handles[node_id] = as_lazy(overrides[node_id], node_id)
        else:
            handles[node_id] = Lazy(
                partial(
                    _compute_node, graph, node, handles, overrides,
                    root_source, fetcher, loader,
                ),
                label=node_id,
            )

    return NodeTable(graph, handles)


def _compute_node(
    graph: LockGraph,
    node: Node,
    handles: dict[str, Lazy],
    overrides: dict[str, Resolvable],
    root_source: FetchedTree | None,
    fetcher: Fetcher,
    loader: ManifestLoader,
) -> ResolvedInstance:
    try:
        return _evaluate_node(graph, node, handles, overrides, root_source, fetcher, loader)
    except MosaicError as e:
        raise e.with_context(node=node.node_id) from e


def _evaluate_node(
    graph: LockGraph,
    node: Node,
    handles: dict[str, Lazy],
    overrides: dict[str, Resolvable],
    root_source: FetchedTree | None,
    fetcher: Fetcher,
    loader: ManifestLoader,
) -> ResolvedInstance:
    is_root = node.node_id == graph.root

    if is_root and root_source is not None:
        source = root_source
    elif node.locked is None:
        raise GraphParseError(f"Node '{node.node_id}' has no locked source")
    else:
        logger.debug("fetching %s (%s)", node.node_id, node.locked.kind)
        source = fetcher.fetch(node.locked)

    manifest = loader.load(source.path, source.subdir)
    if manifest is None:
        logger.debug("%s has no manifest; passthrough", node.node_id)
        return ResolvedInstance(node_id=node.node_id, source=source)

    bindings = {
        name: _bind_input(graph, node, name, handles, overrides, is_root)
        for name in manifest.inputs
        if name != "self"
    }
    inputs = InputSet(bindings, handles[node.node_id])

    try:
        outputs = manifest.outputs(inputs)
    except MosaicError:
        raise
    except Exception as e:
        raise ManifestError(
            f"Output function of '{node.node_id}' failed: {e}",
        ) from e

    if not isinstance(outputs, dict):
        raise ManifestError(
            f"Output function of '{node.node_id}' must return a mapping, "
            f"got {type(outputs).__name__}"
        )

    return ResolvedInstance(
        node_id=node.node_id,
        source=source,
        inputs=inputs,
        outputs=outputs,
        manifest=manifest,
    )


def _bind_input(
    graph: LockGraph,
    node: Node,
    name: str,
    handles: dict[str, Lazy],
    overrides: dict[str, Resolvable],
    is_root: bool,
) -> Lazy:
    """Pick the handle a declared input reads from.

    Order: a shared override of the same name (root only), the node's own
    lock entry, then a shared override for an input the lock does not list.
    """
    if is_root and name in overrides:
        return as_lazy(overrides[name], name)

    if name in node.inputs:
        try:
            target = resolve_input(graph, node.node_id, name)
        except MosaicError as e:
            return Lazy.failed(e, name)
        return handles[target]

    if name in overrides:
        return as_lazy(overrides[name], name)

    return Lazy.failed(
        UnresolvedFollowError(
            f"Input '{name}' of '{node.node_id}' is not in the lock graph",
            path=(name,),
            hint="Add it to the project's lock file or register it in the workspace",
        ),
        name,
    )
