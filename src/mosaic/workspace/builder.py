"""
mosaic.workspace.builder — Environment builder.

Turns one environment's lock graph into resolved projects:

1. Every non-root node of the lock graph is a project (or a raw shared
   input). Editable projects are sourced from <root>/<path>; the rest
   from their locked descriptor.
2. Each project is evaluated as the root of its own lock graph
   (project.lock in its tree, or an empty graph if it has none).
3. All projects share one table of handles. A project declaring an input
   named like another project gets that project's instance, not a second
   copy. Handles compute once, so concurrent first use converges.
4. Only registered projects are returned.

Nothing is fetched until a project is forced.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from functools import partial
from pathlib import Path

from mosaic.errors import MissingLocalSourceError, MosaicError, ProjectNotLockedError
from mosaic.fetch.base import Fetcher
from mosaic.graph.evaluator import (
    HandleMap, Lazy, ResolvedInstance, Resolvable, as_lazy, evaluate,
)
from mosaic.graph.lock import LockGraph, load_graph_or_empty
from mosaic.graph.source import PathSource, SourceDescriptor
from mosaic.manifest.base import ManifestLoader
from mosaic.workspace.config import LocalState, ProjectRegistration, WorkspaceConfig

logger = logging.getLogger(__name__)

PROJECT_LOCK = "project.lock"


def effective_source(
    name: str,
    registration: ProjectRegistration | None,
    graph: LockGraph,
    local: LocalState,
    root_path: Path,
) -> SourceDescriptor:
    """Editable path if marked editable, else the locked pin.

    Raises:
        MissingLocalSourceError: Editable but no local path configured
        ProjectNotLockedError: Not editable and not in the lock graph
    """
    if registration is not None and local.is_editable(name):
        if registration.path is None:
            raise MissingLocalSourceError(
                f"Project '{name}' is editable but has no local path",
                hint="Set 'path' for the project in workspace.yaml",
            )
        return PathSource(path=str(Path(root_path) / registration.path))

    locked = graph.locked_source(name)
    if locked is None:
        raise ProjectNotLockedError(
            f"Project '{name}' is not locked in this environment",
            hint="Run an update for the environment, or mark the project editable",
        )
    return locked


def build_environment(
    config: WorkspaceConfig,
    graph: LockGraph,
    local: LocalState,
    root_path: str | Path,
    *,
    fetcher: Fetcher,
    loader: ManifestLoader,
    inputs: Mapping[str, Resolvable] | None = None,
) -> HandleMap:
    """Build lazy handles for every registered project of one environment.

    Args:
        config: Workspace configuration
        graph: This environment's lock graph
        local: Editable flags
        root_path: Workspace root (editable paths are relative to it)
        fetcher: Source fetcher
        loader: Manifest loader
        inputs: Workspace-level inputs shared with every project

    Returns:
        HandleMap of project name → ResolvedInstance (forced on access)
    """
    root_path = Path(root_path)
    registered = {p.name: p for p in config.projects}

    shared: dict[str, Lazy] = {
        name: as_lazy(value, name) for name, value in (inputs or {}).items()
    }

    names = [nid for nid in graph.nodes if nid != graph.root]
    names += [name for name in registered if name not in names]

    for name in names:
        shared[name] = Lazy(
            partial(
                _evaluate_project, name, registered.get(name), graph, local,
                root_path, shared, fetcher, loader,
            ),
            label=name,
        )

    return HandleMap({name: shared[name] for name in registered})


def _evaluate_project(
    name: str,
    registration: ProjectRegistration | None,
    graph: LockGraph,
    local: LocalState,
    root_path: Path,
    shared: dict[str, Lazy],
    fetcher: Fetcher,
    loader: ManifestLoader,
) -> ResolvedInstance:
    try:
        descriptor = effective_source(name, registration, graph, local, root_path)
        if isinstance(descriptor, PathSource) and local.is_editable(name):
            if not Path(descriptor.path).is_dir():
                raise MissingLocalSourceError(
                    f"Editable project '{name}' not found at {descriptor.path}",
                    hint="Clone the project there or unmark it as editable",
                )
            logger.info("using editable %s from %s", name, descriptor.path)

        tree = fetcher.fetch(descriptor)
        project_graph = load_graph_or_empty(tree.out_path / PROJECT_LOCK)
        overrides = {k: v for k, v in shared.items() if k != name}
        table = evaluate(
            project_graph, overrides, root_source=tree,
            fetcher=fetcher, loader=loader,
        )
        return table.root
    except MosaicError as e:
        raise e.with_context(project=name) from e
