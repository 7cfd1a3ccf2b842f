"""
mosaic.workspace.registry — Environment registry.

One Environment per name in workspace.yaml, each built from its own lock
graph (.mosaic/<env>.lock). Environments never share resolved instances:
dev and prod may pin the same project to different revisions.

    envs = register_all(Workspace.at("/src/ws"))
    envs.default.outputs["packages"]["x86_64-linux"]["app/default"]
    envs["prod"].projects["lib"].source.revision
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from typing import Any

from mosaic.errors import ConfigError
from mosaic.fetch.base import Fetcher
from mosaic.fetch.registry import FetcherRegistry
from mosaic.graph.evaluator import HandleMap, Resolvable
from mosaic.graph.lock import LockGraph
from mosaic.manifest.base import ManifestLoader
from mosaic.manifest.loader import DefaultManifestLoader
from mosaic.workspace.builder import build_environment
from mosaic.workspace.config import ProjectRegistration, WorkspaceConfig
from mosaic.workspace.layout import STATE_DIR, Workspace
from mosaic.workspace.merger import merge_outputs, slice_outputs

logger = logging.getLogger(__name__)


class Environment:
    """A resolved environment: projects + merged outputs."""

    def __init__(
        self,
        name: str,
        graph: LockGraph,
        projects: HandleMap,
        config: WorkspaceConfig,
        tool: Any = None,
    ):
        self.name = name
        self.graph = graph
        self.projects = projects
        self._config = config
        self._tool = tool
        self._lock = threading.Lock()
        self._outputs: dict[str, Any] | None = None

    @property
    def outputs(self) -> dict[str, Any]:
        """Merged output namespace (computed once)."""
        with self._lock:
            if self._outputs is None:
                self._outputs = merge_outputs(
                    self.projects,
                    self._config.projects,
                    self._config.systems,
                    flatten_default=self._config.flatten,
                    tool=self._tool,
                )
            return self._outputs

    def slice(self, category: str, platform: str | None = None) -> dict[str, Any]:
        return slice_outputs(self.outputs, category, platform)

    def __repr__(self) -> str:
        return f"<Environment {self.name!r} projects={list(self.projects)}>"


class EnvironmentRegistry(Mapping[str, Environment]):
    """env name → Environment, built on first access."""

    def __init__(
        self,
        workspace: Workspace,
        fetcher: Fetcher,
        loader: ManifestLoader,
        inputs: Mapping[str, Resolvable] | None = None,
        tool: Any = None,
    ):
        self.workspace = workspace
        self.fetcher = fetcher
        self.loader = loader
        self.inputs = dict(inputs or {})
        self.tool = tool
        self._envs: dict[str, Environment] = {}
        self._lock = threading.Lock()

    @property
    def default_name(self) -> str:
        return self.workspace.config.default_env

    @property
    def default(self) -> Environment:
        return self[self.default_name]

    def __getitem__(self, name: str) -> Environment:
        with self._lock:
            if name not in self._envs:
                if name not in self.workspace.config.environment_names():
                    raise KeyError(name)
                self._envs[name] = self._build(name)
            return self._envs[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.workspace.config.environment_names())

    def __len__(self) -> int:
        return len(self.workspace.config.environments)

    def _build(self, name: str) -> Environment:
        logger.debug("building environment %s", name)
        ws = self.workspace
        graph = ws.lock(name)
        projects = build_environment(
            ws.config, graph, ws.local, ws.root,
            fetcher=self.fetcher, loader=self.loader, inputs=self.inputs,
        )
        return Environment(name, graph, projects, ws.config, tool=self.tool)


def register_all(
    workspace: Workspace,
    fetcher: Fetcher | None = None,
    loader: ManifestLoader | None = None,
    inputs: Mapping[str, Resolvable] | None = None,
    tool: Any = None,
) -> EnvironmentRegistry:
    """Register every configured environment.

    Args:
        workspace: Loaded workspace
        fetcher: Source fetcher (default: FetcherRegistry.default())
        loader: Manifest loader (default: DefaultManifestLoader)
        inputs: Workspace-level inputs shared by every project
        tool: Artifact for the default dev shell
    """
    if fetcher is None:
        fetcher = FetcherRegistry.default(
            base_dir=workspace.root,
            cache_dir=workspace.root / STATE_DIR / "cache",
        )
    return EnvironmentRegistry(
        workspace,
        fetcher=fetcher,
        loader=loader or DefaultManifestLoader(),
        inputs=inputs,
        tool=tool,
    )


def resolve(
    workspace: Workspace,
    env_name: str | None = None,
    **kwargs: Any,
) -> Environment:
    """Resolve one environment (default: the workspace default).

    Raises:
        ConfigError: Unknown environment
    """
    name = env_name or workspace.config.default_env
    workspace.config.env(name)
    return register_all(workspace, **kwargs)[name]


def list_projects(config: WorkspaceConfig) -> list[ProjectRegistration]:
    return list(config.projects)


def merged_outputs(
    workspace: Workspace,
    env_name: str | None,
    category: str,
    platform: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """One slice of an environment's merged namespace."""
    env = resolve(workspace, env_name, **kwargs)
    try:
        return env.slice(category, platform)
    except KeyError as e:
        raise ConfigError(str(e.args[0])) from e
