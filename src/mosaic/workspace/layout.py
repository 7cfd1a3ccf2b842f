"""
mosaic.workspace.layout — Workspace files on disk.

    <root>/
    ├── workspace.yaml        ← configuration (committed)
    └── .mosaic/
        ├── dev.lock          ← one lock graph per environment (committed)
        ├── prod.lock
        └── local.json        ← editable flags (per checkout)

The root is always passed in explicitly; find_root() walks upwards from a
given directory, at most max_depth levels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from mosaic.errors import WorkspaceNotFoundError
from mosaic.graph.lock import LockGraph, load_graph, load_graph_or_empty, write_graph
from mosaic.workspace.config import (
    LocalState, WorkspaceConfig, load_config, load_local, save_config, save_local,
)

CONFIG_FILE = "workspace.yaml"
STATE_DIR = ".mosaic"
LOCAL_FILE = "local.json"
MAX_DEPTH = 100


def find_root(start: str | Path, max_depth: int = MAX_DEPTH) -> Path:
    """Find the nearest directory at or above start holding workspace.yaml.

    Raises:
        WorkspaceNotFoundError: Not found within max_depth levels
    """
    current = Path(start).resolve()
    for _ in range(max_depth):
        if (current / CONFIG_FILE).is_file():
            return current
        if current.parent == current:
            break
        current = current.parent
    raise WorkspaceNotFoundError(
        f"Could not find {CONFIG_FILE} in {Path(start)} or its parents "
        f"(searched {max_depth} levels)",
        hint="Run inside a workspace or pass its directory explicitly",
    )


def config_path(root: Path) -> Path:
    return root / CONFIG_FILE


def lock_path(root: Path, env: str) -> Path:
    return root / STATE_DIR / f"{env}.lock"


def local_path(root: Path) -> Path:
    return root / STATE_DIR / LOCAL_FILE


@dataclass
class Workspace:
    """A loaded workspace: root, config, local state, lock graphs.

    Lock graphs are read on first use, one environment at a time, so a
    broken lock file only affects the environment it belongs to.
    """
    root: Path
    config: WorkspaceConfig
    local: LocalState = field(default_factory=LocalState)
    locks: dict[str, LockGraph] = field(default_factory=dict)
    strict_locks: bool = False

    @classmethod
    def at(cls, root: str | Path, strict_locks: bool = False) -> Workspace:
        """Load the workspace rooted at root.

        Args:
            strict_locks: Fail when an environment has no lock file
                instead of starting from an empty graph
        """
        r = Path(root).resolve()
        return cls(
            root=r,
            config=load_config(config_path(r)),
            local=load_local(local_path(r)),
            strict_locks=strict_locks,
        )

    @classmethod
    def discover(cls, start: str | Path, max_depth: int = MAX_DEPTH) -> Workspace:
        return cls.at(find_root(start, max_depth))

    def lock(self, env: str) -> LockGraph:
        """The lock graph of env, read from .mosaic/<env>.lock on first use.

        Raises:
            ConfigError: Unknown environment
            GraphParseError: The lock file is malformed (or missing, with
                strict_locks)
        """
        self.config.env(env)
        if env not in self.locks:
            load = load_graph if self.strict_locks else load_graph_or_empty
            self.locks[env] = load(lock_path(self.root, env))
        return self.locks[env]

    def project_dir(self, name: str) -> Path | None:
        project = self.config.project(name)
        if project.path is None:
            return None
        return self.root / project.path

    def context(self, cwd: str | Path) -> str | None:
        """Name of the project whose local path contains cwd, if any."""
        here = Path(cwd).resolve()
        for project in self.config.projects:
            if project.path is None:
                continue
            path = (self.root / project.path).resolve()
            if here == path or path in here.parents:
                return project.name
        return None

    def save(self) -> None:
        """Write config, local state and every lock graph read or set so far."""
        save_config(self.config, config_path(self.root))
        save_local(self.local, local_path(self.root))
        for env, graph in self.locks.items():
            write_graph(graph, lock_path(self.root, env))

    def save_local(self) -> None:
        save_local(self.local, local_path(self.root))
