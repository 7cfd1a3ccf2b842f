"""
mosaic.workspace.config — Workspace configuration.

workspace.yaml:

    default_env: dev
    flatten: false                  # hide every project's outputs by default
    systems: [x86_64-linux, aarch64-darwin]
    environments:
      - name: dev
        strategy: latest
      - name: prod
        strategy: {latest-tag: "release-*"}
    projects:
      - name: lib
        url: github:org/lib
        path: ./lib
      - name: internal-tools
        url: github:org/tools
        path: ./tools
        flatten: true               # resolvable, but not in merged outputs
        exclude: [checks]           # or `exclude: true` for every category
        strategy: {prod: freeze}

Unknown keys are ignored.

.mosaic/local.json (written by edit/unedit, never committed):

    {"projects": {"lib": {"editable": true}}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mosaic.errors import ConfigError, DuplicateProjectNameError, GraphParseError
from mosaic.graph.source import SourceDescriptor, parse_ref

DEFAULT_SYSTEMS = ["x86_64-linux", "aarch64-linux", "x86_64-darwin", "aarch64-darwin"]
STRATEGY_KINDS = ("latest", "freeze", "latest-tag", "branch")
RESERVED_NAMES = {"root", "self"}


@dataclass(frozen=True)
class UpdateStrategy:
    """How `update` moves a project's pin. Stored, not acted on here."""
    kind: str = "latest"
    argument: str | None = None

    @classmethod
    def parse(cls, raw: Any) -> UpdateStrategy:
        """Parse a strategy value.

        >>> UpdateStrategy.parse("freeze")
        UpdateStrategy(kind='freeze', argument=None)
        >>> UpdateStrategy.parse({"branch": "main"})
        UpdateStrategy(kind='branch', argument='main')
        """
        if raw is None:
            return cls()
        if isinstance(raw, str):
            kind, argument = raw, None
        elif isinstance(raw, dict) and len(raw) == 1:
            kind, argument = next(iter(raw.items()))
            argument = None if argument is None else str(argument)
        else:
            raise ConfigError(f"Invalid strategy: {raw!r}")
        if kind not in STRATEGY_KINDS:
            raise ConfigError(
                f"Unknown strategy '{kind}'. Expected one of: {', '.join(STRATEGY_KINDS)}"
            )
        if kind == "branch" and not argument:
            raise ConfigError("Strategy 'branch' requires a branch name")
        return cls(kind=kind, argument=argument)

    def to_value(self) -> Any:
        if self.argument is None:
            return self.kind
        return {self.kind: self.argument}


@dataclass
class EnvironmentConfig:
    """A named environment."""
    name: str
    strategy: UpdateStrategy = field(default_factory=UpdateStrategy)


@dataclass
class ProjectRegistration:
    """A project registered in the workspace."""
    name: str
    url: str
    path: str | None = None
    exclude: bool | tuple[str, ...] = False
    flatten: bool | None = None
    strategy: dict[str, UpdateStrategy] = field(default_factory=dict)

    @property
    def source(self) -> SourceDescriptor:
        """Unlocked repository descriptor parsed from url."""
        return parse_ref(self.url)

    def excludes(self, category: str) -> bool:
        if isinstance(self.exclude, bool):
            return self.exclude
        return category in self.exclude

    def is_flattened(self, default: bool = False) -> bool:
        return default if self.flatten is None else self.flatten

    def strategy_for(self, env: EnvironmentConfig) -> UpdateStrategy:
        return self.strategy.get(env.name, env.strategy)


@dataclass
class WorkspaceConfig:
    """Parsed workspace.yaml."""
    environments: list[EnvironmentConfig] = field(
        default_factory=lambda: [EnvironmentConfig("dev")]
    )
    projects: list[ProjectRegistration] = field(default_factory=list)
    default_env: str = "dev"
    flatten: bool = False
    systems: list[str] = field(default_factory=lambda: list(DEFAULT_SYSTEMS))

    def environment_names(self) -> list[str]:
        return [env.name for env in self.environments]

    def env(self, name: str) -> EnvironmentConfig:
        for env in self.environments:
            if env.name == name:
                return env
        raise ConfigError(
            f"Environment does not exist: '{name}'. "
            f"Available environments: {self.environment_names()}"
        )

    def project(self, name: str) -> ProjectRegistration:
        for project in self.projects:
            if project.name == name:
                return project
        raise ConfigError(f"Could not find project '{name}'")

    def project_names(self) -> list[str]:
        return [p.name for p in self.projects]

    def add_project(self, project: ProjectRegistration) -> ProjectRegistration:
        if project.name in self.project_names():
            raise DuplicateProjectNameError(f"Project '{project.name}' is already registered")
        _check_name(project.name)
        self.projects.append(project)
        return project

    def remove_project(self, name: str) -> ProjectRegistration:
        project = self.project(name)
        self.projects.remove(project)
        return project


@dataclass
class LocalProject:
    editable: bool = False


@dataclass
class LocalState:
    """Per-checkout editable flags."""
    projects: dict[str, LocalProject] = field(default_factory=dict)

    def is_editable(self, name: str) -> bool:
        project = self.projects.get(name)
        return project.editable if project else False

    def mark_editable(self, name: str) -> None:
        self.projects[name] = LocalProject(editable=True)

    def unmark_editable(self, name: str) -> None:
        self.projects[name] = LocalProject(editable=False)

    def editable_names(self) -> list[str]:
        return sorted(n for n, p in self.projects.items() if p.editable)


def _check_name(name: Any) -> None:
    if not isinstance(name, str) or not name:
        raise ConfigError("Project name must be a non-empty string")
    if name in RESERVED_NAMES:
        raise ConfigError(f"Project name '{name}' is reserved")


def _parse_exclude(raw: Any, where: str) -> bool | tuple[str, ...]:
    if raw is None:
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return (raw,)
    if isinstance(raw, list) and all(isinstance(c, str) for c in raw):
        return tuple(raw)
    raise ConfigError(f"{where}.exclude must be a boolean or a list of categories")


def _parse_project(raw: Any, i: int) -> ProjectRegistration:
    where = f"projects[{i}]"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where} must be a mapping")

    name = raw.get("name")
    _check_name(name)

    url = raw.get("url")
    if not url or not isinstance(url, str):
        raise ConfigError(f"{where}.url is required")
    try:
        parse_ref(url)
    except GraphParseError as e:
        raise ConfigError(f"{where}.url: {e.message}") from e

    flatten = raw.get("flatten")
    if flatten is not None and not isinstance(flatten, bool):
        raise ConfigError(f"{where}.flatten must be a boolean")

    strategy_raw = raw.get("strategy") or {}
    if not isinstance(strategy_raw, dict):
        raise ConfigError(f"{where}.strategy must be a mapping of environment → strategy")

    path = raw.get("path")
    return ProjectRegistration(
        name=name,
        url=url,
        path=str(path) if path is not None else None,
        exclude=_parse_exclude(raw.get("exclude"), where),
        flatten=flatten,
        strategy={env: UpdateStrategy.parse(s) for env, s in strategy_raw.items()},
    )


def parse_config_dict(data: Any) -> WorkspaceConfig:
    """Create a WorkspaceConfig from a decoded workspace.yaml.

    Raises:
        ConfigError: Format error
        DuplicateProjectNameError: Two projects share a name
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Workspace config must be a mapping, got {type(data).__name__}")

    cfg = WorkspaceConfig()

    envs_raw = data.get("environments")
    if envs_raw is not None:
        if not isinstance(envs_raw, list) or not envs_raw:
            raise ConfigError("environments must be a non-empty list")
        cfg.environments = []
        for i, env in enumerate(envs_raw):
            if isinstance(env, str):
                env = {"name": env}
            if not isinstance(env, dict) or not env.get("name"):
                raise ConfigError(f"environments[{i}].name is required")
            if env["name"] in cfg.environment_names():
                raise ConfigError(f"Duplicate environment name: '{env['name']}'")
            cfg.environments.append(EnvironmentConfig(
                name=env["name"],
                strategy=UpdateStrategy.parse(env.get("strategy")),
            ))

    cfg.default_env = data.get("default_env", cfg.environments[0].name)
    cfg.env(cfg.default_env)

    flatten = data.get("flatten", False)
    if not isinstance(flatten, bool):
        raise ConfigError("flatten must be a boolean")
    cfg.flatten = flatten

    systems = data.get("systems")
    if systems is not None:
        if not isinstance(systems, list) or not all(isinstance(s, str) for s in systems):
            raise ConfigError("systems must be a list of platform names")
        cfg.systems = list(systems)

    projects_raw = data.get("projects") or []
    if not isinstance(projects_raw, list):
        raise ConfigError("projects must be a list")
    seen: set[str] = set()
    for i, raw in enumerate(projects_raw):
        project = _parse_project(raw, i)
        if project.name in seen:
            raise DuplicateProjectNameError(
                f"Duplicate project name: '{project.name}'",
                hint="Project names must be unique within a workspace",
            )
        seen.add(project.name)
        cfg.projects.append(project)

    return cfg


def load_config(path: str | Path) -> WorkspaceConfig:
    """Read workspace.yaml."""
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Workspace config not found: {p}")
    try:
        with open(p) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"{p}: invalid YAML: {e}") from e
    return parse_config_dict(data)


def config_to_dict(cfg: WorkspaceConfig) -> dict[str, Any]:
    data: dict[str, Any] = {"default_env": cfg.default_env}
    if cfg.flatten:
        data["flatten"] = True
    if cfg.systems != DEFAULT_SYSTEMS:
        data["systems"] = list(cfg.systems)
    data["environments"] = [
        {"name": env.name, "strategy": env.strategy.to_value()}
        for env in cfg.environments
    ]
    data["projects"] = []
    for project in cfg.projects:
        entry: dict[str, Any] = {"name": project.name, "url": project.url}
        if project.path is not None:
            entry["path"] = project.path
        if project.exclude:
            entry["exclude"] = project.exclude if isinstance(project.exclude, bool) else list(project.exclude)
        if project.flatten is not None:
            entry["flatten"] = project.flatten
        if project.strategy:
            entry["strategy"] = {env: s.to_value() for env, s in project.strategy.items()}
        data["projects"].append(entry)
    return data


def save_config(cfg: WorkspaceConfig, path: str | Path) -> None:
    """Write workspace.yaml."""
    with open(path, "w") as f:
        yaml.dump(config_to_dict(cfg), f, default_flow_style=False, sort_keys=False)


def load_local(path: str | Path) -> LocalState:
    """Read .mosaic/local.json. A missing file means nothing is editable."""
    p = Path(path)
    if not p.exists():
        return LocalState()
    try:
        data = json.loads(p.read_text() or "{}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"{p}: invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{p}: local state must be a mapping")

    state = LocalState()
    projects = data.get("projects") or {}
    if not isinstance(projects, dict):
        raise ConfigError(f"{p}: 'projects' must be a mapping")
    for name, entry in projects.items():
        editable = entry.get("editable", False) if isinstance(entry, dict) else False
        state.projects[name] = LocalProject(editable=bool(editable))
    return state


def save_local(state: LocalState, path: str | Path) -> None:
    """Write .mosaic/local.json."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "projects": {
            name: {"editable": project.editable}
            for name, project in sorted(state.projects.items())
        },
    }
    with open(p, "w") as f:
        json.dump(data, f, indent=2)
        f.write("\n")
