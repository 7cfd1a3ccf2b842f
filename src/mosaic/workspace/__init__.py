"""mosaic.workspace — Workspace configuration, environments & merging."""

from mosaic.workspace.config import (
    WorkspaceConfig, ProjectRegistration, EnvironmentConfig, UpdateStrategy,
    LocalState, LocalProject,
    parse_config_dict, load_config, save_config, load_local, save_local,
)
from mosaic.workspace.layout import Workspace, find_root
from mosaic.workspace.builder import build_environment, effective_source
from mosaic.workspace.merger import (
    merge_outputs, slice_outputs, CATEGORIES, PLATFORM_CATEGORIES, GLOBAL_CATEGORIES,
)
from mosaic.workspace.registry import (
    Environment, EnvironmentRegistry, register_all,
    resolve, list_projects, merged_outputs,
)

__all__ = [
    "WorkspaceConfig", "ProjectRegistration", "EnvironmentConfig", "UpdateStrategy",
    "LocalState", "LocalProject",
    "parse_config_dict", "load_config", "save_config", "load_local", "save_local",
    "Workspace", "find_root",
    "build_environment", "effective_source",
    "merge_outputs", "slice_outputs", "CATEGORIES", "PLATFORM_CATEGORIES", "GLOBAL_CATEGORIES",
    "Environment", "EnvironmentRegistry", "register_all",
    "resolve", "list_projects", "merged_outputs",
]
