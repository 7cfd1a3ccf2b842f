"""
mosaic — Multi-project workspaces over lock graphs.

Resolves every project of a workspace (editable checkouts or locked pins),
shares common dependencies by name, and merges all build outputs into one
namespace per environment.
"""

__version__ = "0.1.0"

from mosaic.errors import (
    MosaicError,
    ConfigError,
    WorkspaceNotFoundError,
    GraphParseError,
    UnresolvedFollowError,
    CyclicFollowError,
    CyclicEvaluationError,
    FetchError,
    MissingLocalSourceError,
    ProjectNotLockedError,
    ManifestError,
    DuplicateProjectNameError,
)
from mosaic.workspace import (
    Workspace,
    Environment,
    register_all,
    resolve,
    list_projects,
    merged_outputs,
)

__all__ = [
    # errors
    "MosaicError",
    "ConfigError",
    "WorkspaceNotFoundError",
    "GraphParseError",
    "UnresolvedFollowError",
    "CyclicFollowError",
    "CyclicEvaluationError",
    "FetchError",
    "MissingLocalSourceError",
    "ProjectNotLockedError",
    "ManifestError",
    "DuplicateProjectNameError",
    # api
    "Workspace",
    "Environment",
    "register_all",
    "resolve",
    "list_projects",
    "merged_outputs",
]
