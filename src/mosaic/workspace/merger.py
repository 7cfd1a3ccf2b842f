"""
mosaic.workspace.merger — Output namespace merger.

Composes every project's outputs into one workspace namespace. Each entry
is renamed "<project>/<entry>":

    lib:  packages.x86_64-linux.default      → packages.x86_64-linux."lib/default"
    app:  packages.x86_64-linux.default      → packages.x86_64-linux."app/default"
    app:  overlays.default                   → overlays."app/default"

Platform-scoped categories (packages, apps, dev_shells, legacy_packages,
checks) are merged per platform; global categories (overlays, modules)
directly.

A project is left out of a category when it excludes that category, and
out of every category when it is flattened (its own `flatten`, else the
workspace `flatten`). Left-out projects are still resolved and usable as
inputs.

Every platform also gets dev_shells.<platform>.default: a shell carrying
the workspace tool, so an environment is usable even with no projects.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from mosaic.errors import DuplicateProjectNameError
from mosaic.graph.evaluator import ResolvedInstance
from mosaic.workspace.config import ProjectRegistration

PLATFORM_CATEGORIES = ("packages", "apps", "dev_shells", "legacy_packages", "checks")
GLOBAL_CATEGORIES = ("overlays", "modules")
CATEGORIES = PLATFORM_CATEGORIES + GLOBAL_CATEGORIES

DEFAULT_SHELL = "default"


def default_tool() -> dict[str, Any]:
    from mosaic import __version__
    return {"type": "package", "name": "mosaic", "version": __version__}


def dev_shell(platform: str, packages: list[Any]) -> dict[str, Any]:
    """A development-environment artifact."""
    return {
        "type": "dev_shell",
        "name": DEFAULT_SHELL,
        "platform": platform,
        "packages": list(packages),
    }


def rename_entries(project: str, entries: Mapping[str, Any]) -> dict[str, Any]:
    """{X: v} → {"project/X": v}"""
    return {f"{project}/{name}": value for name, value in entries.items()}


def _insert(target: dict[str, Any], entries: dict[str, Any], where: str) -> None:
    for key, value in entries.items():
        if key in target:
            raise DuplicateProjectNameError(
                f"Duplicate output '{key}' in {where}",
                hint="Two projects produce the same merged name; rename one of them",
            )
        target[key] = value


def merge_outputs(
    projects: Mapping[str, ResolvedInstance],
    registrations: Iterable[ProjectRegistration],
    systems: Iterable[str],
    flatten_default: bool = False,
    tool: Any = None,
) -> dict[str, Any]:
    """Merge all projects' outputs into one namespace.

    Args:
        projects: project name → ResolvedInstance (forced on access)
        registrations: Registered projects, in workspace order
        systems: Platforms to synthesize the default dev shell for
        flatten_default: Workspace-wide flatten setting
        tool: Artifact bundled into the default dev shell

    Returns:
        category → {name: artifact} or category → platform → {name: artifact}

    Raises:
        DuplicateProjectNameError: Two registrations share a name, or two
            merged entries collide
    """
    systems = list(systems)
    merged: dict[str, Any] = {c: {} for c in GLOBAL_CATEGORIES}
    merged.update({c: {s: {} for s in systems} for c in PLATFORM_CATEGORIES})

    seen: set[str] = set()
    for reg in registrations:
        if reg.name in seen:
            raise DuplicateProjectNameError(f"Duplicate project name: '{reg.name}'")
        seen.add(reg.name)

        if reg.is_flattened(flatten_default):
            continue
        categories = [c for c in CATEGORIES if not reg.excludes(c)]
        if not categories:
            continue

        instance = projects[reg.name]
        if not instance.is_buildable:
            continue

        for category in categories:
            section = instance.category(category)
            if not section:
                continue
            if category in GLOBAL_CATEGORIES:
                _insert(merged[category], rename_entries(reg.name, section), category)
                continue
            for platform, entries in section.items():
                target = merged[category].setdefault(platform, {})
                _insert(
                    target, rename_entries(reg.name, entries or {}),
                    f"{category}.{platform}",
                )

    shell_tool = tool if tool is not None else default_tool()
    for platform in systems:
        _insert(
            merged["dev_shells"][platform],
            {DEFAULT_SHELL: dev_shell(platform, [shell_tool])},
            f"dev_shells.{platform}",
        )

    return merged


def slice_outputs(
    outputs: Mapping[str, Any], category: str, platform: str | None = None,
) -> dict[str, Any]:
    """One category (and platform) of a merged namespace.

    Platform-scoped categories without a platform return the whole
    platform → entries mapping.
    """
    if category not in outputs:
        raise KeyError(f"Unknown output category '{category}'. Available: {sorted(outputs)}")
    section = outputs[category]
    if platform is None:
        return dict(section)
    if category in GLOBAL_CATEGORIES:
        raise KeyError(f"Category '{category}' is not platform-scoped")
    return dict(section.get(platform, {}))
