"""
mosaic.manifest.refs — Reference resolver for static manifests.

String values in a project.yaml output tree can reference the project's
inputs and its own source using the ${name.field} syntax:

  ${lib.out_path}                  → lib's source path
  ${lib.rev}                       → lib's pinned revision
  ${lib.packages.x86_64-linux.default.name}
                                   → a value from lib's outputs
  ${self.out_path}                 → this project's own source path

A string that is exactly one reference takes the referenced value as-is
(a dict stays a dict); references embedded in longer strings are
stringified.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any

from mosaic.errors import ManifestError

# ${name.field} or ${name.nested.field}
_REF_PATTERN = re.compile(r"\$\{([a-zA-Z0-9_-]+)\.([a-zA-Z0-9_.-]+)\}")

Lookup = Callable[[str], Mapping[str, Any]]


def resolve_refs(data: Any, lookup: Lookup) -> Any:
    """Resolve all references in a nested structure.

    Args:
        data: dict / list / scalar tree
        lookup: name → attribute mapping for that name

    Returns:
        New structure with references replaced
    """
    if isinstance(data, str):
        return _resolve_string(data, lookup)
    if isinstance(data, dict):
        return {key: resolve_refs(value, lookup) for key, value in data.items()}
    if isinstance(data, list):
        return [resolve_refs(item, lookup) for item in data]
    return data


def referenced_names(data: Any) -> set[str]:
    """Names referenced anywhere in a nested structure."""
    if isinstance(data, str):
        return {m.group(1) for m in _REF_PATTERN.finditer(data)}
    if isinstance(data, dict):
        values = data.values()
    elif isinstance(data, list):
        values = data
    else:
        return set()
    names: set[str] = set()
    for value in values:
        names |= referenced_names(value)
    return names


def _resolve_string(value: str, lookup: Lookup) -> Any:
    """Resolve ${ref} patterns within a string."""
    whole = _REF_PATTERN.fullmatch(value)
    if whole:
        return _get_field(lookup, whole.group(1), whole.group(2))

    def replacer(match: re.Match) -> str:
        return str(_get_field(lookup, match.group(1), match.group(2)))

    return _REF_PATTERN.sub(replacer, value)


def _get_field(lookup: Lookup, name: str, field_path: str) -> Any:
    """Get a value from a named attribute mapping using a dot-separated path."""
    current: Any = lookup(name)
    for part in field_path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            raise ManifestError(
                f"Unknown field '{field_path}' in reference '${{{name}.{field_path}}}'"
            )
    return current
