"""
mosaic.manifest.base — Manifest interface.

A manifest declares which inputs a project takes and how its output
namespace is produced from them.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

OutputFunction = Callable[[Mapping[str, Any]], dict[str, Any]]


@dataclass
class Manifest:
    """Declared inputs + output function."""
    inputs: tuple[str, ...]
    outputs: OutputFunction
    description: str = ""
    origin: Path | None = field(default=None, compare=False)


class ManifestLoader(Protocol):
    def load(self, tree: Path, subdir: str = "") -> Manifest | None: ...
