"""
mosaic.fetch.base — Source fetcher interface.

A fetcher turns a source descriptor into a tree on disk plus the metadata
that pins it. Locked descriptors must fetch deterministically; path
descriptors may change between runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from mosaic.graph.source import SourceDescriptor


@dataclass(frozen=True)
class FetchedTree:
    """A fetched source tree and its pin metadata."""
    path: Path
    revision: str | None = None
    content_hash: str | None = None
    subdir: str = ""
    last_modified: int | None = None

    @property
    def out_path(self) -> Path:
        """Tree path joined with the subdirectory."""
        return self.path / self.subdir if self.subdir else self.path

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "out_path": str(self.out_path),
            "tree": str(self.path),
            "subdir": self.subdir,
        }
        if self.revision:
            data["rev"] = self.revision
        if self.content_hash:
            data["hash"] = self.content_hash
        if self.last_modified is not None:
            data["last_modified"] = self.last_modified
        return data


class Fetcher(Protocol):
    def fetch(self, descriptor: SourceDescriptor) -> FetchedTree: ...
