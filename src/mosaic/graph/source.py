"""
mosaic.graph.source — Source descriptors.

A source descriptor says where a project's tree comes from. Four kinds:

    archive   github:owner/repo       (registry archive, pinned by rev + hash)
    git       git+https://host/x.git  (repository, pinned by rev + hash)
    path      path:./x                (mutable local path, never pinned)
    tarball   https://host/x.tar.gz   (pinned by hash)

Lock document form (the "locked" entry of a lock graph node):

    {"type": "github", "owner": "org", "repo": "lib",
     "rev": "4f1c...", "hash": "sha256:ab12...", "dir": "sub"}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from mosaic.errors import GraphParseError

ARCHIVE_HOSTS = ("github", "gitlab", "sourcehut")


@dataclass(frozen=True)
class ArchiveSource:
    """Registry archive (github / gitlab / sourcehut)."""
    host: str
    owner: str
    repo: str
    ref: str | None = None
    rev: str | None = None
    content_hash: str | None = None
    dir: str | None = None
    last_modified: int | None = None

    kind = "archive"

    @property
    def is_locked(self) -> bool:
        return self.rev is not None and self.content_hash is not None

    @property
    def url(self) -> str:
        return f"{self.host}:{self.owner}/{self.repo}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.host, "owner": self.owner, "repo": self.repo,
        }
        return _with_pins(data, self)


@dataclass(frozen=True)
class GitSource:
    """Version-control repository."""
    url: str
    ref: str | None = None
    rev: str | None = None
    content_hash: str | None = None
    dir: str | None = None
    last_modified: int | None = None

    kind = "git"

    @property
    def is_locked(self) -> bool:
        return self.rev is not None and self.content_hash is not None

    def to_dict(self) -> dict[str, Any]:
        return _with_pins({"type": "git", "url": self.url}, self)


@dataclass(frozen=True)
class PathSource:
    """Mutable filesystem path. Never pinned."""
    path: str
    dir: str | None = None

    kind = "path"

    @property
    def is_locked(self) -> bool:
        return False

    @property
    def url(self) -> str:
        return f"path:{self.path}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": "path", "path": self.path}
        if self.dir:
            data["dir"] = self.dir
        return data


@dataclass(frozen=True)
class TarballSource:
    """Tarball by URL (https://, file:// or a plain local path)."""
    url: str
    content_hash: str | None = None
    dir: str | None = None
    last_modified: int | None = None

    kind = "tarball"

    @property
    def is_locked(self) -> bool:
        return self.content_hash is not None

    @property
    def rev(self) -> str | None:
        return None

    def to_dict(self) -> dict[str, Any]:
        return _with_pins({"type": "tarball", "url": self.url}, self)


SourceDescriptor = Union[ArchiveSource, GitSource, PathSource, TarballSource]


def _with_pins(data: dict[str, Any], src: Any) -> dict[str, Any]:
    if getattr(src, "ref", None):
        data["ref"] = src.ref
    if getattr(src, "rev", None):
        data["rev"] = src.rev
    if src.content_hash:
        data["hash"] = src.content_hash
    if src.dir:
        data["dir"] = src.dir
    if src.last_modified is not None:
        data["lastModified"] = src.last_modified
    return data


def descriptor_from_dict(data: Any) -> SourceDescriptor:
    """Parse the lock document form of a descriptor.

    Raises:
        GraphParseError: Unknown type or missing fields
    """
    if not isinstance(data, dict):
        raise GraphParseError(f"Source descriptor must be a mapping, got {type(data).__name__}")

    kind = data.get("type")
    content_hash = data.get("hash", data.get("narHash"))
    subdir = data.get("dir") or None
    last_modified = data.get("lastModified")

    if kind in ARCHIVE_HOSTS:
        owner, repo = data.get("owner"), data.get("repo")
        if not owner or not repo:
            raise GraphParseError(f"'{kind}' source requires 'owner' and 'repo'")
        return ArchiveSource(
            host=kind, owner=owner, repo=repo,
            ref=data.get("ref"), rev=data.get("rev"),
            content_hash=content_hash, dir=subdir,
            last_modified=last_modified,
        )
    if kind == "git":
        if not data.get("url"):
            raise GraphParseError("'git' source requires 'url'")
        return GitSource(
            url=data["url"], ref=data.get("ref"), rev=data.get("rev"),
            content_hash=content_hash, dir=subdir,
            last_modified=last_modified,
        )
    if kind == "path":
        if not data.get("path"):
            raise GraphParseError("'path' source requires 'path'")
        return PathSource(path=str(data["path"]), dir=subdir)
    if kind in ("tarball", "file"):
        if not data.get("url"):
            raise GraphParseError(f"'{kind}' source requires 'url'")
        return TarballSource(
            url=data["url"], content_hash=content_hash, dir=subdir,
            last_modified=last_modified,
        )

    raise GraphParseError(
        f"Unsupported source type: '{kind}'. "
        f"Expected one of: {', '.join(ARCHIVE_HOSTS)}, git, path, tarball"
    )


def parse_ref(ref: str) -> SourceDescriptor:
    """Parse a repository reference string into an unlocked descriptor.

    >>> parse_ref("github:org/lib")
    ArchiveSource(host='github', owner='org', repo='lib', ref=None, rev=None, content_hash=None, dir=None, last_modified=None)
    >>> parse_ref("path:./lib").path
    './lib'

    A trailing "?dir=sub" selects a subdirectory; for archives a third path
    segment selects a ref (github:org/lib/v1.2).
    """
    ref = ref.strip()
    if not ref:
        raise GraphParseError("Empty source reference")

    body, _, query = ref.partition("?")
    params = dict(
        part.split("=", 1) for part in query.split("&") if "=" in part
    )
    subdir = params.get("dir") or None

    scheme, sep, rest = body.partition(":")
    if not sep:
        # bare path
        return PathSource(path=body, dir=subdir)

    if scheme in ARCHIVE_HOSTS:
        parts = [p for p in rest.split("/") if p]
        if len(parts) < 2:
            raise GraphParseError(f"Invalid {scheme} reference: '{ref}' (expected {scheme}:owner/repo)")
        return ArchiveSource(
            host=scheme, owner=parts[0], repo=parts[1],
            ref="/".join(parts[2:]) or params.get("ref"),
            rev=params.get("rev"), dir=subdir,
        )
    if scheme.startswith("git+"):
        transport = scheme[len("git+"):]
        return GitSource(
            url=f"{transport}:{rest}", ref=params.get("ref"),
            rev=params.get("rev"), dir=subdir,
        )
    if scheme == "path":
        return PathSource(path=rest, dir=subdir)
    if scheme in ("http", "https", "file") or scheme.startswith("tarball+"):
        url = body[len("tarball+"):] if scheme.startswith("tarball+") else body
        return TarballSource(url=url, dir=subdir)

    raise GraphParseError(f"Unsupported source reference: '{ref}'")
