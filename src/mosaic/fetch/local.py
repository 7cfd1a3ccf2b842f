"""
mosaic.fetch.local — Local filesystem fetcher.

Handles the two source kinds that need no network:

  path      a directory; hashed on every fetch (it is mutable)
  tarball   a file:// URL or plain path to a .tar(.gz) archive; the
            archive digest is checked against the locked hash, then the
            archive is unpacked into the cache directory

Remote archives, git repositories and https tarballs belong to other
fetchers (see mosaic.fetch.registry).
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tarfile
import tempfile
from collections.abc import Iterable
from pathlib import Path

from mosaic.errors import FetchError
from mosaic.fetch.base import FetchedTree
from mosaic.graph.source import PathSource, SourceDescriptor, TarballSource

logger = logging.getLogger(__name__)

# not part of a tree's identity; directories with these names are not walked
DEFAULT_IGNORED = frozenset({
    ".git", "__pycache__", ".mosaic",
    ".venv", "node_modules", ".direnv", ".tox",
})


def compute_tree_hash(path: str | Path, ignore: Iterable[str] = DEFAULT_IGNORED) -> str:
    """Hash a directory tree: relative names + contents, sorted.

    Args:
        path: Directory to hash
        ignore: File and directory names to skip, at any depth

    Returns:
        Hash string in "sha256:<hex>" format
    """
    root = Path(path)
    ignored = frozenset(ignore)
    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in ignored]
        for name in filenames:
            if name not in ignored:
                files.append(Path(dirpath, name).relative_to(root))

    hasher = hashlib.sha256()
    for rel in sorted(files):
        fp = root / rel
        if not fp.is_file():
            continue
        # Include filename in hash (rename detection)
        hasher.update(rel.as_posix().encode())
        hasher.update(b"\0")
        hasher.update(fp.read_bytes())
    return f"sha256:{hasher.hexdigest()}"


def compute_file_digest(path: str | Path) -> str:
    """Compute the SHA256 digest of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return f"sha256:{h.hexdigest()}"


class LocalFetcher:
    """Fetch path and local tarball sources."""

    kinds = ("path", "tarball")

    def __init__(
        self,
        base_dir: str | Path | None = None,
        cache_dir: str | Path | None = None,
        ignore: Iterable[str] | None = None,
    ):
        self.base_dir = Path(base_dir) if base_dir else None
        self._cache_dir = Path(cache_dir) if cache_dir else None
        self.ignore = frozenset(ignore) if ignore is not None else DEFAULT_IGNORED

    @property
    def cache_dir(self) -> Path:
        if self._cache_dir is None:
            self._cache_dir = Path(tempfile.mkdtemp(prefix="mosaic-"))
        return self._cache_dir

    def fetch(self, descriptor: SourceDescriptor) -> FetchedTree:
        if isinstance(descriptor, PathSource):
            return self._fetch_path(descriptor)
        if isinstance(descriptor, TarballSource):
            return self._fetch_tarball(descriptor)
        raise FetchError(f"LocalFetcher cannot fetch '{descriptor.kind}' sources")

    def _resolve(self, raw: str) -> Path:
        p = Path(raw).expanduser()
        if not p.is_absolute() and self.base_dir is not None:
            p = self.base_dir / p
        return p

    def _fetch_path(self, src: PathSource) -> FetchedTree:
        p = self._resolve(src.path)
        if not p.is_dir():
            raise FetchError(f"Path source not found: {p}")
        return FetchedTree(
            path=p,
            content_hash=compute_tree_hash(p, self.ignore),
            subdir=src.dir or "",
        )

    def _fetch_tarball(self, src: TarballSource) -> FetchedTree:
        url = src.url
        if url.startswith("file://"):
            url = url[len("file://"):]
        elif "://" in url:
            raise FetchError(
                f"Remote tarball not supported by LocalFetcher: {src.url}",
                hint="Register a fetcher for remote tarballs",
            )

        archive = self._resolve(url)
        if not archive.is_file():
            raise FetchError(f"Tarball not found: {archive}")

        digest = compute_file_digest(archive)
        if src.content_hash and src.content_hash != digest:
            raise FetchError(
                f"Hash mismatch for {src.url}: locked {src.content_hash}, got {digest}",
            )

        dest = self.cache_dir / digest.split(":", 1)[1][:32]
        if not dest.exists():
            self._unpack(archive, dest)

        return FetchedTree(
            path=_single_top_dir(dest),
            content_hash=digest,
            subdir=src.dir or "",
            last_modified=src.last_modified,
        )

    def _unpack(self, archive: Path, dest: Path) -> None:
        """Unpack into a scratch directory, then move it to dest in one step.

        dest only ever holds a complete tree; a failed unpack leaves nothing
        behind.
        """
        logger.debug("unpacking %s → %s", archive, dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = Path(tempfile.mkdtemp(prefix=".unpack-", dir=dest.parent))
        try:
            with tarfile.open(archive) as tar:
                tar.extractall(tmp, filter="data")
            os.replace(tmp, dest)
        except (tarfile.TarError, OSError) as e:
            if not dest.is_dir():
                raise FetchError(f"Cannot unpack {archive}: {e}") from e
            logger.debug("%s was unpacked by a concurrent fetch", dest)
        finally:
            shutil.rmtree(tmp, ignore_errors=True)


def _single_top_dir(dest: Path) -> Path:
    """Archives with one top-level directory are rooted inside it."""
    entries = list(dest.iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return dest
