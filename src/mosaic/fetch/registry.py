"""
mosaic.fetch.registry — Fetcher dispatch and discovery.

Descriptors are dispatched to a fetcher by kind ("archive", "git", "path",
"tarball"). Fetchers come from two sources:

1. The built-in LocalFetcher (path, local tarballs)
2. entry_points in the "mosaic.fetchers" group; the entry point name is the
   kind it handles and the object it loads is called with no arguments to
   build the fetcher

    [project.entry-points."mosaic.fetchers"]
    git = "mosaic_git:GitFetcher"
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from importlib.metadata import entry_points
from pathlib import Path

from mosaic.errors import FetchError
from mosaic.fetch.base import FetchedTree, Fetcher
from mosaic.fetch.local import LocalFetcher
from mosaic.graph.source import SourceDescriptor

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "mosaic.fetchers"


class FetcherRegistry:
    """Dispatches fetches by descriptor kind."""

    def __init__(self, fetchers: dict[str, Fetcher] | None = None):
        self._fetchers: dict[str, Fetcher] = dict(fetchers or {})

    @classmethod
    def default(
        cls,
        base_dir: str | Path | None = None,
        cache_dir: str | Path | None = None,
        discover: bool = True,
        ignore: Iterable[str] | None = None,
    ) -> FetcherRegistry:
        """LocalFetcher for path/tarball plus any installed plugins.

        Args:
            ignore: Names skipped when hashing path sources
                (default: mosaic.fetch.local.DEFAULT_IGNORED)
        """
        registry = cls()
        local = LocalFetcher(base_dir=base_dir, cache_dir=cache_dir, ignore=ignore)
        for kind in local.kinds:
            registry.register(kind, local)
        if discover:
            registry.discover()
        return registry

    def register(self, kind: str, fetcher: Fetcher) -> None:
        self._fetchers[kind] = fetcher

    def kinds(self) -> list[str]:
        return sorted(self._fetchers)

    def discover(self) -> None:
        """Load fetchers from the mosaic.fetchers entry point group.

        A plugin that fails to load is logged and skipped; the kinds it
        would have handled fail with FetchError when used.
        """
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                factory = ep.load()
                self._fetchers[ep.name] = factory()
            except Exception as e:
                logger.warning("could not load fetcher plugin '%s': %s", ep.name, e)

    def fetch(self, descriptor: SourceDescriptor) -> FetchedTree:
        fetcher = self._fetchers.get(descriptor.kind)
        if fetcher is None:
            raise FetchError(
                f"No fetcher registered for '{descriptor.kind}' sources",
                hint=f"Install a plugin providing the '{ENTRY_POINT_GROUP}' "
                     f"entry point '{descriptor.kind}'",
            )
        return fetcher.fetch(descriptor)
