"""mosaic.fetch — Source fetchers."""

from mosaic.fetch.base import FetchedTree, Fetcher
from mosaic.fetch.local import (
    DEFAULT_IGNORED, LocalFetcher, compute_tree_hash, compute_file_digest,
)
from mosaic.fetch.registry import FetcherRegistry

__all__ = [
    "FetchedTree", "Fetcher",
    "DEFAULT_IGNORED", "LocalFetcher", "compute_tree_hash", "compute_file_digest",
    "FetcherRegistry",
]
