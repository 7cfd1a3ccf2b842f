"""mosaic.manifest — Project manifests."""

from mosaic.manifest.base import Manifest, ManifestLoader
from mosaic.manifest.loader import (
    DefaultManifestLoader, load_python_manifest, load_yaml_manifest,
)

__all__ = [
    "Manifest", "ManifestLoader",
    "DefaultManifestLoader", "load_python_manifest", "load_yaml_manifest",
]
