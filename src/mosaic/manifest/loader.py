"""
mosaic.manifest.loader — Manifest discovery.

A project tree may carry one of two manifests (looked up in this order):

project.py — Python manifest:

    INPUTS = ["lib"]

    def outputs(inputs):
        lib = inputs["lib"]
        return {
            "packages": {
                "x86_64-linux": {"default": {"name": "app", "deps": [lib]}},
            },
        }

project.yaml — static manifest:

    description: app
    inputs: [lib]
    outputs:
      packages:
        x86_64-linux:
          default:
            name: app
            path: ${self.out_path}/bin/app
            lib: ${lib.out_path}

A tree with neither is not buildable; that is not an error.
"""

from __future__ import annotations

import hashlib
import importlib.util
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from mosaic.errors import ManifestError
from mosaic.manifest.base import Manifest
from mosaic.manifest.refs import referenced_names, resolve_refs

logger = logging.getLogger(__name__)

PYTHON_MANIFEST = "project.py"
YAML_MANIFEST = "project.yaml"


def _manifest_dir(tree: Path, subdir: str) -> Path:
    return Path(tree) / subdir if subdir else Path(tree)


def _check_inputs(raw: Any, origin: Path) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)) or not all(isinstance(i, str) for i in raw):
        raise ManifestError(f"{origin}: inputs must be a list of names")
    return tuple(raw)


def load_python_manifest(path: str | Path) -> Manifest:
    """Import a project.py manifest."""
    p = Path(path)
    module_name = "mosaic_project_" + hashlib.sha256(str(p.resolve()).encode()).hexdigest()[:12]
    spec = importlib.util.spec_from_file_location(module_name, p)
    if spec is None or spec.loader is None:
        raise ManifestError(f"Cannot import manifest: {p}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise ManifestError(f"{p}: {type(e).__name__}: {e}") from e

    outputs = getattr(module, "outputs", None)
    if not callable(outputs):
        raise ManifestError(f"{p}: manifest must define an 'outputs(inputs)' function")

    return Manifest(
        inputs=_check_inputs(getattr(module, "INPUTS", None), p),
        outputs=outputs,
        description=getattr(module, "DESCRIPTION", "") or (module.__doc__ or "").strip(),
        origin=p,
    )


def load_yaml_manifest(path: str | Path) -> Manifest:
    """Read a project.yaml manifest."""
    p = Path(path)
    try:
        with open(p) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestError(f"{p}: invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"{p}: manifest must be a YAML mapping")

    inputs = _check_inputs(data.get("inputs"), p)
    template = data.get("outputs") or {}
    if not isinstance(template, dict):
        raise ManifestError(f"{p}: outputs must be a mapping")

    unknown = referenced_names(template) - set(inputs) - {"self"}
    if unknown:
        raise ManifestError(
            f"{p}: outputs reference undeclared inputs: {sorted(unknown)}",
            hint="Add them to 'inputs'",
        )

    own = {
        "out_path": str(p.parent),
        "tree": str(p.parent),
        "name": data.get("name", p.parent.name),
    }

    def outputs(bound: Mapping[str, Any]) -> dict[str, Any]:
        def lookup(name: str) -> Mapping[str, Any]:
            if name == "self":
                return own
            return bound[name].attrs

        return resolve_refs(template, lookup)

    return Manifest(
        inputs=inputs,
        outputs=outputs,
        description=data.get("description", ""),
        origin=p,
    )


class DefaultManifestLoader:
    """project.py, then project.yaml, else no manifest."""

    def load(self, tree: Path, subdir: str = "") -> Manifest | None:
        base = _manifest_dir(tree, subdir)
        py = base / PYTHON_MANIFEST
        if py.is_file():
            logger.debug("loading %s", py)
            return load_python_manifest(py)
        yml = base / YAML_MANIFEST
        if yml.is_file():
            logger.debug("loading %s", yml)
            return load_yaml_manifest(yml)
        return None
