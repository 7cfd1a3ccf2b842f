"""mosaic.cli._common — Shared CLI helpers."""

import sys
from pathlib import Path

import click

from mosaic.errors import MosaicError
from mosaic.workspace.layout import Workspace

dir_option = click.option(
    "-C", "--dir", "workspace_dir", default=None,
    help="Workspace directory (default: search upwards from pwd)",
)


def load_workspace(workspace_dir):
    """Load the workspace or exit with the error."""
    try:
        if workspace_dir:
            return Workspace.at(workspace_dir)
        return Workspace.discover(Path.cwd())
    except MosaicError as e:
        fail(e)


def fail(error):
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)
