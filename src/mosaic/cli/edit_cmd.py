"""
mosaic.cli.edit_cmd — mosaic edit / unedit commands.

  mosaic edit lib      — build lib from its local path
  mosaic unedit lib    — build lib from its locked revision again
"""

import click

from mosaic.cli._common import dir_option, fail, load_workspace
from mosaic.errors import ConfigError, MosaicError


@click.command("edit")
@click.argument("name")
@dir_option
def edit_cmd(name, workspace_dir):
    """Use the local checkout of a project."""
    ws = load_workspace(workspace_dir)
    try:
        path = ws.project_dir(name)
    except MosaicError as e:
        fail(e)

    if path is None:
        fail(ConfigError(
            f"Project '{name}' has no local path",
            hint="Set 'path' for the project in workspace.yaml",
        ))
    if ws.local.is_editable(name):
        click.echo(f"Project '{name}' is already editable.", err=True)
        return
    if not path.exists():
        click.echo(f"Warning: {path} does not exist yet; clone it before building.", err=True)

    ws.local.mark_editable(name)
    ws.save_local()
    click.echo(f"✓ {name} is editable ({path})")


@click.command("unedit")
@click.argument("name")
@dir_option
def unedit_cmd(name, workspace_dir):
    """Go back to the locked revision of a project."""
    ws = load_workspace(workspace_dir)
    try:
        ws.config.project(name)
    except MosaicError as e:
        fail(e)

    ws.local.unmark_editable(name)
    ws.save_local()
    click.echo(f"✓ {name} uses its locked revision")
