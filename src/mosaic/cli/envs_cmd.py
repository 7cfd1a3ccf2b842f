"""mosaic.cli.envs_cmd — mosaic envs command."""

import click

from mosaic.cli._common import dir_option, load_workspace
from mosaic.errors import MosaicError


@click.command("envs")
@dir_option
def envs_cmd(workspace_dir):
    """List environments and their pins."""
    ws = load_workspace(workspace_dir)
    default = ws.config.default_env

    click.echo(f"{'':2s}{'NAME':<15} {'STRATEGY':<20} {'LOCKED'}")
    click.echo(f"{'':2s}{'─' * 15} {'─' * 20} {'─' * 30}")
    for env in ws.config.environments:
        marker = "* " if env.name == default else "  "
        try:
            locked = ", ".join(sorted(ws.lock(env.name).dependencies())) or "-"
        except MosaicError as e:
            locked = f"✗ {e.message}"
        strategy = env.strategy.kind
        if env.strategy.argument:
            strategy += f" ({env.strategy.argument})"
        click.echo(f"{marker}{env.name:<15} {strategy:<20} {locked}")
