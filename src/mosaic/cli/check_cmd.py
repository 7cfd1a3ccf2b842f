"""
mosaic.cli.check_cmd — mosaic check command.

Validates every environment's lock graph: follow paths terminate, and
every registered project is either locked or editable.
"""

import sys

import click

from mosaic.cli._common import dir_option, load_workspace
from mosaic.errors import MosaicError
from mosaic.graph.follows import check_follows


@click.command("check")
@click.option("-e", "--env", "env_name", default=None,
              help="Only check this environment")
@dir_option
def check_cmd(env_name, workspace_dir):
    """Validate lock graphs."""
    ws = load_workspace(workspace_dir)
    names = [env_name] if env_name else ws.config.environment_names()

    problems = 0
    for name in names:
        try:
            graph = ws.lock(name)
            check_follows(graph)
        except MosaicError as e:
            click.echo(f"✗ {name}: {e}", err=True)
            problems += 1
            continue

        unlocked = [
            p.name for p in ws.config.projects
            if p.name not in graph.nodes and not ws.local.is_editable(p.name)
        ]
        for project in unlocked:
            click.echo(f"✗ {name}: project '{project}' is not locked", err=True)
        problems += len(unlocked)

        if not unlocked:
            click.echo(f"✓ {name}")

    if problems:
        sys.exit(1)
