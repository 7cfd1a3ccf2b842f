"""mosaic.cli.projects_cmd — mosaic projects command."""

import click

from mosaic.cli._common import dir_option, load_workspace
from mosaic.workspace.registry import list_projects


@click.command("projects")
@dir_option
def projects_cmd(workspace_dir):
    """List registered projects."""
    ws = load_workspace(workspace_dir)
    projects = list_projects(ws.config)

    if not projects:
        click.echo("No projects registered.")
        return

    click.echo(f"{'NAME':<20} {'MODE':<9} {'PATH':<30} {'URL'}")
    click.echo("─" * 90)
    for project in sorted(projects, key=lambda p: p.name):
        mode = "editable" if ws.local.is_editable(project.name) else "locked"
        click.echo(
            f"{project.name:<20} {mode:<9} {project.path or '-':<30} {project.url}"
        )
