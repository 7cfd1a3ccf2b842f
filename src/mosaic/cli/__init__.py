"""
mosaic.cli — CLI entry point.

Commands:
  mosaic projects                 — List registered projects
  mosaic envs                     — List environments
  mosaic show [category] [flags]  — Print merged outputs of an environment
  mosaic check [flags]            — Validate lock graphs
  mosaic edit <project>           — Use the local checkout of a project
  mosaic unedit <project>         — Go back to the locked revision
"""

import logging

import click

from mosaic.cli.projects_cmd import projects_cmd
from mosaic.cli.envs_cmd import envs_cmd
from mosaic.cli.show_cmd import show_cmd
from mosaic.cli.check_cmd import check_cmd
from mosaic.cli.edit_cmd import edit_cmd, unedit_cmd


@click.group()
@click.version_option(package_name="mosaic")
@click.option("-v", "--verbose", is_flag=True, default=False,
              help="Debug logging")
def main(verbose):
    """mosaic — multi-project workspaces over lock graphs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


main.add_command(projects_cmd, "projects")
main.add_command(envs_cmd, "envs")
main.add_command(show_cmd, "show")
main.add_command(check_cmd, "check")
main.add_command(edit_cmd, "edit")
main.add_command(unedit_cmd, "unedit")
