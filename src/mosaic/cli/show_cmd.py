"""
mosaic.cli.show_cmd — mosaic show command.

Prints an environment's merged output namespace as YAML.

  mosaic show                                  — every category
  mosaic show packages                         — one category, all platforms
  mosaic show packages -p x86_64-linux         — one platform
  mosaic show --env prod --names               — entry names only
"""

from pathlib import Path
from typing import Any

import click
import yaml

from mosaic.cli._common import dir_option, fail, load_workspace
from mosaic.errors import MosaicError
from mosaic.graph.evaluator import Lazy, ResolvedInstance
from mosaic.workspace.registry import merged_outputs, resolve


def _plain(value: Any) -> Any:
    """Turn artifacts into YAML-safe values."""
    if isinstance(value, ResolvedInstance):
        return str(value.out_path)
    if isinstance(value, Lazy):
        return f"<{value.label}>"
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)


def _names(section: dict[str, Any]) -> Any:
    """Keep categories and platforms, list entry names."""
    # entry keys are "project/name" or the synthesized "default"
    if section and all(isinstance(v, dict) and "/" not in k and k != "default"
                       for k, v in section.items()):
        return {k: _names(v) for k, v in section.items()}
    return sorted(section)


@click.command("show")
@click.argument("category", required=False)
@click.option("-e", "--env", "env_name", default=None,
              help="Environment (default: workspace default_env)")
@click.option("-p", "--platform", default=None,
              help="Platform for platform-scoped categories")
@click.option("--names", is_flag=True, default=False,
              help="Print entry names only")
@dir_option
def show_cmd(category, env_name, platform, names, workspace_dir):
    """Print merged outputs."""
    ws = load_workspace(workspace_dir)

    try:
        if category:
            data = merged_outputs(ws, env_name, category, platform)
        else:
            data = resolve(ws, env_name).outputs
    except MosaicError as e:
        fail(e)

    if names:
        data = _names(data)
    click.echo(yaml.dump(
        _plain(data),
        default_flow_style=False,
        sort_keys=True,
        allow_unicode=True,
    ), nl=False)
