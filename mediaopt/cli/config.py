"""
CLI config commands — show the effective configuration.

Usage:
    python -m mediaopt config-status [--json]
"""

from __future__ import annotations

import json

import click

from ..config.loader import ENV_VAR
from ..media.tools import tool_available


@click.command("config-status")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def config_status(ctx: click.Context, as_json: bool) -> None:
    """Show the effective optimizer configuration."""
    config = ctx.obj["config"]
    values = config.to_dict()

    if as_json:
        click.echo(json.dumps(values, indent=2))
        return

    click.echo()
    click.secho("⚙  mediaopt configuration", bold=True)
    click.echo(f"   (from {ENV_VAR} / MEDIAOPT_* environment variables)")
    click.echo()
    for key, value in values.items():
        shown = "(default)" if value is None else value
        click.echo(f"  {key:<18} {shown}")

    click.echo()
    click.echo("External tools:")
    for tool in ("ffmpeg", "ffprobe", "gs"):
        if tool_available(tool):
            click.secho(f"  ✅ {tool}", fg="green")
        else:
            click.secho(f"  ❌ {tool} (not on PATH)", fg="yellow")
    click.echo()
