"""
mediaopt — CLI Entry Point

Usage:
    python -m mediaopt optimize photo.png banner.jpg --format webp --quality 75
    python -m mediaopt optimize *.png --zip --max-dimensions uhd
    python -m mediaopt video clip.mov
    python -m mediaopt pdf report.pdf --preset screen
    python -m mediaopt config-status
"""

from __future__ import annotations

# Load .env file FIRST, before anything reads MEDIAOPT_* variables
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

from typing import Optional

import click

from . import __version__
from .cli.config import config_status
from .cli.optimize import optimize_images, optimize_pdf_cmd, optimize_video_cmd
from .config.loader import get_config
from .logging_config import setup_logging
from .validation import ConfigurationError


@click.group()
@click.version_option(__version__, prog_name="mediaopt")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
@click.option("--log-format", type=click.Choice(["text", "json"]), default=None)
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], log_format: Optional[str]) -> None:
    """mediaopt — optimize images, video and PDFs."""
    setup_logging(level=log_level, format_type=log_format)

    try:
        config = get_config()
    except ConfigurationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    ctx.ensure_object(dict)
    ctx.obj["config"] = config


cli.add_command(optimize_images)
cli.add_command(optimize_video_cmd)
cli.add_command(optimize_pdf_cmd)
cli.add_command(config_status)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
