"""
CLI optimize commands — images, video and PDF.

Usage:
    python -m mediaopt optimize FILES... [--quality Q] [--format F] [--zip]
    python -m mediaopt video FILE [--output-dir DIR]
    python -m mediaopt pdf FILE [--preset ebook] [--output-dir DIR]
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional, Tuple

import click

from ..config.loader import DIMENSION_PRESETS, OptimizerConfig
from ..media.pdf import PDF_PRESETS
from ..models.image import EncodeSettings, SourceImage, resolve_quality
from ..validation import (
    SUPPORTED_VIDEO_TYPES,
    ValidationError,
    format_file_size,
    guess_mime_type,
    validate_image_file,
    validate_source,
)


def _resolve_bounds(
    config: OptimizerConfig,
    preset: Optional[str],
    max_width: Optional[int],
    max_height: Optional[int],
) -> Tuple[int, int]:
    width, height = config.max_dimensions
    if preset:
        width, height = DIMENSION_PRESETS[preset]
    return max_width or width, max_height or height


def _print_row(name: str, before: int, after: int) -> None:
    pct = (before - after) / before * 100 if before else 0.0
    color = "green" if after < before else "yellow"
    click.echo(f"  {name:<36} {format_file_size(before):>12} → ", nl=False)
    click.secho(f"{format_file_size(after):>12}  ({pct:+.1f}% saved)", fg=color)


@click.command("optimize")
@click.argument(
    "files", nargs=-1, required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--quality", "-q", default=None, help="1-100 or low|medium|high|best")
@click.option(
    "--format", "-f", "fmt", default=None,
    type=click.Choice(["jpeg", "jpg", "png", "webp"], case_sensitive=False),
    help="Output format",
)
@click.option(
    "--max-dimensions", "preset", default=None,
    type=click.Choice(sorted(DIMENSION_PRESETS)),
    help="Bounding box preset (hd=1920x1080, uhd=3840x2160)",
)
@click.option("--max-width", type=click.IntRange(min=1), default=None)
@click.option("--max-height", type=click.IntRange(min=1), default=None)
@click.option(
    "--output-dir", "-o", default=".",
    type=click.Path(file_okay=False, path_type=Path),
    help="Where results are written",
)
@click.option("--zip", "as_zip", is_flag=True, help="Write one ZIP archive instead of files")
@click.pass_context
def optimize_images(
    ctx: click.Context,
    files: Tuple[Path, ...],
    quality: Optional[str],
    fmt: Optional[str],
    preset: Optional[str],
    max_width: Optional[int],
    max_height: Optional[int],
    output_dir: Path,
    as_zip: bool,
) -> None:
    """Resize and re-encode images."""
    from ..imaging.batch import archive_name, build_zip_archive, optimize_many

    config: OptimizerConfig = ctx.obj["config"]

    try:
        quality_percent = resolve_quality(quality if quality is not None else config.quality)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--quality")

    settings = EncodeSettings(quality=quality_percent, format=fmt or config.format)
    width, height = _resolve_bounds(config, preset, max_width, max_height)

    failures: List[Tuple[str, str]] = []
    sources: List[SourceImage] = []
    for path in files:
        try:
            data = validate_image_file(path, config.max_file_size)
        except ValidationError as e:
            failures.append((path.name, str(e)))
            continue
        sources.append(SourceImage(data=data, mime_type=guess_mime_type(path), name=path.name))

    click.echo()
    click.secho(
        f"⚙  Optimizing {len(sources)} image(s): {settings.format} q={settings.quality}, "
        f"max {width}x{height}",
        bold=True,
    )
    click.echo()

    outcomes = asyncio.run(
        optimize_many(
            sources,
            settings,
            max_width=width,
            max_height=height,
            preview_dir=config.preview_dir,
            workers=config.workers,
            config=config,
        )
    ) if sources else []

    results = []
    for outcome in outcomes:
        if outcome.result is None:
            failures.append((outcome.source.name, str(outcome.error)))
            continue
        results.append(outcome.result)

    output_dir.mkdir(parents=True, exist_ok=True)
    try:
        if as_zip and results:
            target = output_dir / archive_name()
            target.write_bytes(build_zip_archive(results))
            for result in results:
                _print_row(result.filename, result.original_size, result.size)
            click.echo()
            click.secho(f"✓ Wrote {target}", fg="green")
        else:
            for result in results:
                (output_dir / result.filename).write_bytes(result.data)
                _print_row(result.filename, result.original_size, result.size)
    finally:
        for result in results:
            result.release()

    if results:
        before = sum(r.original_size for r in results)
        after = sum(r.size for r in results)
        click.echo()
        click.echo(
            f"  Total: {format_file_size(before)} → {format_file_size(after)} "
            f"({len(results)} optimized)"
        )

    if failures:
        click.echo()
        for name, message in failures:
            click.secho(f"  ✗ {name}: {message}", fg="red")
        ctx.exit(1)


@click.command("video")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--output-dir", "-o", default=".",
    type=click.Path(file_okay=False, path_type=Path),
)
@click.pass_context
def optimize_video_cmd(ctx: click.Context, file: Path, output_dir: Path) -> None:
    """Re-encode a video to H.264/AAC MP4 with ffmpeg."""
    from ..media.video import optimize_video

    config: OptimizerConfig = ctx.obj["config"]
    mime_type = guess_mime_type(file)
    data = file.read_bytes()
    try:
        validate_source(data, mime_type, max_size=None, allowed_types=SUPPORTED_VIDEO_TYPES)
    except ValidationError as e:
        raise click.ClickException(str(e))

    result = optimize_video(
        data,
        mime_type,
        max_height=config.video_max_height,
        crf=config.video_crf,
        video_bitrate=config.video_bitrate,
        audio_bitrate=config.audio_bitrate,
    )
    _write_media_result(file, result, output_dir)


@click.command("pdf")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--preset", type=click.Choice(PDF_PRESETS), default=None)
@click.option(
    "--output-dir", "-o", default=".",
    type=click.Path(file_okay=False, path_type=Path),
)
@click.pass_context
def optimize_pdf_cmd(ctx: click.Context, file: Path, preset: Optional[str], output_dir: Path) -> None:
    """Re-distill a PDF with Ghostscript."""
    from ..media.pdf import PDF_MIME, optimize_pdf

    config: OptimizerConfig = ctx.obj["config"]
    data = file.read_bytes()
    try:
        validate_source(data, guess_mime_type(file), max_size=None, allowed_types={PDF_MIME})
    except ValidationError as e:
        raise click.ClickException(str(e))

    result = optimize_pdf(data, preset=preset or config.pdf_preset)
    _write_media_result(file, result, output_dir)


def _write_media_result(source: Path, result, output_dir: Path) -> None:
    if not result.was_optimized:
        click.secho(
            f"  {source.name}: no reduction ({format_file_size(result.original_size)}), "
            f"nothing written",
            fg="yellow",
        )
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    target = output_dir / f"optimized_{source.name.split('.')[0]}{result.extension}"
    target.write_bytes(result.data)
    _print_row(target.name, result.original_size, result.size)
    click.secho(f"✓ Wrote {target}", fg="green")
