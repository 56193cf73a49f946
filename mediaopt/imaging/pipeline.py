"""
Pipeline Orchestrator — decode, plan, compose and encode one image.

    result = await optimize(data, "photo.png", 80, "webp")
    try:
        show(result.handle.uri)
    finally:
        result.release()

The blocking stages run on a thread-pool executor, so any number of
optimize() calls can be in flight on one event loop. Calls share no
mutable state. Cancelling the awaiting task stops the worker at the next
stage boundary; a stage that has started always runs to completion.

Every intermediate PixelSurface is closed before the call returns. A
failed call raises the failing stage's error and issues no display
handle.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Executor
from pathlib import PurePath
from typing import Optional, Tuple, Union

from ..config.loader import OptimizerConfig, get_config
from ..models.image import (
    Dimensions,
    EncodeSettings,
    OptimizedResult,
    OutputFormat,
    SourceImage,
)
from ..validation import guess_mime_type
from .compositor import compose
from .encoder import encode, resolve_format
from .handles import DisplayHandle
from .planner import plan
from .raster import decode

logger = logging.getLogger(__name__)

OUTPUT_PREFIX = "optimized_"


class StageCancelled(Exception):
    """Raised inside the worker when the awaiting task was cancelled."""


def suggested_filename(original_filename: str, fmt: Union[str, OutputFormat]) -> str:
    """
    Build ``optimized_<base>.<ext>`` for a result.

    ``base`` is the file name (directories dropped) up to its first dot,
    so ``holiday.final.png`` becomes ``optimized_holiday.jpg``.
    """
    output_format = resolve_format(fmt)
    name = PurePath(original_filename.replace("\\", "/")).name
    # dotfiles have an empty base; "image" stands in so the name is never "optimized_.jpg"
    base = name.split(".")[0] or "image"
    return f"{OUTPUT_PREFIX}{base}.{output_format.extension}"


def _resolve_defaults(
    config: Optional[OptimizerConfig],
    max_width: Optional[int],
    max_height: Optional[int],
    preview_dir: Optional[str],
) -> Tuple[Dimensions, Optional[str]]:
    """Fill unset bounds and preview dir, loading the global config only if needed."""
    if config is None and (not max_width or not max_height or preview_dir is None):
        config = get_config()
    if config is not None:
        max_width = max_width or config.max_width
        max_height = max_height or config.max_height
        preview_dir = preview_dir if preview_dir is not None else config.preview_dir
    return Dimensions(max_width, max_height), preview_dir


def _check_cancelled(cancel: Optional[threading.Event], stage: str) -> None:
    if cancel is not None and cancel.is_set():
        raise StageCancelled(stage)


def run_pipeline(
    data: bytes,
    mime_type: str,
    settings: EncodeSettings,
    max_dimensions: Dimensions,
    cancel: Optional[threading.Event] = None,
) -> Tuple[bytes, Dimensions, OutputFormat]:
    """
    Run every stage synchronously on the calling thread.

    Returns:
        (encoded bytes, output dimensions, output format)
    """
    output_format = resolve_format(settings.format)

    _check_cancelled(cancel, "decode")
    with decode(data, mime_type) as source:
        _check_cancelled(cancel, "plan")
        target = plan(source.width, source.height, *max_dimensions)

        _check_cancelled(cancel, "compose")
        with compose(source, target) as canvas:
            source.close()

            _check_cancelled(cancel, "encode")
            encoded = encode(canvas, output_format, settings.quality)

    logger.debug(
        f"Pipeline finished: {target.width}x{target.height} "
        f"{output_format.mime_type}",
    )
    return encoded, target, output_format


async def optimize(
    source_bytes: bytes,
    original_filename: str,
    quality_percent: int,
    fmt: Union[str, OutputFormat] = OutputFormat.JPEG,
    *,
    mime_type: Optional[str] = None,
    max_width: Optional[int] = None,
    max_height: Optional[int] = None,
    preview_dir: Optional[str] = None,
    executor: Optional[Executor] = None,
    config: Optional[OptimizerConfig] = None,
) -> OptimizedResult:
    """
    Optimize one image.

    Args:
        source_bytes: Encoded source image.
        original_filename: Name the result filename is derived from.
        quality_percent: 1–100, clamped.
        fmt: "jpeg", "png" or "webp" (MIME types also accepted).
        mime_type: Declared source type; guessed from the filename if None.
        max_width / max_height: Bounds override; defaults come from config.
        preview_dir: Where the display handle file is created.
        executor: Executor for the blocking stages (default loop executor).
        config: Supplies unset bounds and preview_dir. When None, the
            global config is loaded only if one of them is missing.

    Returns:
        OptimizedResult with a live display handle the caller must release.

    Raises:
        DecodeError, InvalidDimensionsError, UnsupportedFormatError,
        EncodeError: From the failing stage.
    """
    settings = EncodeSettings(quality=quality_percent, format=str(getattr(fmt, "value", fmt)))
    declared = mime_type or guess_mime_type(original_filename)
    bounds, preview_dir = _resolve_defaults(config, max_width, max_height, preview_dir)
    extra = {"media_name": original_filename}

    cancel = threading.Event()
    loop = asyncio.get_running_loop()
    try:
        encoded, target, output_format = await loop.run_in_executor(
            executor, run_pipeline, source_bytes, declared, settings, bounds, cancel,
        )
    except asyncio.CancelledError:
        cancel.set()
        logger.info(f"Optimization cancelled for {original_filename}", extra=extra)
        raise
    except Exception as e:
        logger.warning(
            f"Optimization failed for {original_filename}: {e}",
            extra={**extra, "stage": getattr(e, "stage", "pipeline")},
        )
        raise

    filename = suggested_filename(original_filename, output_format)
    handle = DisplayHandle.create(
        encoded,
        output_format.mime_type,
        suffix=f".{output_format.extension}",
        directory=preview_dir,
    )

    result = OptimizedResult(
        data=encoded,
        original_size=len(source_bytes),
        filename=filename,
        mime_type=output_format.mime_type,
        dimensions=target,
        handle=handle,
    )

    pct = result.size / result.original_size * 100 if result.original_size else 0
    logger.info(
        f"Optimized: {original_filename} ({declared}) → {filename} "
        f"{target.width}x{target.height} q={settings.quality}: "
        f"{result.original_size:,} → {result.size:,} bytes ({pct:.0f}%)",
        extra=extra,
    )
    return result


async def optimize_source(
    source: SourceImage,
    settings: EncodeSettings,
    **kwargs,
) -> OptimizedResult:
    """Optimize a SourceImage with prepared EncodeSettings."""
    return await optimize(
        source.data,
        source.name,
        settings.quality,
        settings.format,
        mime_type=source.mime_type,
        **kwargs,
    )
