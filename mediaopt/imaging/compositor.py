"""
Compositor — flatten a surface onto an opaque white canvas at target size.

The white base layer means transparent regions come out white instead
of black once the result is written to a format without alpha. The
source is resampled with Lanczos.
"""

from __future__ import annotations

from typing import Tuple

from PIL import Image

from ..models.image import Dimensions
from .errors import InvalidDimensionsError
from .raster import PixelSurface

BACKGROUND: Tuple[int, int, int] = (255, 255, 255)
RESAMPLE = Image.Resampling.LANCZOS


def compose(surface: PixelSurface, target: Dimensions) -> PixelSurface:
    """
    Draw ``surface`` scaled to exactly fill ``target`` over opaque white.

    The source surface is left untouched; the caller still owns it.

    Returns:
        A new RGB PixelSurface of size ``target``.

    Raises:
        InvalidDimensionsError: Either target axis is zero or negative.
    """
    width, height = target
    if width <= 0 or height <= 0:
        raise InvalidDimensionsError(
            f"Target dimensions must be positive, got {width}x{height}",
            {"width": width, "height": height},
        )

    canvas = Image.new("RGB", (width, height), BACKGROUND)

    source = surface.image
    if source.mode != "RGBA":
        source = source.convert("RGBA")

    try:
        if source.size != (width, height):
            scaled = source.resize((width, height), RESAMPLE)
            if source is not surface.image:
                source.close()
            source = scaled

        canvas.paste(source, (0, 0), mask=source.getchannel("A"))
    finally:
        if source is not surface.image:
            source.close()

    return PixelSurface(canvas)
