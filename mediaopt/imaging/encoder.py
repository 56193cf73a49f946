"""
Encoder — serialize a composited surface to JPEG, PNG or WebP bytes.

Quality arrives as a percentage, is normalized to a 0.0–1.0 factor, and
is mapped back onto Pillow's 0–100 quality scale. PNG is lossless and
ignores the factor.
"""

from __future__ import annotations

import io
import logging
from typing import Any, Dict, Union

from ..models.image import OutputFormat
from .errors import EncodeError, UnsupportedFormatError
from .raster import PixelSurface

logger = logging.getLogger(__name__)

_FORMAT_ALIASES = {
    "jpeg": OutputFormat.JPEG,
    "jpg": OutputFormat.JPEG,
    "image/jpeg": OutputFormat.JPEG,
    "image/jpg": OutputFormat.JPEG,
    "png": OutputFormat.PNG,
    "image/png": OutputFormat.PNG,
    "webp": OutputFormat.WEBP,
    "image/webp": OutputFormat.WEBP,
}

WEBP_METHOD = 4  # compression effort (0-6)


def resolve_format(fmt: Union[str, OutputFormat]) -> OutputFormat:
    """Map a format name or MIME type onto an OutputFormat."""
    if isinstance(fmt, OutputFormat):
        return fmt
    key = (fmt or "").strip().lower()
    try:
        return _FORMAT_ALIASES[key]
    except KeyError:
        raise UnsupportedFormatError(
            f"Unsupported output format: {fmt!r}",
            {"supported": sorted({f.value for f in OutputFormat})},
        ) from None


def quality_factor(quality_percent: float) -> float:
    """Normalize a 0–100 quality percentage to a 0.0–1.0 factor."""
    return max(0.0, min(1.0, quality_percent / 100))


def _save_options(fmt: OutputFormat, factor: float) -> Dict[str, Any]:
    quality = int(round(factor * 100))
    if fmt is OutputFormat.JPEG:
        return {"quality": quality, "optimize": True}
    if fmt is OutputFormat.WEBP:
        return {"quality": quality, "method": WEBP_METHOD}
    return {"optimize": True}


def encode(
    surface: PixelSurface,
    fmt: Union[str, OutputFormat],
    quality_percent: float,
) -> bytes:
    """
    Encode ``surface`` to ``fmt`` at ``quality_percent``.

    Raises:
        UnsupportedFormatError: ``fmt`` is not jpeg, png or webp.
        EncodeError: Zero-area surface, or Pillow failed to write.
    """
    output_format = resolve_format(fmt)

    if surface.width <= 0 or surface.height <= 0:
        raise EncodeError(
            f"Cannot encode a zero-area surface ({surface.width}x{surface.height})"
        )

    image = surface.image
    if output_format is OutputFormat.JPEG and image.mode not in ("RGB", "L"):
        raise EncodeError(f"JPEG cannot store mode {image.mode}; composite first")

    options = _save_options(output_format, quality_factor(quality_percent))
    buf = io.BytesIO()
    try:
        image.save(buf, format=output_format.pil_format, **options)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(
            f"{output_format.pil_format} encoder failed: {e}",
            {"format": output_format.value},
        ) from e

    encoded = buf.getvalue()
    if not encoded:
        raise EncodeError(f"{output_format.pil_format} encoder produced no output")

    logger.debug(
        f"Encoded {surface.width}x{surface.height} → {output_format.mime_type} "
        f"({len(encoded):,} bytes, options={options})"
    )
    return encoded
