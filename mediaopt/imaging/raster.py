"""
Rasterizer — decode image bytes into a pixel surface.

The returned PixelSurface owns a fully loaded Pillow image and must be
closed by whoever holds it. Decoding never leaves an open file handle
behind, whether it succeeds or fails.
"""

from __future__ import annotations

import io
import logging
import warnings
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError

logger = logging.getLogger(__name__)

VECTOR_MIME_TYPES = {"image/svg+xml"}


class PixelSurface:
    """An addressable grid of pixels backed by a Pillow image."""

    def __init__(self, image: Image.Image):
        self._image: Optional[Image.Image] = image

    @property
    def image(self) -> Image.Image:
        if self._image is None:
            raise ValueError("PixelSurface has been released")
        return self._image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> tuple:
        return self.image.size

    @property
    def has_alpha(self) -> bool:
        image = self.image
        return "A" in image.getbands() or "transparency" in image.info

    @property
    def closed(self) -> bool:
        return self._image is None

    def close(self) -> None:
        if self._image is not None:
            self._image.close()
            self._image = None

    def __enter__(self) -> "PixelSurface":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._image is None:
            return "PixelSurface(released)"
        return f"PixelSurface({self.width}x{self.height}, mode={self._image.mode})"


def decode(data: bytes, declared_mime_type: str) -> PixelSurface:
    """
    Decode an encoded raster image.

    Animated formats yield their first frame. EXIF orientation is applied,
    so a rotated camera photo decodes upright.

    Args:
        data: Encoded image bytes.
        declared_mime_type: MIME type reported by the caller.

    Returns:
        A loaded PixelSurface.

    Raises:
        DecodeError: Empty input, vector content, corrupt data, or a codec
            Pillow does not support.
    """
    if not data:
        raise DecodeError("Image payload is empty", {"mime_type": declared_mime_type})

    if declared_mime_type in VECTOR_MIME_TYPES:
        raise DecodeError(
            "Vector images cannot be rasterized by this pipeline",
            {"mime_type": declared_mime_type},
        )

    image: Optional[Image.Image] = None
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            image = Image.open(io.BytesIO(data))
            image.load()

        detected = Image.MIME.get(image.format or "", "")
        if detected and declared_mime_type and detected != declared_mime_type:
            logger.debug(
                f"Declared {declared_mime_type} but content is {detected}"
            )

        ImageOps.exif_transpose(image, in_place=True)

        return PixelSurface(image)

    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        Image.DecompressionBombWarning,
        OSError,
        ValueError,
        SyntaxError,
    ) as e:
        if image is not None:
            image.close()
        raise DecodeError(
            f"Failed to load image: {e}",
            {"mime_type": declared_mime_type, "size": len(data)},
        ) from e
