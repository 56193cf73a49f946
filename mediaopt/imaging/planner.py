"""
Dimension Planner — fit source dimensions inside a bounding box.

Scaling is isotropic and never enlarges. Width is clamped first, then the
resulting height is re-checked and may override the first pass. This
two-step clamp can land one axis a pixel under its maximum because both
passes round; that result is kept as-is.
"""

from __future__ import annotations

import math

from ..models.image import Dimensions


def _round_half_up(value: float) -> int:
    # Half rounds toward +inf, unlike round()'s banker's rounding
    return int(math.floor(value + 0.5))


def plan(
    source_width: int,
    source_height: int,
    max_width: int,
    max_height: int,
) -> Dimensions:
    """
    Compute output dimensions for a source image.

    Args:
        source_width: Decoded image width (> 0).
        source_height: Decoded image height (> 0).
        max_width: Maximum allowed output width (> 0).
        max_height: Maximum allowed output height (> 0).

    Returns:
        Dimensions(width, height) — the source unchanged when it already
        fits, otherwise scaled down with the aspect ratio preserved.
    """
    if source_width <= max_width and source_height <= max_height:
        return Dimensions(source_width, source_height)

    aspect_ratio = source_width / source_height
    width, height = source_width, source_height

    if width > max_width:
        width = max_width
        height = _round_half_up(width / aspect_ratio)

    if height > max_height:
        height = max_height
        width = _round_half_up(height * aspect_ratio)

    return Dimensions(width, height)
