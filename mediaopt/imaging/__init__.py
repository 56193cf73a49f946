"""
Imaging — the raster optimization pipeline.
"""

from .batch import BatchOutcome, archive_name, build_zip_archive, optimize_many
from .compositor import compose
from .encoder import encode, resolve_format
from .errors import (
    DecodeError,
    EncodeError,
    InvalidDimensionsError,
    OptimizationError,
    UnsupportedFormatError,
)
from .handles import DisplayHandle
from .pipeline import optimize, optimize_source, suggested_filename
from .planner import plan
from .raster import PixelSurface, decode

__all__ = [
    "plan",
    "decode",
    "compose",
    "encode",
    "resolve_format",
    "optimize",
    "optimize_source",
    "optimize_many",
    "suggested_filename",
    "build_zip_archive",
    "archive_name",
    "BatchOutcome",
    "DisplayHandle",
    "PixelSurface",
    "OptimizationError",
    "DecodeError",
    "InvalidDimensionsError",
    "UnsupportedFormatError",
    "EncodeError",
]
