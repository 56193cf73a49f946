"""
Pipeline errors — one exception per failing stage.

Every error raised by the image pipeline derives from OptimizationError,
so callers can catch the whole family or a single stage.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class OptimizationError(Exception):
    """Base class for image pipeline failures."""

    stage: str = "pipeline"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DecodeError(OptimizationError):
    """Source bytes could not be parsed as a raster image."""

    stage = "decode"


class InvalidDimensionsError(OptimizationError):
    """A target surface would have zero or negative size."""

    stage = "compose"


class UnsupportedFormatError(OptimizationError):
    """Requested output format is not one of jpeg, png, webp."""

    stage = "encode"


class EncodeError(OptimizationError):
    """The encoder backend refused to produce output."""

    stage = "encode"
