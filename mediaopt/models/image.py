"""
Image Models — the values passed between pipeline stages.

SourceImage and EncodeSettings are validated Pydantic models; the
result carries a live display handle and is a plain dataclass.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

if TYPE_CHECKING:
    from ..imaging.handles import DisplayHandle


MIN_QUALITY = 1
MAX_QUALITY = 100

QUALITY_PRESETS = {
    "low": 30,
    "medium": 60,
    "high": 80,
    "best": 95,
}


def resolve_quality(value: Union[int, str]) -> int:
    """
    Turn a preset name ("low", "medium", "high", "best") or a number into
    a quality percentage clamped to 1–100.

    Raises:
        ValueError: Neither a preset nor an integer.
    """
    if isinstance(value, str):
        key = value.strip().lower()
        if key in QUALITY_PRESETS:
            return QUALITY_PRESETS[key]
        try:
            value = int(key)
        except ValueError:
            raise ValueError(
                f"Unknown quality {value!r} "
                f"(use 1-100 or one of {', '.join(QUALITY_PRESETS)})"
            ) from None
    return max(MIN_QUALITY, min(MAX_QUALITY, int(value)))


class Dimensions(NamedTuple):
    """Pixel size of a surface."""

    width: int
    height: int


class OutputFormat(str, Enum):
    """Formats the encoder can produce."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return "jpg" if self is OutputFormat.JPEG else self.value

    @property
    def pil_format(self) -> str:
        return self.value.upper()


class SourceImage(BaseModel):
    """An input file as handed over by the caller."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str
    name: str = "image"

    @property
    def byte_length(self) -> int:
        return len(self.data)


class EncodeSettings(BaseModel):
    """Quality and output format for one optimization."""

    quality: int = QUALITY_PRESETS["high"]
    format: str = OutputFormat.JPEG.value

    @field_validator("quality", mode="before")
    @classmethod
    def clamp_quality(cls, value: object) -> int:
        quality = int(value)  # type: ignore[call-overload]
        return max(MIN_QUALITY, min(MAX_QUALITY, quality))

    @property
    def quality_factor(self) -> float:
        return self.quality / 100


@dataclass
class OptimizedResult:
    """Output of a successful pipeline run."""

    data: bytes
    original_size: int
    filename: str
    mime_type: str
    dimensions: Dimensions
    handle: Optional["DisplayHandle"] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def bytes_saved(self) -> int:
        return self.original_size - self.size

    @property
    def reduction_percent(self) -> float:
        if self.original_size <= 0:
            return 0.0
        return (self.bytes_saved / self.original_size) * 100

    def release(self) -> None:
        """Release the display handle, if one was issued."""
        if self.handle is not None:
            self.handle.release()
