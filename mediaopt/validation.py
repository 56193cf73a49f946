"""
Validation — Input validation and error handling utilities.

Checks a file against the application's allowlist before it is handed
to an optimizer. These checks are stricter than the pipeline itself:
the pipeline decodes whatever Pillow can read, while the application
only accepts the types listed here.

## Usage

    from mediaopt.validation import validate_source, ValidationError

    try:
        validate_source(data, "image/png")
    except ValidationError as e:
        print(f"Rejected: {e}")
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Dict, Optional, Union

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

# SVG is accepted here but the rasterizer refuses it
SUPPORTED_IMAGE_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/svg+xml",
}

SUPPORTED_VIDEO_TYPES = {
    "video/mp4",
    "video/webm",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
    "video/ogg",
    "video/3gpp",
}

_EXTRA_TYPES = {
    ".webp": "image/webp",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".mkv": "video/x-matroska",
}

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB", "TB", "PB"]


class ValidationError(Exception):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        self.message = message
        self.field = field
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid."""
    pass


def guess_mime_type(filename: Union[str, Path]) -> str:
    """Guess a MIME type from a file name; unknown types map to octet-stream."""
    suffix = Path(str(filename)).suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(str(filename))
    return guessed or "application/octet-stream"


def validate_source(
    data: bytes,
    mime_type: str,
    max_size: Optional[int] = DEFAULT_MAX_FILE_SIZE,
    allowed_types=SUPPORTED_IMAGE_TYPES,
) -> None:
    """
    Validate an uploaded payload against the allowlist and size limit.

    Raises:
        ValidationError: Empty payload, too large, or type not allowed.
    """
    if not data:
        raise ValidationError("File is empty", field="data")

    if max_size is not None and len(data) > max_size:
        raise ValidationError(
            f"File is too large ({format_file_size(len(data))}, "
            f"limit {format_file_size(max_size)})",
            field="data",
            details={"size": len(data), "max_size": max_size},
        )

    if mime_type not in allowed_types:
        raise ValidationError(
            f"Unsupported file type: {mime_type}",
            field="mime_type",
            details={"allowed": sorted(allowed_types)},
        )


def validate_image_file(path: Path, max_size: int = DEFAULT_MAX_FILE_SIZE) -> bytes:
    """Read ``path`` and validate it as an image upload. Returns the bytes."""
    if not path.exists():
        raise ValidationError(f"File does not exist: {path}")
    if not path.is_file():
        raise ValidationError(f"Not a file: {path}")

    try:
        data = path.read_bytes()
    except OSError as e:
        raise ValidationError(f"File cannot be read: {e}")

    validate_source(data, guess_mime_type(path), max_size)
    return data


def format_file_size(size_bytes: int, decimals: int = 2) -> str:
    """
    Convert a byte count to a human-readable string.

        >>> format_file_size(0)
        '0 Bytes'
        >>> format_file_size(1536)
        '1.5 KB'
    """
    if size_bytes <= 0:
        return "0 Bytes"

    value = float(size_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1

    text = f"{value:.{max(0, decimals)}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[unit]}"
