"""
Config Loader — Load optimizer settings from a master key or individual env vars.

Supports two modes:
1. Master JSON key: Single MEDIAOPT_CONFIG env var with every setting
2. Individual keys: Separate MEDIAOPT_* env vars (fallback)

## Usage

    # Option 1: Master config
    export MEDIAOPT_CONFIG='{"max_dimensions": "uhd", "quality": 75, "format": "webp"}'

    # Option 2: Individual keys
    export MEDIAOPT_MAX_DIMENSIONS=uhd
    export MEDIAOPT_QUALITY=75

The loader reads the master config first, then fills anything it left
unset from individual keys.

## Maximum dimensions

Two bounds have been used for the image pipeline over time: 1920x1080
and 3840x2160. The default is "hd" (1920x1080). Set
MEDIAOPT_MAX_DIMENSIONS=uhd for 3840x2160, or MEDIAOPT_MAX_WIDTH /
MEDIAOPT_MAX_HEIGHT for arbitrary bounds (these win over the preset).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from ..media.pdf import PDF_PRESETS
from ..models.image import QUALITY_PRESETS, OutputFormat
from ..validation import DEFAULT_MAX_FILE_SIZE, ConfigurationError

logger = logging.getLogger(__name__)

ENV_VAR = "MEDIAOPT_CONFIG"

DIMENSION_PRESETS: Dict[str, Tuple[int, int]] = {
    "hd": (1920, 1080),
    "uhd": (3840, 2160),
}
DEFAULT_DIMENSION_PRESET = "hd"

DEFAULT_QUALITY = QUALITY_PRESETS["high"]
DEFAULT_FORMAT = OutputFormat.JPEG.value


@dataclass
class OptimizerConfig:
    """All optimizer settings in one place."""

    # Image pipeline
    max_width: int = DIMENSION_PRESETS[DEFAULT_DIMENSION_PRESET][0]
    max_height: int = DIMENSION_PRESETS[DEFAULT_DIMENSION_PRESET][1]
    quality: int = DEFAULT_QUALITY
    format: str = DEFAULT_FORMAT
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    preview_dir: Optional[str] = None
    workers: Optional[int] = None

    # Video (ffmpeg)
    video_max_height: int = 1080
    video_crf: int = 28
    video_bitrate: str = "1500k"
    audio_bitrate: str = "96k"

    # PDF (ghostscript)
    pdf_preset: str = "ebook"

    @property
    def max_dimensions(self) -> Tuple[int, int]:
        return self.max_width, self.max_height

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Expected an integer, got {value!r}")


def _str(value: Any) -> str:
    return str(value).strip()


# (field, env var, parser)
_FIELDS: Tuple[Tuple[str, str, Callable[[Any], Any]], ...] = (
    ("max_width", "MEDIAOPT_MAX_WIDTH", _int),
    ("max_height", "MEDIAOPT_MAX_HEIGHT", _int),
    ("quality", "MEDIAOPT_QUALITY", _int),
    ("format", "MEDIAOPT_FORMAT", _str),
    ("max_file_size", "MEDIAOPT_MAX_FILE_SIZE", _int),
    ("preview_dir", "MEDIAOPT_PREVIEW_DIR", _str),
    ("workers", "MEDIAOPT_WORKERS", _int),
    ("video_max_height", "MEDIAOPT_VIDEO_MAX_HEIGHT", _int),
    ("video_crf", "MEDIAOPT_VIDEO_CRF", _int),
    ("video_bitrate", "MEDIAOPT_VIDEO_BITRATE", _str),
    ("audio_bitrate", "MEDIAOPT_AUDIO_BITRATE", _str),
    ("pdf_preset", "MEDIAOPT_PDF_PRESET", _str),
)


def load_config() -> OptimizerConfig:
    """
    Load configuration from the master key and individual env vars.

    Priority:
    1. MEDIAOPT_CONFIG (master JSON)
    2. Individual MEDIAOPT_* environment variables
    3. Built-in defaults

    Raises:
        ConfigurationError: A value is malformed or out of range.
    """
    values: Dict[str, Any] = {}

    master_config = os.environ.get(ENV_VAR)
    if master_config:
        try:
            data = json.loads(master_config)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid {ENV_VAR} JSON: {e}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"{ENV_VAR} must be a JSON object")
        values = _parse_master_config(data)
        logger.info(f"Loaded configuration from {ENV_VAR}")

    values = _load_individual_vars(values)
    config = OptimizerConfig(**values)
    _validate(config)
    return config


def _apply_dimension_preset(name: Any, values: Dict[str, Any]) -> None:
    preset = str(name).strip().lower()
    if preset not in DIMENSION_PRESETS:
        raise ConfigurationError(
            f"Unknown max_dimensions preset {name!r} "
            f"(expected one of {', '.join(DIMENSION_PRESETS)})"
        )
    width, height = DIMENSION_PRESETS[preset]
    values.setdefault("max_width", width)
    values.setdefault("max_height", height)


def _parse_master_config(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse master config JSON (lower or upper case keys) into field values."""
    values: Dict[str, Any] = {}
    for key, env_name, parse in _FIELDS:
        raw = data.get(key, data.get(env_name))
        if raw is not None and raw != "":
            values[key] = parse(raw)

    preset = data.get("max_dimensions") or data.get("MEDIAOPT_MAX_DIMENSIONS")
    if preset:
        _apply_dimension_preset(preset, values)
    return values


def _load_individual_vars(existing: Dict[str, Any]) -> Dict[str, Any]:
    """Fill values the master config left unset from individual env vars."""
    values = dict(existing)
    for key, env_name, parse in _FIELDS:
        raw = os.environ.get(env_name)
        if key not in values and raw:
            values[key] = parse(raw)

    preset = os.environ.get("MEDIAOPT_MAX_DIMENSIONS")
    if preset:
        _apply_dimension_preset(preset, values)
    return values


def _validate(config: OptimizerConfig) -> None:
    if config.max_width <= 0 or config.max_height <= 0:
        raise ConfigurationError(
            f"Maximum dimensions must be positive, got "
            f"{config.max_width}x{config.max_height}"
        )
    if not 1 <= config.quality <= 100:
        raise ConfigurationError(f"quality must be within 1-100, got {config.quality}")
    if config.format.lower() not in {f.value for f in OutputFormat} | {"jpg"}:
        raise ConfigurationError(f"Unsupported default format {config.format!r}")
    if config.max_file_size <= 0:
        raise ConfigurationError("max_file_size must be positive")
    if config.workers is not None and config.workers <= 0:
        raise ConfigurationError("workers must be positive")
    if config.pdf_preset not in PDF_PRESETS:
        raise ConfigurationError(
            f"Unknown pdf_preset {config.pdf_preset!r} "
            f"(expected one of {', '.join(PDF_PRESETS)})"
        )


# Global config instance (loaded on first access)
_config: Optional[OptimizerConfig] = None


def get_config() -> OptimizerConfig:
    """Get the global configuration (loads on first access)."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration; the next get_config() reloads."""
    global _config
    _config = None
