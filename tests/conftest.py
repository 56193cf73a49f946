"""
Shared fixtures for mediaopt tests.

Every test runs with a clean MEDIAOPT_* environment, a fresh config
cache, and display handles written under the test's tmp_path.
"""

from __future__ import annotations

import io
import os
from pathlib import Path

import pytest
from PIL import Image

from mediaopt.config.loader import reset_config


@pytest.fixture(autouse=True)
def clean_config(monkeypatch, tmp_path: Path):
    """Isolate configuration from the developer's environment."""
    for key in list(os.environ):
        if key.startswith("MEDIAOPT_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("MEDIAOPT_PREVIEW_DIR", str(tmp_path / "previews"))
    reset_config()
    yield
    reset_config()


@pytest.fixture
def preview_dir(tmp_path: Path) -> Path:
    """Directory display handles are written to."""
    return tmp_path / "previews"


def encode_image(img: Image.Image, fmt: str = "PNG", **kwargs) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


@pytest.fixture
def make_png():
    """Factory for solid-colour RGB PNG bytes."""
    def _make(width: int, height: int, color=(255, 0, 0)) -> bytes:
        return encode_image(Image.new("RGB", (width, height), color))
    return _make


@pytest.fixture
def make_photo():
    """Factory for noisy RGB images that compress like photographs."""
    def _make(width: int, height: int, fmt: str = "PNG", **kwargs) -> bytes:
        noise = Image.effect_noise((width, height), 40).convert("RGB")
        gradient = Image.linear_gradient("L").resize((width, height)).convert("RGB")
        return encode_image(Image.blend(noise, gradient, 0.5), fmt, **kwargs)
    return _make


@pytest.fixture
def make_rgba_png():
    """Factory for an RGBA PNG whose left half is fully transparent."""
    def _make(width: int, height: int, color=(255, 0, 0, 255)) -> bytes:
        img = Image.new("RGBA", (width, height), color)
        img.paste((0, 0, 0, 0), (0, 0, width // 2, height))
        return encode_image(img)
    return _make
