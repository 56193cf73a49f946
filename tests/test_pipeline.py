"""
Tests for the pipeline orchestrator.

Tests cover:
- End-to-end optimize() for each output format
- Bounds from config, env vars and arguments
- Error propagation without leaking display handles
- Concurrency and cancellation
- Result filenames
"""

import asyncio
import io
import threading
from pathlib import Path

import pytest
from PIL import Image

from mediaopt.config.loader import OptimizerConfig
from mediaopt.imaging import pipeline as pipeline_module
from mediaopt.imaging.errors import (
    DecodeError,
    InvalidDimensionsError,
    UnsupportedFormatError,
)
from mediaopt.imaging.pipeline import (
    StageCancelled,
    optimize,
    optimize_source,
    run_pipeline,
    suggested_filename,
)
from mediaopt.models.image import Dimensions, EncodeSettings, OutputFormat, SourceImage
from mediaopt.validation import ConfigurationError


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def _run(coro):
    return asyncio.run(coro)


# ═══════════════════════════════════════════════════════════════════
# optimize() end to end
# ═══════════════════════════════════════════════════════════════════


class TestOptimize:

    def test_downscales_to_default_bounds(self, make_photo):
        result = _run(optimize(make_photo(4000, 3000), "big.png", 80, "jpeg"))
        try:
            assert result.dimensions == (1440, 1080)
            assert result.mime_type == "image/jpeg"
            assert result.filename == "optimized_big.jpg"
            assert _open(result.data).size == (1440, 1080)
        finally:
            result.release()

    def test_small_image_keeps_size(self, make_png):
        result = _run(optimize(make_png(300, 200), "small.png", 80))
        try:
            assert result.dimensions == (300, 200)
            assert result.original_size > 0
        finally:
            result.release()

    def test_bounds_from_arguments(self, make_png):
        result = _run(
            optimize(make_png(4000, 3000), "a.png", 80, max_width=3840, max_height=2160)
        )
        try:
            assert result.dimensions == (2880, 2160)
        finally:
            result.release()

    def test_bounds_from_env_preset(self, monkeypatch, make_png):
        monkeypatch.setenv("MEDIAOPT_MAX_DIMENSIONS", "uhd")
        result = _run(optimize(make_png(4000, 3000), "a.png", 80))
        try:
            assert result.dimensions == (2880, 2160)
        finally:
            result.release()

    def test_transparency_flattened_to_white(self, make_rgba_png):
        result = _run(optimize(make_rgba_png(40, 40), "logo.png", 90, "png"))
        try:
            img = _open(result.data)
            assert img.mode == "RGB"
            assert img.getpixel((2, 20)) == (255, 255, 255)
        finally:
            result.release()

    def test_webp_output(self, make_rgba_png):
        result = _run(optimize(make_rgba_png(40, 40), "logo.png", 75, OutputFormat.WEBP))
        try:
            assert result.mime_type == "image/webp"
            assert result.filename == "optimized_logo.webp"
            img = _open(result.data)
            assert img.format == "WEBP"
            assert img.mode == "RGB"
        finally:
            result.release()

    @pytest.mark.parametrize("quality", [0, -20, 150, 1000])
    def test_out_of_range_quality_clamped(self, make_png, quality):
        result = _run(optimize(make_png(20, 20), "q.png", quality, "jpeg"))
        try:
            assert result.data.startswith(b"\xff\xd8")
        finally:
            result.release()

    def test_handle_holds_result_bytes(self, make_png, preview_dir):
        result = _run(optimize(make_png(50, 50), "h.png", 80, "png"))
        handle = result.handle
        assert handle is not None
        assert handle.path.parent == preview_dir
        assert handle.path.read_bytes() == result.data
        assert handle.uri.startswith("file://")
        assert handle.mime_type == "image/png"

        result.release()
        assert handle.released
        assert not handle.path.exists()
        result.release()

    def test_explicit_preview_dir(self, make_png, tmp_path):
        target = tmp_path / "elsewhere"
        result = _run(optimize(make_png(10, 10), "x.png", 80, preview_dir=str(target)))
        try:
            assert result.handle.path.parent == target
        finally:
            result.release()

    def test_reoptimizing_does_not_grow(self, make_photo):
        first = _run(optimize(make_photo(800, 600, "JPEG", quality=90), "p.jpg", 80))
        second = _run(optimize(first.data, "p.jpg", 80))
        try:
            assert second.size <= first.size * 1.05
        finally:
            first.release()
            second.release()

    def test_optimize_source(self, make_png):
        source = SourceImage(data=make_png(30, 30), mime_type="image/png", name="s.png")
        settings = EncodeSettings(quality=60, format="webp")
        result = _run(optimize_source(source, settings))
        try:
            assert result.filename == "optimized_s.webp"
            assert result.original_size == source.byte_length
        finally:
            result.release()


# ═══════════════════════════════════════════════════════════════════
# Explicit configuration
# ═══════════════════════════════════════════════════════════════════


class TestExplicitConfig:
    """optimize() reads the environment only for settings it was not given."""

    def test_explicit_arguments_ignore_broken_env(self, monkeypatch, make_png, tmp_path):
        monkeypatch.setenv("MEDIAOPT_QUALITY", "500")
        monkeypatch.setenv("MEDIAOPT_PDF_PRESET", "foo")

        result = _run(optimize(
            make_png(400, 200), "x.png", 80, "jpeg",
            max_width=100, max_height=100, preview_dir=str(tmp_path / "h"),
        ))
        try:
            assert result.dimensions == (100, 50)
            assert result.handle.path.parent == tmp_path / "h"
        finally:
            result.release()

    def test_config_object_supplies_defaults(self, monkeypatch, make_png, tmp_path):
        monkeypatch.setenv("MEDIAOPT_QUALITY", "500")
        config = OptimizerConfig(max_width=200, max_height=200, preview_dir=str(tmp_path / "c"))

        result = _run(optimize(make_png(800, 400), "y.png", 80, config=config))
        try:
            assert result.dimensions == (200, 100)
            assert result.handle.path.parent == tmp_path / "c"
        finally:
            result.release()

    def test_arguments_win_over_config_object(self, make_png):
        config = OptimizerConfig(max_width=200, max_height=200)
        result = _run(optimize(make_png(800, 400), "z.png", 80, max_width=400, config=config))
        try:
            assert result.dimensions == (400, 200)
        finally:
            result.release()

    def test_missing_default_loads_global_config(self, monkeypatch, make_png):
        monkeypatch.setenv("MEDIAOPT_QUALITY", "500")
        with pytest.raises(ConfigurationError):
            _run(optimize(make_png(10, 10), "w.png", 80, max_width=100))


# ═══════════════════════════════════════════════════════════════════
# Failures
# ═══════════════════════════════════════════════════════════════════


class TestOptimizeErrors:

    def _handles(self, preview_dir: Path):
        return list(preview_dir.glob("mediaopt_*")) if preview_dir.exists() else []

    def test_corrupt_source(self, preview_dir):
        with pytest.raises(DecodeError):
            _run(optimize(b"not an image", "broken.png", 80))
        assert self._handles(preview_dir) == []

    def test_svg_source(self, preview_dir):
        with pytest.raises(DecodeError):
            _run(optimize(b"<svg/>", "icon.svg", 80))
        assert self._handles(preview_dir) == []

    def test_unsupported_format(self, make_png, preview_dir):
        with pytest.raises(UnsupportedFormatError):
            _run(optimize(make_png(10, 10), "a.png", 80, "bmp"))
        assert self._handles(preview_dir) == []

    def test_degenerate_aspect(self, make_png, preview_dir):
        with pytest.raises(InvalidDimensionsError):
            _run(optimize(make_png(10000, 1), "line.png", 80))
        assert self._handles(preview_dir) == []

    def test_surfaces_closed_on_success_and_failure(self, monkeypatch, make_png):
        opened = []
        real_decode = pipeline_module.decode
        real_compose = pipeline_module.compose

        def tracking_decode(*args):
            surface = real_decode(*args)
            opened.append(surface)
            return surface

        def tracking_compose(*args):
            surface = real_compose(*args)
            opened.append(surface)
            return surface

        monkeypatch.setattr(pipeline_module, "decode", tracking_decode)
        monkeypatch.setattr(pipeline_module, "compose", tracking_compose)

        settings = EncodeSettings(quality=80, format="png")
        run_pipeline(make_png(40, 40), "image/png", settings, Dimensions(20, 20))
        assert len(opened) == 2
        assert all(s.closed for s in opened)

        opened.clear()
        with pytest.raises(InvalidDimensionsError):
            run_pipeline(make_png(10000, 1), "image/png", settings, Dimensions(1920, 1080))
        assert len(opened) == 1
        assert opened[0].closed


# ═══════════════════════════════════════════════════════════════════
# Concurrency and cancellation
# ═══════════════════════════════════════════════════════════════════


class TestConcurrency:

    def test_concurrent_calls_are_independent(self, make_png):
        colors = [(255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0)]

        async def run_all():
            return await asyncio.gather(
                *(
                    optimize(make_png(64, 48, color), f"img{i}.png", 90, "png")
                    for i, color in enumerate(colors)
                )
            )

        results = _run(run_all())
        try:
            for i, (result, color) in enumerate(zip(results, colors)):
                assert result.filename == f"optimized_img{i}.png"
                assert _open(result.data).getpixel((10, 10)) == color
            assert len({r.handle.path for r in results}) == len(colors)
        finally:
            for result in results:
                result.release()

    def test_cancel_event_stops_worker(self, make_png):
        cancel = threading.Event()
        cancel.set()
        settings = EncodeSettings()
        with pytest.raises(StageCancelled):
            run_pipeline(make_png(10, 10), "image/png", settings, Dimensions(10, 10), cancel)

    def test_cancelled_task_issues_no_handle(self, make_photo, preview_dir):
        data = make_photo(2000, 1500)

        async def start_and_cancel():
            task = asyncio.ensure_future(optimize(data, "big.png", 80))
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        _run(start_and_cancel())
        assert not preview_dir.exists() or list(preview_dir.iterdir()) == []


# ═══════════════════════════════════════════════════════════════════
# suggested_filename
# ═══════════════════════════════════════════════════════════════════


class TestSuggestedFilename:

    @pytest.mark.parametrize(
        "original,fmt,expected",
        [
            ("photo.png", "jpeg", "optimized_photo.jpg"),
            ("photo.png", "webp", "optimized_photo.webp"),
            ("holiday.final.PNG", "png", "optimized_holiday.png"),
            ("dir/sub/cat.gif", "jpeg", "optimized_cat.jpg"),
            ("C:\\Users\\me\\dog.bmp", "png", "optimized_dog.png"),
            (".hidden", "jpeg", "optimized_image.jpg"),
            ("noext", OutputFormat.WEBP, "optimized_noext.webp"),
        ],
    )
    def test_names(self, original, fmt, expected):
        assert suggested_filename(original, fmt) == expected
