"""
Tests for batch optimization and ZIP bundling.
"""

import asyncio
import io
import zipfile
from datetime import date

import pytest

from mediaopt.config.loader import OptimizerConfig
from mediaopt.imaging.batch import (
    BatchOutcome,
    archive_name,
    build_zip_archive,
    optimize_many,
)
from mediaopt.imaging.errors import DecodeError
from mediaopt.models.image import Dimensions, EncodeSettings, OptimizedResult, SourceImage
from mediaopt.validation import ConfigurationError


def _source(data: bytes, name: str, mime_type: str = "image/png") -> SourceImage:
    return SourceImage(data=data, mime_type=mime_type, name=name)


def _result(filename: str, data: bytes) -> OptimizedResult:
    return OptimizedResult(
        data=data,
        original_size=len(data) * 2,
        filename=filename,
        mime_type="image/jpeg",
        dimensions=Dimensions(1, 1),
    )


# ═══════════════════════════════════════════════════════════════════
# optimize_many
# ═══════════════════════════════════════════════════════════════════


class TestOptimizeMany:

    def test_mixed_outcomes_keep_input_order(self, make_png):
        sources = [
            _source(make_png(30, 30), "a.png"),
            _source(b"garbage", "b.png"),
            _source(make_png(40, 20), "c.png"),
        ]
        outcomes = asyncio.run(optimize_many(sources, EncodeSettings(format="webp")))
        try:
            assert [o.source.name for o in outcomes] == ["a.png", "b.png", "c.png"]
            assert [o.ok for o in outcomes] == [True, False, True]
            assert isinstance(outcomes[1].error, DecodeError)
            assert outcomes[0].result.filename == "optimized_a.webp"
            assert outcomes[2].result.dimensions == (40, 20)
        finally:
            for outcome in outcomes:
                if outcome.result:
                    outcome.result.release()

    def test_bounds_applied(self, make_png):
        sources = [_source(make_png(400, 300), "x.png")]
        outcomes = asyncio.run(
            optimize_many(sources, EncodeSettings(), max_width=200, max_height=200)
        )
        try:
            assert outcomes[0].result.dimensions == (200, 150)
        finally:
            outcomes[0].result.release()

    def test_dedicated_workers(self, make_png):
        sources = [_source(make_png(20, 20), f"{i}.png") for i in range(5)]
        outcomes = asyncio.run(optimize_many(sources, EncodeSettings(), workers=2))
        try:
            assert all(o.ok for o in outcomes)
        finally:
            for outcome in outcomes:
                outcome.result.release()

    def test_empty_batch(self):
        assert asyncio.run(optimize_many([], EncodeSettings())) == []

    def test_unexpected_error_releases_issued_handles(self, monkeypatch, make_png):
        from mediaopt.imaging import batch as batch_module

        issued = []
        real = batch_module.optimize_source

        async def flaky(source, settings, **kwargs):
            if source.name == "boom.png":
                raise RuntimeError("boom")
            result = await real(source, settings, **kwargs)
            issued.append(result)
            return result

        monkeypatch.setattr(batch_module, "optimize_source", flaky)
        sources = [_source(make_png(10, 10), "ok.png"), _source(make_png(10, 10), "boom.png")]

        with pytest.raises(RuntimeError, match="boom"):
            asyncio.run(optimize_many(sources, EncodeSettings()))
        assert issued and all(r.handle.released for r in issued)

    def test_broken_env_ignored_with_config_object(self, monkeypatch, make_png, tmp_path):
        monkeypatch.setenv("MEDIAOPT_QUALITY", "500")
        config = OptimizerConfig(max_width=20, max_height=20, preview_dir=str(tmp_path / "b"))
        sources = [_source(make_png(40, 40), "a.png"), _source(b"junk", "b.png")]

        outcomes = asyncio.run(optimize_many(sources, EncodeSettings(), config=config))
        try:
            assert outcomes[0].result.dimensions == (20, 20)
            assert outcomes[0].result.handle.path.parent == tmp_path / "b"
            assert isinstance(outcomes[1].error, DecodeError)
        finally:
            outcomes[0].result.release()

    def test_broken_env_raised_before_work(self, monkeypatch, make_png):
        monkeypatch.setenv("MEDIAOPT_QUALITY", "500")
        started = []

        async def record(source, settings, **kwargs):
            started.append(source.name)

        from mediaopt.imaging import batch as batch_module
        monkeypatch.setattr(batch_module, "optimize_source", record)

        with pytest.raises(ConfigurationError):
            asyncio.run(optimize_many([_source(make_png(5, 5), "a.png")], EncodeSettings()))
        assert started == []

    def test_outcome_ok_flag(self, make_png):
        outcome = BatchOutcome(source=_source(make_png(1, 1), "p.png"))
        assert outcome.ok is False


# ═══════════════════════════════════════════════════════════════════
# ZIP archives
# ═══════════════════════════════════════════════════════════════════


class TestZipArchive:

    def test_entries_match_results(self):
        archive = build_zip_archive([_result("optimized_a.jpg", b"AAA"), _result("optimized_b.jpg", b"BB")])
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            assert zf.namelist() == ["optimized_a.jpg", "optimized_b.jpg"]
            assert zf.read("optimized_a.jpg") == b"AAA"
            assert zf.getinfo("optimized_b.jpg").compress_type == zipfile.ZIP_DEFLATED

    def test_empty_archive_is_valid(self):
        with zipfile.ZipFile(io.BytesIO(build_zip_archive([]))) as zf:
            assert zf.namelist() == []

    def test_duplicate_names_warn(self):
        results = [_result("optimized_a.jpg", b"first"), _result("optimized_a.jpg", b"second")]
        with pytest.warns(UserWarning, match="Duplicate name"):
            archive = build_zip_archive(results)
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            assert len(zf.infolist()) == 2

    def test_archive_name(self):
        assert archive_name(date(2026, 10, 18)) == "optimized_images_2026-10-18.zip"

    def test_archive_name_defaults_to_today(self):
        assert archive_name() == f"optimized_images_{date.today().isoformat()}.zip"
