"""
PDF Optimizer — re-distill through Ghostscript.

Uses a Ghostscript PDFSETTINGS preset (default /ebook), which keeps text
readable while downsampling embedded images. The result is kept only if
it is smaller than the input.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from ..models.media import MediaResult
from .tools import run_tool, tool_available

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
PDF_PRESETS = ("screen", "ebook", "printer", "prepress")
DEFAULT_PRESET = "ebook"
GS_TIMEOUT = 120


def optimize_pdf(
    data: bytes,
    *,
    preset: str = DEFAULT_PRESET,
    timeout: int = GS_TIMEOUT,
) -> MediaResult:
    """
    Optimize a PDF with Ghostscript (if available).

    Args:
        data: Raw PDF bytes.
        preset: One of screen, ebook, printer, prepress.

    Returns:
        MediaResult — original bytes if gs is unavailable, fails, or
        does not reduce the size.

    Raises:
        ValueError: Unknown preset.
    """
    if preset not in PDF_PRESETS:
        raise ValueError(
            f"Unknown PDF preset {preset!r} (expected one of {', '.join(PDF_PRESETS)})"
        )

    original_size = len(data)
    unchanged = MediaResult(data, PDF_MIME, ".pdf", original_size)

    if not tool_available("gs"):
        logger.info("ghostscript (gs) not available — keeping PDF as-is")
        return unchanged

    tmpdir = tempfile.mkdtemp(prefix="mediaopt_pdf_")
    try:
        in_path = Path(tmpdir) / "input.pdf"
        out_path = Path(tmpdir) / "output.pdf"
        in_path.write_bytes(data)

        cmd = [
            "gs", "-sDEVICE=pdfwrite",
            "-dCompatibilityLevel=1.4",
            f"-dPDFSETTINGS=/{preset}",
            "-dNOPAUSE", "-dBATCH", "-dQUIET",
            f"-sOutputFile={out_path}",
            str(in_path),
        ]

        try:
            proc = run_tool(cmd, timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Ghostscript PDF optimization timed out ({timeout}s)")
            return unchanged

        if proc.returncode != 0 or not out_path.exists():
            logger.warning(f"Ghostscript failed (rc={proc.returncode}): {proc.stderr[-500:]}")
            return unchanged

        optimized = out_path.read_bytes()
        if len(optimized) >= original_size:
            logger.info(
                f"PDF optimization did not reduce size "
                f"({original_size:,} → {len(optimized):,}), keeping original"
            )
            return unchanged

        pct = len(optimized) / original_size * 100
        logger.info(
            f"PDF optimized: {original_size:,} → {len(optimized):,} bytes "
            f"({pct:.0f}%, /{preset})"
        )
        return MediaResult(optimized, PDF_MIME, ".pdf", original_size, True)

    except OSError as e:
        logger.warning(f"PDF optimization error: {e}")
        return unchanged
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)
