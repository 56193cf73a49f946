"""
Video Optimizer — re-encode through an external ffmpeg process.

Pipeline (requires ffmpeg + ffprobe on PATH):
1. Probe the input for height and duration
2. Re-encode to H.264 (high profile) + AAC in an MP4 container
3. Cap resolution (default 1080p) and bitrate (default 1.5 Mbps)
4. Keep the result only if it is smaller than the input

Every failure path (ffmpeg missing, non-zero exit, timeout, no gain)
returns the original bytes with was_optimized=False.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from ..models.media import MediaResult
from .tools import run_tool, tool_available

logger = logging.getLogger(__name__)

VIDEO_MAX_HEIGHT = 1080    # px, max vertical resolution
VIDEO_BITRATE = "1500k"    # video bitrate cap
AUDIO_BITRATE = "96k"      # AAC audio bitrate
VIDEO_CRF = 28             # H.264 constant rate factor (18=high, 28=low)

MIN_TIMEOUT = 900          # 15 minutes
MAX_TIMEOUT = 14400        # 4 hours

VIDEO_EXTENSIONS = {
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
    "video/x-msvideo": ".avi",
    "video/x-matroska": ".mkv",
    "video/ogg": ".ogv",
    "video/3gpp": ".3gp",
}


def ext_for_video_mime(mime_type: str) -> str:
    """Map video MIME type to file extension."""
    return VIDEO_EXTENSIONS.get(mime_type, ".mp4")


def probe_video(path: Path) -> Optional[dict]:
    """Return height and duration of the first video stream, or None."""
    try:
        proc = run_tool(
            [
                "ffprobe", "-v", "error",
                "-select_streams", "v:0",
                "-show_entries", "stream=width,height:format=duration",
                "-of", "json",
                str(path),
            ],
            timeout=15,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"ffprobe failed: {e}")
        return None

    if proc.returncode != 0:
        return None

    try:
        info = json.loads(proc.stdout)
    except json.JSONDecodeError:
        return None

    streams = info.get("streams") or [{}]
    try:
        duration = float(info.get("format", {}).get("duration", 0))
    except (TypeError, ValueError):
        duration = 0.0
    return {
        "width": int(streams[0].get("width", 0) or 0),
        "height": int(streams[0].get("height", 0) or 0),
        "duration": duration,
    }


def encode_timeout(duration_sec: float, size_bytes: int) -> int:
    """
    Estimate an encode deadline in seconds.

    Assumes ~1.5x realtime when the duration is known, otherwise ~3
    minutes per 50 MB. Clamped to 15 minutes .. 4 hours.
    """
    if duration_sec > 0:
        estimate = int(duration_sec * 1.5)
    else:
        estimate = int(size_bytes / (1024 * 1024) / 50 * 180)
    return max(MIN_TIMEOUT, min(MAX_TIMEOUT, estimate))


def build_ffmpeg_command(
    in_path: Path,
    out_path: Path,
    *,
    source_height: int,
    max_height: int,
    crf: int,
    video_bitrate: str,
    audio_bitrate: str,
) -> list:
    cmd = [
        "ffmpeg", "-y", "-i", str(in_path),
        "-c:v", "libx264",
        "-preset", "fast",
        "-threads", "0",
        "-crf", str(crf),
        "-maxrate", video_bitrate,
        "-bufsize", "3M",
        "-profile:v", "high",
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-b:a", audio_bitrate,
        "-movflags", "+faststart",
    ]
    if source_height > max_height:
        # Keep aspect ratio, even width
        cmd.extend(["-vf", f"scale=-2:{max_height}"])
    cmd.append(str(out_path))
    return cmd


def optimize_video(
    data: bytes,
    mime_type: str,
    *,
    max_height: int = VIDEO_MAX_HEIGHT,
    crf: int = VIDEO_CRF,
    video_bitrate: str = VIDEO_BITRATE,
    audio_bitrate: str = AUDIO_BITRATE,
    timeout: Optional[int] = None,
) -> MediaResult:
    """
    Re-encode a video to H.264/AAC MP4.

    Args:
        data: Raw video bytes.
        mime_type: Original MIME type.
        max_height: Downscale anything taller than this.
        timeout: Encode deadline in seconds; estimated from duration if None.

    Returns:
        MediaResult — original bytes if ffmpeg is unavailable, fails,
        times out, or does not reduce the size.
    """
    original_size = len(data)
    in_ext = ext_for_video_mime(mime_type)
    unchanged = MediaResult(data, mime_type, in_ext, original_size)

    if not tool_available("ffmpeg"):
        logger.info("ffmpeg not available — keeping video as-is")
        return unchanged

    tmpdir = tempfile.mkdtemp(prefix="mediaopt_video_")
    try:
        in_path = Path(tmpdir) / f"input{in_ext}"
        out_path = Path(tmpdir) / "output.mp4"
        in_path.write_bytes(data)

        probe = probe_video(in_path) or {"height": 0, "duration": 0.0}
        deadline = timeout or encode_timeout(probe["duration"], original_size)

        cmd = build_ffmpeg_command(
            in_path,
            out_path,
            source_height=probe["height"],
            max_height=max_height,
            crf=crf,
            video_bitrate=video_bitrate,
            audio_bitrate=audio_bitrate,
        )
        logger.info(
            f"Starting video re-encode: {original_size / 1024 / 1024:.1f} MB, "
            f"height={probe['height'] or '?'}, timeout={deadline}s"
        )

        try:
            proc = run_tool(cmd, timeout=deadline)
        except subprocess.TimeoutExpired:
            logger.warning(f"ffmpeg video optimization timed out ({deadline}s)")
            return unchanged

        if proc.returncode != 0:
            logger.warning(
                f"ffmpeg video optimization failed (rc={proc.returncode}): "
                f"{proc.stderr[-500:]}"
            )
            return unchanged

        if not out_path.exists():
            logger.warning("ffmpeg produced no output file")
            return unchanged

        optimized = out_path.read_bytes()
        if len(optimized) >= original_size:
            logger.info(
                f"Video optimization did not reduce size "
                f"({original_size:,} → {len(optimized):,}), keeping original"
            )
            return unchanged

        pct = len(optimized) / original_size * 100
        logger.info(
            f"Video optimized: {original_size:,} → {len(optimized):,} bytes "
            f"({pct:.0f}%) [{mime_type} → video/mp4]"
        )
        return MediaResult(optimized, "video/mp4", ".mp4", original_size, True)

    except OSError as e:
        logger.warning(f"Video optimization error: {e}")
        return unchanged
    finally:
        shutil.rmtree(tmpdir, ignore_errors=True)
