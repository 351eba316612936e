"""
FFmpeg process boundary.

Every encode goes through run_ffmpeg(), a blocking subprocess call that
returns only after the process has exited. The binary is the one moviepy
resolves (imageio-ffmpeg's bundled build unless FFMPEG_BINARY is set), and
media inspection reuses moviepy's ffmpeg output parser.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path

from moviepy.config import FFMPEG_BINARY
from moviepy.video.io.ffmpeg_reader import ffmpeg_parse_infos

from redditreel.errors import FfmpegError

# Keep this many trailing characters of stderr in error messages
STDERR_TAIL = 1500


@dataclass(frozen=True)
class MediaInfo:
    duration: float
    has_audio: bool
    width: int | None = None
    height: int | None = None


def ffmpeg_binary() -> str:
    return FFMPEG_BINARY


def ffmpeg_version() -> str:
    """First line of `ffmpeg -version`; raises FfmpegError if not callable."""
    try:
        result = subprocess.run(
            [ffmpeg_binary(), "-hide_banner", "-version"],
            capture_output=True, text=True, timeout=30,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise FfmpegError(f"ffmpeg is not callable: {e}") from e
    if result.returncode != 0:
        raise FfmpegError(f"ffmpeg -version exited with {result.returncode}")
    return (result.stdout.splitlines() or ["ffmpeg"])[0]


def run_ffmpeg(args: list[str]) -> None:
    """Run ffmpeg with `args` (everything after the binary) to completion."""
    cmd = [ffmpeg_binary(), "-hide_banner", "-nostdin", "-y", *[str(a) for a in args]]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise FfmpegError(f"Could not start ffmpeg: {e}") from e
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise FfmpegError(
            f"ffmpeg exited with code {result.returncode}: {stderr[-STDERR_TAIL:]}"
        )


def probe_media(path: Path) -> MediaInfo:
    """Read duration and stream presence of a media file."""
    path = Path(path)
    if not path.is_file():
        raise FfmpegError(f"Media file not found: {path}")
    try:
        infos = ffmpeg_parse_infos(str(path))
    except (OSError, IndexError, KeyError, ValueError) as e:
        raise FfmpegError(f"Could not probe {path.name}: {e}") from e

    size = infos.get("video_size") or (None, None)
    return MediaInfo(
        duration=float(infos.get("duration") or 0.0),
        has_audio=bool(infos.get("audio_found")),
        width=size[0],
        height=size[1],
    )


def even(value: int) -> int:
    """Round up to the next even number (yuv420p needs even dimensions)."""
    value = int(value)
    return value if value % 2 == 0 else value + 1


def fmt_seconds(value: float) -> str:
    """Format seconds for filter arguments: millisecond precision, no trailing zeros."""
    text = f"{float(value):.3f}".rstrip("0").rstrip(".")
    return text or "0"


def temp_sibling(path: Path) -> Path:
    """Temporary path next to `path` with the same suffix, for write-then-rename."""
    path = Path(path)
    return path.with_name(f".{path.stem}.partial{path.suffix}")
