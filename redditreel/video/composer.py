"""
Segment clip composition.

One clip = looped background video + centred caption card + narration
(optionally mixed with looped background music). The clip is exactly as long
as the narration: every other input loops and the encoder cuts at -t.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from redditreel.config import VideoConfig
from redditreel.errors import ComposeError, FfmpegError
from redditreel.runlog import RunLog
from redditreel.video.ffmpeg import (
    even,
    fmt_seconds,
    probe_media,
    run_ffmpeg,
    temp_sibling,
)

IMAGE_FRAMERATE = 25

# Largest share of the frame the card may cover
CARD_MAX_WIDTH_RATIO = 0.9
CARD_MAX_HEIGHT_RATIO = 0.8


@dataclass(frozen=True)
class Clip:
    path: Path
    duration: float


def mix_dropout(duration: float) -> float:
    """amix dropout_transition for a narration of `duration` seconds."""
    return max(0.01, min(0.1, duration / 10))


def build_clip_filter_graph(
    width: int,
    height: int,
    duration: float,
    music_volume: float | None = None,
) -> str:
    """filter_complex for inputs 0=background, 1=card, 2=narration[, 3=music].

    Produces [vout] and [aout_final]. Music is mixed only when music_volume
    is given.
    """
    w, h = even(width), even(height)
    parts = [
        f"[0:v]scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,setsar=1[bg]",
        f"[1:v]scale='iw*min(1,min({w}*{CARD_MAX_WIDTH_RATIO}/iw,{h}*{CARD_MAX_HEIGHT_RATIO}/ih))':-1,"
        f"format=rgba[fg]",
        "[bg][fg]overlay=(W-w)/2:(H-h)/2[vout]",
    ]
    if music_volume is not None:
        parts.append(
            f"[3:a]volume={fmt_seconds(music_volume)},aloop=loop=-1:size=2000000000[bgm_looped]"
        )
        parts.append(
            "[2:a][bgm_looped]amix=inputs=2:duration=first:"
            f"dropout_transition={fmt_seconds(mix_dropout(duration))}[aout_final]"
        )
    else:
        parts.append("[2:a]anull[aout_final]")
    return ";".join(parts)


def build_clip_command(
    background: Path,
    image: Path,
    narration: Path,
    output: Path,
    duration: float,
    config: VideoConfig,
    music: Path | None = None,
) -> list[str]:
    """ffmpeg arguments (without the binary) for one segment clip."""
    width, height = config.resolution
    args = [
        "-stream_loop", "-1", "-i", str(background),
        "-loop", "1", "-framerate", str(IMAGE_FRAMERATE), "-i", str(image),
        "-i", str(narration),
    ]
    if music is not None:
        args += ["-stream_loop", "-1", "-i", str(music)]
    graph = build_clip_filter_graph(
        width, height, duration, config.music_volume if music is not None else None,
    )
    args += [
        "-filter_complex", graph,
        "-map", "[vout]",
        "-map", "[aout_final]",
        "-t", fmt_seconds(duration),
        "-r", str(config.fps),
        "-c:v", "libx264",
        "-preset", config.preset,
        "-b:v", config.video_bitrate,
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-b:a", config.audio_bitrate,
        "-movflags", "+faststart",
        str(output),
    ]
    return args


class ClipComposer:
    def __init__(self, config: VideoConfig, log: RunLog | None = None):
        self.config = config
        self.log = log

    def _music(self) -> Path | None:
        music = self.config.background_music
        if music is None or self.config.music_volume <= 0:
            return None
        if not Path(music).is_file():
            if self.log is not None:
                self.log.warn(f"Background music not found, narration only: {music}")
            return None
        return Path(music)

    def compose(self, image: Path, narration: Path, output: Path) -> Clip:
        """Render one clip; raises ComposeError and leaves no file at `output` on failure."""
        background = self.config.background_video
        for label, path in (("background video", background), ("card image", image), ("narration", narration)):
            if path is None or not Path(path).is_file():
                raise ComposeError(f"Missing {label}: {path}")

        try:
            duration = probe_media(narration).duration
        except FfmpegError as e:
            raise ComposeError(f"Could not measure narration {Path(narration).name}: {e}") from e
        if duration <= 0:
            raise ComposeError(f"Narration {Path(narration).name} has no measurable duration")

        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        partial = temp_sibling(output)
        args = build_clip_command(
            background, image, narration, partial, duration, self.config, music=self._music(),
        )
        if self.log is not None:
            self.log.detail(f"Encoding {output.name} ({duration:.2f}s)")
        try:
            run_ffmpeg(args)
            os.replace(partial, output)
        except (FfmpegError, OSError) as e:
            partial.unlink(missing_ok=True)
            output.unlink(missing_ok=True)
            raise ComposeError(f"Could not compose {output.name}: {e}") from e
        return Clip(path=output, duration=duration)
