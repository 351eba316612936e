"""
Final video assembly.

Joins an ordered list of clips into one video, either with hard cuts (concat
filter) or with fade cross-transitions (xfade for video, acrossfade for
audio). Every input is normalised to the output size, frame rate, pixel
format and audio layout first, so intro/outro files of any shape can be mixed
with generated segment clips.
"""

import math
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from redditreel.config import VideoConfig
from redditreel.errors import AssemblyError, FfmpegError
from redditreel.runlog import RunLog
from redditreel.video.ffmpeg import (
    MediaInfo,
    even,
    fmt_seconds,
    probe_media,
    run_ffmpeg,
    temp_sibling,
)

# A clip may give at most 1/2.01 (~49.75%) of its length to transitions
TRANSITION_SHARE_DIVISOR = 2.01
MIN_TRANSITION = 0.01

AUDIO_RATE = 44100


@dataclass
class TransitionPlan:
    duration: float | None                     # None means hard cuts
    offsets: list[float] = field(default_factory=list)

    @property
    def enabled(self) -> bool:
        return self.duration is not None


def plan_transitions(durations: list[float], target: float) -> TransitionPlan:
    """Work out the effective cross-fade length and each fade's start offset.

    The length is the target, shrunk so no clip loses more than ~half of
    itself, and floored to whole milliseconds. If that collapses to 10ms or
    less the plan falls back to hard cuts.
    """
    if len(durations) < 2 or target <= 0:
        return TransitionPlan(duration=None)

    safe = target
    for d in durations:
        safe = min(safe, d / TRANSITION_SHARE_DIVISOR)
    safe = math.floor(max(MIN_TRANSITION, safe) * 1000) / 1000
    if safe <= MIN_TRANSITION:
        return TransitionPlan(duration=None)

    offsets = []
    acc = 0.0
    for d in durations[:-1]:
        offsets.append(acc + d - safe)
        acc += d - safe
    return TransitionPlan(duration=safe, offsets=offsets)


def expected_duration(durations: list[float], plan: TransitionPlan) -> float:
    total = sum(durations)
    if plan.enabled:
        total -= (len(durations) - 1) * plan.duration
    return total


def build_normalize_graph(infos: list[MediaInfo], config: VideoConfig) -> list[str]:
    """Per-input filters producing [v{i}] / [a{i}] with uniform properties."""
    w, h = (even(v) for v in config.resolution)
    parts = []
    for i, info in enumerate(infos):
        parts.append(
            f"[{i}:v]scale={w}:{h}:force_original_aspect_ratio=decrease,"
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,fps={config.fps},setsar=1,format=yuv420p[v{i}]"
        )
        length = fmt_seconds(info.duration)
        if info.has_audio:
            parts.append(
                f"[{i}:a]aresample={AUDIO_RATE},"
                f"aformat=sample_fmts=fltp:channel_layouts=stereo,"
                f"apad,atrim=duration={length}[a{i}]"
            )
        else:
            parts.append(
                f"anullsrc=r={AUDIO_RATE}:cl=stereo,atrim=duration={length},"
                f"aformat=sample_fmts=fltp:channel_layouts=stereo[a{i}]"
            )
    return parts


def build_concat_graph(count: int) -> str:
    inputs = "".join(f"[v{i}][a{i}]" for i in range(count))
    return f"{inputs}concat=n={count}:v=1:a=1[vout][aout]"


def build_xfade_graph(plan: TransitionPlan) -> str:
    """Chain xfade/acrossfade over [v0..vN]/[a0..aN], ending in [vout]/[aout]."""
    t = fmt_seconds(plan.duration)
    last = len(plan.offsets) - 1
    video_label, audio_label = "[v0]", "[a0]"
    parts = []
    for i, offset in enumerate(plan.offsets):
        video_out = "[vout]" if i == last else f"[vtemp{i}]"
        audio_out = "[aout]" if i == last else f"[atemp{i}]"
        parts.append(
            f"{video_label}[v{i + 1}]xfade=transition=fade:duration={t}"
            f":offset={fmt_seconds(offset)}{video_out}"
        )
        parts.append(f"{audio_label}[a{i + 1}]acrossfade=d={t}{audio_out}")
        video_label, audio_label = video_out, audio_out
    return ";".join(parts)


def build_assembly_command(
    clips: list[Path],
    infos: list[MediaInfo],
    plan: TransitionPlan,
    output: Path,
    config: VideoConfig,
) -> list[str]:
    args = []
    for clip in clips:
        args += ["-i", str(clip)]
    join = build_xfade_graph(plan) if plan.enabled else build_concat_graph(len(clips))
    graph = ";".join(build_normalize_graph(infos, config) + [join])
    args += [
        "-filter_complex", graph,
        "-map", "[vout]",
        "-map", "[aout]",
        "-c:v", "libx264",
        "-preset", config.preset,
        "-b:v", config.video_bitrate,
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-b:a", config.audio_bitrate,
        "-ar", str(AUDIO_RATE),
        "-movflags", "+faststart",
        str(output),
    ]
    return args


class SequenceAssembler:
    def __init__(self, config: VideoConfig, log: RunLog | None = None):
        self.config = config
        self.log = log

    def _detail(self, message: str):
        if self.log is not None:
            self.log.detail(message)

    def assemble(self, clips: list[Path], output: Path) -> Path:
        """Join `clips` in order into `output`; raises AssemblyError."""
        clips = [Path(c) for c in clips]
        if not clips:
            raise AssemblyError("No clips to assemble")
        missing = [c for c in clips if not c.is_file()]
        if missing:
            raise AssemblyError(f"Clip not found: {missing[0]}")

        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        partial = temp_sibling(output)

        if len(clips) == 1:
            self._detail(f"Single clip, copying to {output.name}")
            try:
                shutil.copyfile(clips[0], partial)
                os.replace(partial, output)
            except OSError as e:
                partial.unlink(missing_ok=True)
                raise AssemblyError(f"Could not copy {clips[0].name}: {e}") from e
            return output

        infos = []
        for clip in clips:
            try:
                info = probe_media(clip)
            except FfmpegError as e:
                raise AssemblyError(str(e)) from e
            if info.duration <= 0:
                raise AssemblyError(f"Could not get a valid duration for {clip.name}")
            infos.append(info)
        durations = [info.duration for info in infos]

        target = self.config.transition_duration if self.config.enable_transitions else 0.0
        plan = plan_transitions(durations, target)
        if self.config.enable_transitions and not plan.enabled:
            if self.log is not None:
                self.log.warn("Clips too short for cross-fades, joining with hard cuts")
        elif plan.enabled:
            self._detail(f"Cross-fading {len(clips)} clips at {fmt_seconds(plan.duration)}s")
        else:
            self._detail(f"Concatenating {len(clips)} clips")

        args = build_assembly_command(clips, infos, plan, partial, self.config)
        try:
            run_ffmpeg(args)
            os.replace(partial, output)
        except (FfmpegError, OSError) as e:
            partial.unlink(missing_ok=True)
            output.unlink(missing_ok=True)
            raise AssemblyError(f"Could not assemble {output.name}: {e}") from e
        self._detail(
            f"Assembled {output.name}, expected length {expected_duration(durations, plan):.2f}s"
        )
        return output
