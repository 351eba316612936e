import io
from pathlib import Path

import pytest
from rich.console import Console

from redditreel.reddit import Comment, Post
from redditreel.runlog import RunLog
from redditreel.video.ffmpeg import MediaInfo


class FixedMetrics:
    """Every character is `char_width` wide, every line `height` tall."""

    def __init__(self, char_width: float = 10.0, height: float = 10.0):
        self.char_width = char_width
        self.height = height

    def text_width(self, text: str) -> float:
        return len(text) * self.char_width

    def line_height(self) -> float:
        return self.height


class FfmpegRecorder:
    """Stands in for run_ffmpeg: records argument lists and writes the output file."""

    def __init__(self):
        self.calls: list[list[str]] = []
        self.fail = False

    def __call__(self, args):
        from redditreel.errors import FfmpegError

        self.calls.append([str(a) for a in args])
        if self.fail:
            raise FfmpegError("ffmpeg exited with code 1: boom")
        Path(args[-1]).write_bytes(b"fake mp4")

    def graph(self, call: int = -1) -> str:
        args = self.calls[call]
        return args[args.index("-filter_complex") + 1]


@pytest.fixture
def metrics():
    return FixedMetrics()


@pytest.fixture
def log():
    console = Console(file=io.StringIO(), width=200)
    return RunLog(console=console)


@pytest.fixture
def ffmpeg(monkeypatch):
    recorder = FfmpegRecorder()
    monkeypatch.setattr("redditreel.video.composer.run_ffmpeg", recorder)
    monkeypatch.setattr("redditreel.video.assembler.run_ffmpeg", recorder)
    return recorder


@pytest.fixture
def durations(monkeypatch):
    """Map of file name -> MediaInfo served to probe_media in composer and assembler."""
    table: dict[str, MediaInfo] = {}

    def fake_probe(path):
        return table.get(Path(path).name, MediaInfo(duration=2.0, has_audio=True))

    monkeypatch.setattr("redditreel.video.composer.probe_media", fake_probe)
    monkeypatch.setattr("redditreel.video.assembler.probe_media", fake_probe)
    return table


def make_post(**overrides) -> Post:
    fields = dict(
        id="abc123",
        subreddit="AskReddit",
        title="What is the best advice you ever got?",
        author="someone",
        score=500,
        selftext="",
        num_comments=120,
        created_utc=1_700_000_000.0,
        permalink="/r/AskReddit/comments/abc123/what_is/",
        url="https://www.reddit.com/r/AskReddit/comments/abc123/what_is/",
    )
    fields.update(overrides)
    return Post(**fields)


def make_comment(**overrides) -> Comment:
    fields = dict(
        id="c1",
        author="commenter",
        body="Always save a little of every paycheck.",
        score=50,
    )
    fields.update(overrides)
    return Comment(**fields)
