"""
Per-post video pipeline.

For each selected post, strictly in order:

    title -> self-text pages -> comments   (one narrated clip per segment)
    intro + segment clips + outro          -> assemble
    ledger.record                          (before any upload attempt)
    upload                                 (skipped in testing mode)
    cleanup of this post's intermediates

A failing segment is logged and skipped; a post with no segment clips ends
without output. Nothing here raises for a per-post problem: each post yields
a PostOutcome and the batch carries on.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

from rich.table import Table

from redditreel.config import AppConfig, UploadConfig
from redditreel.errors import (
    AssemblyError,
    CardRenderError,
    ComposeError,
    SynthesisError,
    UploadError,
)
from redditreel.ledger import UploadLedger
from redditreel.reddit import Comment, Post
from redditreel.runlog import RunLog, quote
from redditreel.selector import PostSelector
from redditreel.text import PillowFontMetrics, clean_text_for_tts, paginate
from redditreel.video.assembler import SequenceAssembler
from redditreel.video.cards import LINE_SPACING, CardRenderer, CardStyle, load_font
from redditreel.video.composer import ClipComposer
from redditreel.video.uploader import UploadRequest, YouTubeUploader
from redditreel.video.voiceover import Narrator

DESCRIPTION_EXCERPT = 300

TITLE = "title"
SELFTEXT = "selftext"
COMMENT = "comment"

# Post outcome statuses
PROCESSED = "processed"
DUPLICATE = "duplicate"
NO_OUTPUT = "no_output"
FAILED = "failed"

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def safe_id(value: str) -> str:
    return _UNSAFE_ID_CHARS.sub("_", value)


@dataclass(frozen=True)
class Segment:
    kind: str
    index: int
    segment_id: str
    narration: str
    display: str
    author: str | None = None
    score: int | None = None


def paginate_selftext(text: str, style: CardStyle) -> list[str]:
    """Split cleaned self-text into pages that fit one card's text box."""
    cleaned = clean_text_for_tts(text)
    if not cleaned:
        return []
    font = load_font(style.content_size, str(style.font_path) if style.font_path else None)
    box_w, box_h = style.text_box()
    return paginate(cleaned, PillowFontMetrics(font), box_w, box_h, LINE_SPACING)


def build_segments(post: Post, pages: list[str], comments: list[Comment]) -> list[Segment]:
    """Title, then self-text pages, then comments, each with a stable id."""
    post_key = safe_id(post.id)
    segments = [
        Segment(
            kind=TITLE,
            index=0,
            segment_id=f"{post_key}_title",
            narration=clean_text_for_tts(post.title),
            display=post.title,
            author=post.author or None,
            score=post.score,
        )
    ]

    pages = [p for p in pages if p.strip()]
    for n, page in enumerate(pages, start=1):
        indicator = f" (Page {n}/{len(pages)})" if len(pages) > 1 else ""
        segments.append(Segment(
            kind=SELFTEXT,
            index=n,
            segment_id=f"{post_key}_selftext_p{n}",
            narration=page,
            display=page + indicator,
        ))

    for k, comment in enumerate(comments, start=1):
        segments.append(Segment(
            kind=COMMENT,
            index=k,
            segment_id=f"{post_key}_c{k}_{safe_id(comment.id)}",
            narration=clean_text_for_tts(comment.body),
            display=comment.body,
            author=comment.author or None,
            score=comment.score,
        ))
    return segments


@dataclass
class ArtifactLayout:
    """Where every intermediate and final file for a run lives."""
    root: Path

    @property
    def tts_dir(self) -> Path:
        return self.root / "tts"

    @property
    def images_dir(self) -> Path:
        return self.root / "images"

    @property
    def clips_dir(self) -> Path:
        return self.root / "clips"

    @property
    def final_dir(self) -> Path:
        return self.root / "final_video"

    def ensure(self):
        for d in (self.tts_dir, self.images_dir, self.clips_dir, self.final_dir):
            d.mkdir(parents=True, exist_ok=True)

    def audio(self, segment_id: str) -> Path:
        return self.tts_dir / f"audio_{segment_id}.mp3"

    def image(self, segment_id: str) -> Path:
        return self.images_dir / f"image_{segment_id}.png"

    def clip(self, segment_id: str) -> Path:
        return self.clips_dir / f"clip_{segment_id}.mp4"

    def final(self, post_id: str) -> Path:
        return self.final_dir / f"final_video_{safe_id(post_id)}.mp4"


def build_upload_request(post: Post, video_path: Path, config: UploadConfig) -> UploadRequest:
    title = clean_text_for_tts(post.title) or config.default_title
    description = (
        f"Reddit story from /r/{post.subreddit}.\n"
        f"Original post by u/{post.author}.\n\n"
        f"{config.default_description}"
    )
    if post.selftext and post.selftext.strip():
        excerpt = clean_text_for_tts(post.selftext)[:DESCRIPTION_EXCERPT]
        description += f"\n\nPost Text:\n{excerpt}..."
    return UploadRequest(
        video_path=video_path,
        title=title,
        description=description,
        tags=list(config.tags),
        category_id=config.category_id,
        privacy_status=config.privacy_status,
    )


@dataclass
class PostOutcome:
    post_id: str
    title: str
    status: str
    clips_made: int = 0
    clips_failed: int = 0
    video_path: Path | None = None
    upload_status: str | None = None       # uploaded / skipped / failed
    video_id: str | None = None
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.post_id,
            "status": self.status,
            "clips_made": self.clips_made,
            "clips_failed": self.clips_failed,
            "video": str(self.video_path) if self.video_path else None,
            "upload": self.upload_status,
            "video_id": self.video_id,
            "detail": self.detail,
        }


@dataclass
class BatchOrchestrator:
    config: AppConfig
    selector: PostSelector
    narrator: Narrator
    renderer: CardRenderer
    composer: ClipComposer
    assembler: SequenceAssembler
    ledger: UploadLedger
    log: RunLog
    uploader: YouTubeUploader | None = None
    layout: ArtifactLayout | None = None
    outcomes: list[PostOutcome] = field(default_factory=list)

    def __post_init__(self):
        if self.layout is None:
            self.layout = ArtifactLayout(self.config.general.output_dir)

    @property
    def uploads_enabled(self) -> bool:
        return (
            self.uploader is not None
            and self.config.upload.enabled
            and not self.config.general.testing_mode
        )

    def run(self, posts: list[Post]) -> list[PostOutcome]:
        self.layout.ensure()
        for n, post in enumerate(posts, start=1):
            self.log.info(
                f"\n[bold]Post {n}/{len(posts)}:[/bold] {quote(post.title, 80)} "
                f"[dim]({post.id}, u/{quote(post.author)})[/dim]"
            )
            outcome = self.process_post(post)
            self.outcomes.append(outcome)
            self.log.event("post_done", outcome.to_dict())
        return self.outcomes

    # -- segments ----------------------------------------------------------

    def render_segment(self, segment: Segment) -> Path:
        """Narrate, draw and compose one segment; raises on any failure."""
        audio = self.narrator.synthesize(segment.narration, self.layout.audio(segment.segment_id))
        image = self.renderer.render(
            segment.display,
            self.layout.image(segment.segment_id),
            author=segment.author,
            score=segment.score,
        )
        clip = self.composer.compose(image, audio, self.layout.clip(segment.segment_id))
        return clip.path

    def _segments_for(self, post: Post) -> list[Segment]:
        video = self.config.video
        pages = paginate_selftext(post.selftext, self.renderer.style)
        if pages:
            self.log.detail(f"Self-text split into {len(pages)} page(s)")
        comments = self.selector.select_comments(post, video.comments_to_include)
        return build_segments(post, pages, comments)

    def _intermediates(self, segments: list[Segment]) -> list[Path]:
        paths = []
        for segment in segments:
            sid = segment.segment_id
            paths += [self.layout.audio(sid), self.layout.image(sid), self.layout.clip(sid)]
        return paths

    # -- posts -------------------------------------------------------------

    def process_post(self, post: Post) -> PostOutcome:
        outcome = PostOutcome(post_id=post.id, title=post.title, status=FAILED)

        if self.ledger.seen(post.id):
            self.log.warn(f"Post {post.id} was already processed, skipping")
            outcome.status = DUPLICATE
            outcome.detail = "already in ledger"
            return outcome

        segments = self._segments_for(post)
        clips: list[Path] = []
        for segment in segments:
            label = f"{segment.kind} {segment.index}" if segment.index else segment.kind
            if not segment.narration:
                self.log.warn(f"Skipping {label}: nothing to narrate")
                outcome.clips_failed += 1
                continue
            try:
                clips.append(self.render_segment(segment))
                self.log.detail(f"[green]✓[/green] {label}")
            except (SynthesisError, CardRenderError, ComposeError) as e:
                outcome.clips_failed += 1
                self.log.error(f"Skipping {label} of {post.id}: {quote(str(e))}")
        outcome.clips_made = len(clips)

        if not clips:
            self.log.warn(f"No clips produced for {post.id}, nothing to assemble")
            outcome.status = NO_OUTPUT
            outcome.detail = "no segment clips"
            return outcome

        video = self.config.video
        sequence = list(clips)
        if video.intro_video and video.intro_video.is_file():
            sequence.insert(0, video.intro_video)
        if video.outro_video and video.outro_video.is_file():
            sequence.append(video.outro_video)

        final_path = self.layout.final(post.id)
        try:
            self.assembler.assemble(sequence, final_path)
        except AssemblyError as e:
            self.log.error(f"Assembly failed for {post.id}: {quote(str(e))}")
            outcome.detail = "assembly failed"
            return outcome
        outcome.video_path = final_path
        outcome.status = PROCESSED
        self.log.success(f"Final video: {final_path}")

        self.ledger.record(post.id)
        self._upload(post, final_path, outcome)

        if video.cleanup_intermediate_files:
            self._cleanup(self._intermediates(segments))
        return outcome

    def _upload(self, post: Post, video_path: Path, outcome: PostOutcome):
        if not self.uploads_enabled:
            outcome.upload_status = "skipped"
            reason = "testing mode" if self.config.general.testing_mode else "uploads disabled"
            self.log.detail(f"Upload skipped ({reason})")
            return
        request = build_upload_request(post, video_path, self.config.upload)
        try:
            outcome.video_id = self.uploader.upload(request)
            outcome.upload_status = "uploaded"
            self.log.success(f"Uploaded to YouTube: {outcome.video_id}")
        except UploadError as e:
            outcome.upload_status = "failed"
            self.log.error(f"Upload failed for {post.id}: {quote(str(e))}")

    def _cleanup(self, paths: list[Path]):
        removed = 0
        for path in paths:
            try:
                if path.exists():
                    path.unlink()
                    removed += 1
            except OSError as e:
                self.log.warn(f"Could not delete {path.name}: {e}")
        self.log.detail(f"Cleaned up {removed} intermediate file(s)")

    def summary_table(self) -> Table:
        table = Table(title="Run Summary")
        table.add_column("Post", style="cyan")
        table.add_column("Title")
        table.add_column("Status")
        table.add_column("Clips", justify="right")
        table.add_column("Upload")

        styles = {PROCESSED: "green", DUPLICATE: "yellow", NO_OUTPUT: "yellow", FAILED: "red"}
        for o in self.outcomes:
            style = styles.get(o.status, "white")
            clips = f"{o.clips_made}" + (f" ({o.clips_failed} failed)" if o.clips_failed else "")
            table.add_row(
                o.post_id,
                quote(o.title, 50),
                f"[{style}]{o.status}[/{style}]",
                clips,
                o.video_id or o.upload_status or "-",
            )
        return table
