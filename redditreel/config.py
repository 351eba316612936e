"""
Configuration loading for redditreel.

A run reads one YAML file (default: config.yaml next to the project root)
plus secrets from the environment / .env. Each YAML section maps onto one
dataclass per pipeline stage; every default is resolved here, once, and the
resulting objects are handed to components by value.

Environment variables:
    ELEVENLABS_API_KEY   - required when tts.engine is "elevenlabs"
    ELEVENLABS_VOICE_ID  - optional override for tts.elevenlabs_voice_id
    AZURE_SPEECH_KEY     - required when tts.engine is "azure"
    AZURE_SPEECH_REGION  - optional override for tts.azure_region
    REDDITREEL_CONFIG    - optional default path to the YAML file
"""

import os
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from pathlib import Path

import yaml
from dotenv import load_dotenv

from redditreel.errors import ConfigError
from redditreel.runlog import CONSOLE_LEVELS

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.yaml"

TTS_ENGINES = ("elevenlabs", "edge", "azure")
PRIVACY_STATUSES = ("private", "unlisted", "public")


@dataclass
class GeneralConfig:
    testing_mode: bool = False
    output_dir: Path = Path("output_files")
    log_dir: Path = Path("logs")
    log_retention_days: int = 7
    console_level: str = "detailed"


@dataclass
class RedditConfig:
    subreddit: str = "AskReddit"
    sort: str = "top"                       # listing sort: top, hot, new, ...
    post_url: str | None = None             # process exactly this post when set
    min_post_upvotes: int = 0
    min_post_comments: int = 0
    start_date: date | None = None          # inclusive, UTC day granularity
    end_date: date | None = None            # inclusive, UTC day granularity
    min_comment_score: int | None = None
    min_comment_length: int = 10
    posts_to_scan: int = 50
    batch_size: int = 1
    allow_nsfw: bool = False
    bypass_post_filters: bool = False
    bypass_comment_score_filter: bool = False
    comment_sort: str = "top"
    comment_keywords: list[str] = field(default_factory=list)
    user_agent: str = "redditreel/1.0 (narrated short-form video builder)"
    timeout_seconds: float = 20.0


@dataclass
class VideoConfig:
    resolution: tuple[int, int] = (1080, 1920)
    fps: int = 30
    assets_root: Path = Path("assets")
    background_video: Path | None = None
    background_music: Path | None = None
    music_volume: float = 0.15
    intro_video: Path | None = None
    outro_video: Path | None = None
    card_width: int = 800
    card_height: int = 600
    card_background_color: str = "DarkSlateGray"
    card_font_color: str = "white"
    card_metadata_font_color: str = "lightgray"
    font_path: Path | None = None
    content_font_size: int = 36
    content_min_font_size: int = 16
    content_max_font_size: int = 60
    metadata_font_size: int = 24
    metadata_min_font_size: int = 12
    metadata_max_font_size: int = 32
    comments_to_include: int = 3
    enable_transitions: bool = True
    transition_duration: float = 0.5
    cleanup_intermediate_files: bool = True
    preset: str = "medium"
    video_bitrate: str = "2500k"
    audio_bitrate: str = "192k"


@dataclass
class TtsConfig:
    engine: str = "edge"
    edge_voice: str = "en-US-GuyNeural"
    elevenlabs_api_key: str | None = None
    elevenlabs_voice_id: str | None = None
    elevenlabs_model: str = "eleven_multilingual_v2"
    elevenlabs_output_format: str = "mp3_44100_128"
    azure_speech_key: str | None = None
    azure_region: str | None = None
    azure_voice: str = "en-US-AriaNeural"


@dataclass
class UploadConfig:
    enabled: bool = True
    client_secret_path: Path | None = None
    token_path: Path = Path("youtube_token.json")
    default_title: str = "Reddit Story Video"
    default_description: str = "An interesting story from Reddit."
    tags: list[str] = field(default_factory=lambda: ["reddit", "story"])
    category_id: str = "24"
    privacy_status: str = "private"
    duplicate_check: bool = True
    ledger_path: Path = Path("uploaded_post_ids.log")


@dataclass
class AppConfig:
    general: GeneralConfig = field(default_factory=GeneralConfig)
    reddit: RedditConfig = field(default_factory=RedditConfig)
    video: VideoConfig = field(default_factory=VideoConfig)
    tts: TtsConfig = field(default_factory=TtsConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    source_path: Path | None = None


_SECTIONS = {
    "general": GeneralConfig,
    "reddit": RedditConfig,
    "video": VideoConfig,
    "tts": TtsConfig,
    "upload": UploadConfig,
}


def parse_resolution(value) -> tuple[int, int]:
    """Parse '1080x1920' (or a [w, h] list) into a (width, height) tuple."""
    if isinstance(value, (list, tuple)) and len(value) == 2:
        parts = [str(v) for v in value]
    elif isinstance(value, str):
        parts = value.lower().split("x")
    else:
        raise ConfigError(f"video.resolution must look like '1080x1920', got {value!r}")
    try:
        width, height = (int(p.strip()) for p in parts)
    except ValueError:
        raise ConfigError(f"video.resolution must look like '1080x1920', got {value!r}") from None
    if width <= 0 or height <= 0:
        raise ConfigError(f"video.resolution must be positive, got {value!r}")
    return width, height


def _parse_date(name: str, value) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise ConfigError(f"reddit.{name} must be YYYY-MM-DD, got {value!r}") from None


def _build_section(name: str, data) -> object:
    cls = _SECTIONS[name]
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown key(s) in '{name}': {', '.join(unknown)}")
    try:
        return cls(**data)
    except TypeError as e:
        raise ConfigError(f"Config section '{name}': {e}") from None


def _resolve(base: Path, value) -> Path | None:
    if value in (None, ""):
        return None
    path = Path(value).expanduser()
    return path if path.is_absolute() else base / path


def _normalize(config: AppConfig, base_dir: Path) -> AppConfig:
    """Coerce types and resolve every relative path once."""
    g = config.general
    general = replace(
        g,
        output_dir=_resolve(base_dir, g.output_dir),
        log_dir=_resolve(base_dir, g.log_dir),
        log_retention_days=int(g.log_retention_days),
    )

    r = config.reddit
    keywords = r.comment_keywords or []
    if isinstance(keywords, str):
        keywords = [keywords]
    reddit = replace(
        r,
        post_url=(r.post_url or "").strip() or None,
        subreddit=(r.subreddit or "").strip(),
        start_date=_parse_date("start_date", r.start_date),
        end_date=_parse_date("end_date", r.end_date),
        comment_keywords=[str(k) for k in keywords if str(k).strip()],
        posts_to_scan=int(r.posts_to_scan),
        batch_size=int(r.batch_size),
    )

    v = config.video
    assets = _resolve(base_dir, v.assets_root) or base_dir
    video = replace(
        v,
        resolution=parse_resolution(v.resolution),
        assets_root=assets,
        background_video=_resolve(assets, v.background_video),
        background_music=_resolve(assets, v.background_music),
        intro_video=_resolve(assets, v.intro_video),
        outro_video=_resolve(assets, v.outro_video),
        font_path=_resolve(assets, v.font_path),
        music_volume=float(v.music_volume),
        transition_duration=float(v.transition_duration),
    )

    t = config.tts
    tts = replace(
        t,
        engine=str(t.engine).strip().lower(),
        elevenlabs_api_key=t.elevenlabs_api_key or os.getenv("ELEVENLABS_API_KEY"),
        elevenlabs_voice_id=os.getenv("ELEVENLABS_VOICE_ID") or t.elevenlabs_voice_id,
        azure_speech_key=t.azure_speech_key or os.getenv("AZURE_SPEECH_KEY"),
        azure_region=os.getenv("AZURE_SPEECH_REGION") or t.azure_region,
    )

    u = config.upload
    tags = u.tags if isinstance(u.tags, list) else [u.tags]
    upload = replace(
        u,
        client_secret_path=_resolve(base_dir, u.client_secret_path),
        token_path=_resolve(base_dir, u.token_path),
        ledger_path=_resolve(base_dir, u.ledger_path),
        tags=[str(tag) for tag in tags],
        privacy_status=str(u.privacy_status).lower(),
        category_id=str(u.category_id),
    )

    if general.testing_mode and tts.engine != "edge":
        tts = replace(tts, engine="edge")

    return replace(
        config, general=general, reddit=reddit, video=video, tts=tts, upload=upload,
    )


def build_config(data: dict | None, base_dir: Path, source_path: Path | None = None) -> AppConfig:
    """Build an AppConfig from an already-parsed mapping."""
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a mapping at the top level")
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ConfigError(f"Unknown config section(s): {', '.join(unknown)}")
    config = AppConfig(
        **{name: _build_section(name, data.get(name)) for name in _SECTIONS},
        source_path=source_path,
    )
    return _normalize(config, base_dir)


def load_config(path: Path | None = None) -> AppConfig:
    """Load config.yaml (and .env) into a validated AppConfig."""
    load_dotenv()
    if path is None:
        path = Path(os.getenv("REDDITREEL_CONFIG", DEFAULT_CONFIG_PATH))
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {path}: {e}") from None
    return build_config(data, path.resolve().parent, source_path=path)


def validate_config(config: AppConfig) -> list[str]:
    """Return human-readable problems that make a run impossible."""
    problems = []
    r, v, t, u, g = config.reddit, config.video, config.tts, config.upload, config.general

    if not r.post_url and not r.subreddit:
        problems.append("Either reddit.post_url or reddit.subreddit must be set")
    if r.start_date and r.end_date and r.start_date > r.end_date:
        problems.append("reddit.start_date is after reddit.end_date")
    if r.batch_size < 1:
        problems.append("reddit.batch_size must be at least 1")
    if r.posts_to_scan < 1:
        problems.append("reddit.posts_to_scan must be at least 1")
    if v.comments_to_include < 0:
        problems.append("video.comments_to_include cannot be negative")
    if v.card_width <= 0 or v.card_height <= 0:
        problems.append("video.card_width and video.card_height must be positive")
    if not (v.content_min_font_size <= v.content_max_font_size):
        problems.append("video.content_min_font_size exceeds content_max_font_size")
    if v.transition_duration < 0:
        problems.append("video.transition_duration cannot be negative")
    if t.engine not in TTS_ENGINES:
        problems.append(f"tts.engine must be one of {', '.join(TTS_ENGINES)}, got '{t.engine}'")
    if u.privacy_status not in PRIVACY_STATUSES:
        problems.append(f"upload.privacy_status must be one of {', '.join(PRIVACY_STATUSES)}")
    if g.console_level not in CONSOLE_LEVELS:
        problems.append(f"general.console_level '{g.console_level}' is not recognised")
    return problems
