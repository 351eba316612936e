"""
Startup checks for redditreel.

Each check returns {"name": str, "status": "pass"|"warn"|"fail", "detail": str}.
Checks never raise; a failing check is reported and `run` refuses to start.
"""

from rich.table import Table

from redditreel.config import TTS_ENGINES, AppConfig, validate_config
from redditreel.errors import FfmpegError
from redditreel.video.ffmpeg import ffmpeg_version


def _result(name: str, status: str, detail: str) -> dict:
    return {"name": name, "status": status, "detail": detail}


def _check_ffmpeg() -> dict:
    try:
        return _result("FFmpeg", "pass", ffmpeg_version())
    except FfmpegError as e:
        return _result("FFmpeg", "fail", str(e))


def _check_config(config: AppConfig) -> dict:
    problems = validate_config(config)
    if problems:
        return _result("Configuration", "fail", "; ".join(problems))
    source = config.source_path.name if config.source_path else "defaults"
    return _result("Configuration", "pass", f"Loaded from {source}")


def _check_source(config: AppConfig) -> dict:
    r = config.reddit
    if r.post_url:
        return _result("Post source", "pass", f"Single post: {r.post_url}")
    if r.subreddit:
        return _result("Post source", "pass", f"r/{r.subreddit} ({r.sort})")
    return _result("Post source", "fail", "Set reddit.post_url or reddit.subreddit")


def _check_background(config: AppConfig) -> dict:
    path = config.video.background_video
    if path is None:
        return _result("Background video", "fail", "video.background_video is not set")
    if not path.is_file():
        return _result("Background video", "fail", f"Not found: {path}")
    return _result("Background video", "pass", str(path))


def _check_optional_media(config: AppConfig) -> dict:
    v = config.video
    missing = [
        f"{label} ({path})"
        for label, path in (
            ("music", v.background_music),
            ("intro", v.intro_video),
            ("outro", v.outro_video),
        )
        if path is not None and not path.is_file()
    ]
    if missing:
        return _result("Optional media", "warn", "Missing, will be skipped: " + ", ".join(missing))
    return _result("Optional media", "pass", "All configured files present")


def _check_upload(config: AppConfig) -> dict:
    if config.general.testing_mode:
        return _result("YouTube upload", "pass", "Skipped in testing mode")
    if not config.upload.enabled:
        return _result("YouTube upload", "pass", "Uploads disabled")
    secret = config.upload.client_secret_path
    if secret is None or not secret.is_file():
        return _result("YouTube upload", "fail", f"Client secret file not found: {secret}")
    return _result("YouTube upload", "pass", f"Client secret: {secret.name}")


def _check_tts(config: AppConfig) -> dict:
    t = config.tts
    if t.engine not in TTS_ENGINES:
        return _result("Narration", "fail", f"Unknown engine '{t.engine}'")
    if t.engine == "elevenlabs":
        if not t.elevenlabs_api_key:
            return _result("Narration", "fail", "ELEVENLABS_API_KEY is not set")
        if not t.elevenlabs_voice_id:
            return _result("Narration", "fail", "No ElevenLabs voice id configured")
        return _result("Narration", "pass", f"ElevenLabs voice {t.elevenlabs_voice_id}")
    if t.engine == "azure":
        if not t.azure_speech_key:
            return _result("Narration", "fail", "AZURE_SPEECH_KEY is not set")
        if not t.azure_region:
            return _result("Narration", "fail", "No Azure Speech region configured")
        return _result("Narration", "pass", f"Azure voice {t.azure_voice} ({t.azure_region})")
    return _result("Narration", "pass", f"Edge TTS voice {t.edge_voice}")


def run_checks(config: AppConfig) -> list[dict]:
    return [
        _check_config(config),
        _check_ffmpeg(),
        _check_source(config),
        _check_background(config),
        _check_optional_media(config),
        _check_tts(config),
        _check_upload(config),
    ]


def has_failures(results: list[dict]) -> bool:
    return any(r["status"] == "fail" for r in results)


def results_table(results: list[dict]) -> Table:
    table = Table(title="Preflight Checks")
    table.add_column("Check", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")
    styles = {"pass": "[green]PASS[/green]", "warn": "[yellow]WARN[/yellow]", "fail": "[red]FAIL[/red]"}
    for r in results:
        table.add_row(r["name"], styles.get(r["status"], r["status"]), r["detail"])
    return table
