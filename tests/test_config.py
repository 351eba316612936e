from datetime import date

import pytest
import yaml

from redditreel.config import build_config, load_config, parse_resolution, validate_config
from redditreel.errors import ConfigError


@pytest.fixture(autouse=True)
def no_env_secrets(monkeypatch):
    monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)
    monkeypatch.delenv("ELEVENLABS_VOICE_ID", raising=False)
    monkeypatch.setattr("redditreel.config.load_dotenv", lambda *a, **k: False)


def test_defaults(tmp_path):
    config = build_config({}, tmp_path)
    assert config.reddit.subreddit == "AskReddit"
    assert config.reddit.batch_size == 1
    assert config.video.resolution == (1080, 1920)
    assert config.video.comments_to_include == 3
    assert config.upload.privacy_status == "private"
    assert config.upload.ledger_path == tmp_path / "uploaded_post_ids.log"
    assert config.general.output_dir == tmp_path / "output_files"
    assert validate_config(config) == []


def test_asset_paths_resolve_against_assets_root(tmp_path):
    config = build_config(
        {"video": {"assets_root": "media", "background_video": "bg.mp4", "intro_video": "/abs/intro.mp4"}},
        tmp_path,
    )
    assert config.video.background_video == tmp_path / "media" / "bg.mp4"
    assert str(config.video.intro_video) == "/abs/intro.mp4"
    assert config.video.outro_video is None


def test_dates_are_parsed(tmp_path):
    config = build_config({"reddit": {"start_date": "2024-01-10", "end_date": date(2024, 2, 1)}}, tmp_path)
    assert config.reddit.start_date == date(2024, 1, 10)
    assert config.reddit.end_date == date(2024, 2, 1)


def test_bad_date_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        build_config({"reddit": {"start_date": "10/01/2024"}}, tmp_path)


def test_unknown_keys_are_rejected(tmp_path):
    with pytest.raises(ConfigError, match="subredit"):
        build_config({"reddit": {"subredit": "typo"}}, tmp_path)
    with pytest.raises(ConfigError):
        build_config({"youtube": {}}, tmp_path)


def test_section_must_be_mapping(tmp_path):
    with pytest.raises(ConfigError):
        build_config({"video": ["nope"]}, tmp_path)


@pytest.mark.parametrize("value,expected", [
    ("1080x1920", (1080, 1920)),
    ("1920X1080", (1920, 1080)),
    ([720, 1280], (720, 1280)),
])
def test_parse_resolution(value, expected):
    assert parse_resolution(value) == expected


@pytest.mark.parametrize("value", ["1080", "axb", "0x100", 42])
def test_parse_resolution_rejects(value):
    with pytest.raises(ConfigError):
        parse_resolution(value)


def test_testing_mode_forces_edge(tmp_path):
    config = build_config({"general": {"testing_mode": True}, "tts": {"engine": "elevenlabs"}}, tmp_path)
    assert config.tts.engine == "edge"


def test_secrets_come_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("ELEVENLABS_API_KEY", "sk-test")
    monkeypatch.setenv("ELEVENLABS_VOICE_ID", "voice-1")
    config = build_config({"tts": {"engine": "elevenlabs"}}, tmp_path)
    assert config.tts.elevenlabs_api_key == "sk-test"
    assert config.tts.elevenlabs_voice_id == "voice-1"


def test_azure_secrets_come_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("AZURE_SPEECH_KEY", "az-key")
    monkeypatch.setenv("AZURE_SPEECH_REGION", "westeurope")
    config = build_config({"tts": {"engine": "azure", "azure_region": "eastus"}}, tmp_path)
    assert config.tts.azure_speech_key == "az-key"
    assert config.tts.azure_region == "westeurope"
    assert validate_config(config) == []


def test_validate_reports_problems(tmp_path):
    config = build_config(
        {
            "reddit": {"subreddit": "", "start_date": "2024-02-01", "end_date": "2024-01-01"},
            "tts": {"engine": "polly"},
            "upload": {"privacy_status": "secret"},
        },
        tmp_path,
    )
    problems = validate_config(config)
    assert any("post_url" in p for p in problems)
    assert any("start_date" in p for p in problems)
    assert any("tts.engine" in p for p in problems)
    assert any("privacy_status" in p for p in problems)


def test_load_config_reads_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"reddit": {"subreddit": "tifu", "batch_size": 2}}))
    config = load_config(path)
    assert config.reddit.subreddit == "tifu"
    assert config.reddit.batch_size == 2
    assert config.source_path == path


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.yaml")


def test_load_config_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("reddit: [unclosed")
    with pytest.raises(ConfigError):
        load_config(path)
