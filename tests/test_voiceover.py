import azure.cognitiveservices.speech as speechsdk
import pytest

from redditreel.config import TtsConfig
from redditreel.errors import ConfigError, SynthesisError
from redditreel.video.voiceover import (
    AzureEngine,
    EdgeEngine,
    ElevenLabsEngine,
    Narrator,
    make_engine,
)


class FakeEngine:
    name = "fake"

    def __init__(self, payload=b"ID3 audio", error=None):
        self.payload = payload
        self.error = error
        self.texts = []

    def synthesize(self, text, output_path):
        self.texts.append(text)
        if self.error:
            raise self.error
        if self.payload is not None:
            output_path.write_bytes(self.payload)


class FakeElevenLabs:
    class text_to_speech:
        calls = []

        @classmethod
        def convert(cls, **kwargs):
            cls.calls.append(kwargs)
            return iter([b"chunk1", b"chunk2"])


def test_narrator_writes_audio(tmp_path, log):
    out = tmp_path / "tts" / "audio_x.mp3"
    assert Narrator(FakeEngine(), log).synthesize("Hello.", out) == out
    assert out.read_bytes() == b"ID3 audio"


def test_empty_output_is_failure(tmp_path, log):
    out = tmp_path / "audio.mp3"
    with pytest.raises(SynthesisError, match="no audio"):
        Narrator(FakeEngine(payload=b""), log).synthesize("Hello.", out)
    assert not out.exists()


def test_missing_output_is_failure(tmp_path, log):
    with pytest.raises(SynthesisError):
        Narrator(FakeEngine(payload=None), log).synthesize("Hello.", tmp_path / "a.mp3")


def test_stale_file_is_not_mistaken_for_output(tmp_path, log):
    out = tmp_path / "a.mp3"
    out.write_bytes(b"old run")
    with pytest.raises(SynthesisError):
        Narrator(FakeEngine(payload=None), log).synthesize("Hello.", out)


def test_engine_exceptions_become_synthesis_errors(tmp_path, log):
    engine = FakeEngine(error=RuntimeError("quota exceeded"))
    with pytest.raises(SynthesisError, match="quota exceeded"):
        Narrator(engine, log).synthesize("Hello.", tmp_path / "a.mp3")


def test_blank_text_is_rejected(tmp_path, log):
    engine = FakeEngine()
    with pytest.raises(SynthesisError):
        Narrator(engine, log).synthesize("   ", tmp_path / "a.mp3")
    assert engine.texts == []


def test_make_engine_selects_backend():
    assert isinstance(make_engine(TtsConfig(engine="edge")), EdgeEngine)
    with pytest.raises(ConfigError):
        make_engine(TtsConfig(engine="polly"))


def test_elevenlabs_requires_credentials():
    with pytest.raises(ConfigError, match="API_KEY"):
        ElevenLabsEngine(TtsConfig(engine="elevenlabs"))
    with pytest.raises(ConfigError, match="voice"):
        ElevenLabsEngine(TtsConfig(engine="elevenlabs", elevenlabs_api_key="k"))


def test_elevenlabs_streams_chunks(tmp_path):
    config = TtsConfig(engine="elevenlabs", elevenlabs_api_key="k", elevenlabs_voice_id="v1")
    engine = ElevenLabsEngine(config, client=FakeElevenLabs())
    out = tmp_path / "a.mp3"
    engine.synthesize("Hello.", out)
    assert out.read_bytes() == b"chunk1chunk2"
    assert FakeElevenLabs.text_to_speech.calls[-1]["voice_id"] == "v1"


class FakeAzureResult:
    def __init__(self, reason, audio_data=b"", cancellation_details=None):
        self.reason = reason
        self.audio_data = audio_data
        self.cancellation_details = cancellation_details


class FakeAzureSynthesizer:
    def __init__(self, result):
        self.result = result
        self.texts = []

    def speak_text_async(self, text):
        self.texts.append(text)
        return self

    def get(self):
        return self.result


class Cancelled:
    reason = "Error"
    error_details = "401 Unauthorized"


def azure_config(**overrides):
    settings = dict(engine="azure", azure_speech_key="k", azure_region="eastus")
    settings.update(overrides)
    return TtsConfig(**settings)


def test_azure_requires_key_and_region():
    with pytest.raises(ConfigError, match="AZURE_SPEECH_KEY"):
        AzureEngine(TtsConfig(engine="azure"))
    with pytest.raises(ConfigError, match="region"):
        AzureEngine(TtsConfig(engine="azure", azure_speech_key="k"))
    assert isinstance(make_engine(azure_config()), AzureEngine)


def test_azure_writes_result_audio(tmp_path, monkeypatch):
    synthesizer = FakeAzureSynthesizer(
        FakeAzureResult(speechsdk.ResultReason.SynthesizingAudioCompleted, audio_data=b"mp3 bytes")
    )
    monkeypatch.setattr(AzureEngine, "_synthesizer", lambda self: synthesizer)
    out = tmp_path / "a.mp3"
    AzureEngine(azure_config()).synthesize("Hello there.", out)
    assert out.read_bytes() == b"mp3 bytes"
    assert synthesizer.texts == ["Hello there."]


def test_azure_cancellation_is_a_synthesis_error(tmp_path, monkeypatch, log):
    synthesizer = FakeAzureSynthesizer(
        FakeAzureResult(speechsdk.ResultReason.Canceled, cancellation_details=Cancelled())
    )
    monkeypatch.setattr(AzureEngine, "_synthesizer", lambda self: synthesizer)
    out = tmp_path / "a.mp3"
    with pytest.raises(SynthesisError, match="401 Unauthorized"):
        Narrator(AzureEngine(azure_config()), log).synthesize("Hello.", out)
    assert not out.exists()
