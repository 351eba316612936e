"""Narration synthesis for redditreel video segments.

Three engines are supported:
    elevenlabs - ElevenLabs cloud TTS (needs ELEVENLABS_API_KEY)
    edge       - Microsoft Edge read-aloud voices via edge-tts (free)
    azure      - Azure AI Speech neural voices (needs AZURE_SPEECH_KEY and a region)

All are blocking calls: the Edge engine's coroutine is driven to completion
with asyncio.run() inside synthesize(), so callers never see async code.
"""

import asyncio
from pathlib import Path
from typing import Protocol

import azure.cognitiveservices.speech as speechsdk
import edge_tts
from elevenlabs import ElevenLabs

from redditreel.config import TtsConfig
from redditreel.errors import ConfigError, SynthesisError
from redditreel.runlog import RunLog


class TtsEngine(Protocol):
    name: str

    def synthesize(self, text: str, output_path: Path) -> None: ...


class ElevenLabsEngine:
    name = "elevenlabs"

    def __init__(self, config: TtsConfig, client: ElevenLabs | None = None):
        if not config.elevenlabs_api_key:
            raise ConfigError("ELEVENLABS_API_KEY is required for the elevenlabs engine")
        if not config.elevenlabs_voice_id:
            raise ConfigError(
                "tts.elevenlabs_voice_id (or ELEVENLABS_VOICE_ID) is required "
                "for the elevenlabs engine"
            )
        self.config = config
        self.client = client or ElevenLabs(api_key=config.elevenlabs_api_key)

    def synthesize(self, text: str, output_path: Path) -> None:
        audio_iterator = self.client.text_to_speech.convert(
            voice_id=self.config.elevenlabs_voice_id,
            text=text,
            model_id=self.config.elevenlabs_model,
            output_format=self.config.elevenlabs_output_format,
        )
        with open(output_path, "wb") as f:
            for chunk in audio_iterator:
                f.write(chunk)


class EdgeEngine:
    name = "edge"

    def __init__(self, config: TtsConfig):
        self.voice = config.edge_voice

    def synthesize(self, text: str, output_path: Path) -> None:
        async def _generate():
            communicate = edge_tts.Communicate(text, self.voice)
            await communicate.save(str(output_path))

        asyncio.run(_generate())


class AzureEngine:
    name = "azure"

    def __init__(self, config: TtsConfig):
        if not config.azure_speech_key:
            raise ConfigError("AZURE_SPEECH_KEY is required for the azure engine")
        if not config.azure_region:
            raise ConfigError(
                "tts.azure_region (or AZURE_SPEECH_REGION) is required for the azure engine"
            )
        self.config = config

    def _synthesizer(self) -> speechsdk.SpeechSynthesizer:
        speech_config = speechsdk.SpeechConfig(
            subscription=self.config.azure_speech_key, region=self.config.azure_region,
        )
        speech_config.speech_synthesis_voice_name = self.config.azure_voice
        speech_config.set_speech_synthesis_output_format(
            speechsdk.SpeechSynthesisOutputFormat.Audio24Khz96KBitRateMonoMp3
        )
        # audio_config=None keeps the audio in the result instead of playing it
        return speechsdk.SpeechSynthesizer(speech_config=speech_config, audio_config=None)

    def synthesize(self, text: str, output_path: Path) -> None:
        result = self._synthesizer().speak_text_async(text).get()
        if result.reason == speechsdk.ResultReason.Canceled:
            details = result.cancellation_details
            raise SynthesisError(f"Azure synthesis canceled ({details.reason}): {details.error_details}")
        if result.reason != speechsdk.ResultReason.SynthesizingAudioCompleted:
            raise SynthesisError(f"Azure synthesis did not complete: {result.reason}")
        with open(output_path, "wb") as f:
            f.write(result.audio_data)


def make_engine(config: TtsConfig) -> TtsEngine:
    if config.engine == "elevenlabs":
        return ElevenLabsEngine(config)
    if config.engine == "edge":
        return EdgeEngine(config)
    if config.engine == "azure":
        return AzureEngine(config)
    raise ConfigError(f"Unknown TTS engine '{config.engine}'")


class Narrator:
    """Turns segment text into an audio file, or raises SynthesisError."""

    def __init__(self, engine: TtsEngine, log: RunLog | None = None):
        self.engine = engine
        self.log = log

    def synthesize(self, text: str, output_path: Path) -> Path:
        if not text or not text.strip():
            raise SynthesisError("Nothing to narrate: text is empty")
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if output_path.exists():
            output_path.unlink()

        if self.log is not None:
            self.log.detail(
                f"Synthesising {len(text)} chars with {self.engine.name} -> {output_path.name}"
            )
        try:
            self.engine.synthesize(text, output_path)
        except SynthesisError:
            raise
        except Exception as e:
            # Engine SDKs raise their own exception types (HTTP, websocket, API errors)
            raise SynthesisError(f"{self.engine.name} synthesis failed: {e}") from e

        if not output_path.exists() or output_path.stat().st_size == 0:
            output_path.unlink(missing_ok=True)
            raise SynthesisError(f"{self.engine.name} produced no audio for {output_path.name}")
        return output_path


def make_narrator(config: TtsConfig, log: RunLog | None = None) -> Narrator:
    return Narrator(make_engine(config), log)
