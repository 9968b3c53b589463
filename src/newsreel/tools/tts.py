"""Text-to-speech engines (Stage A of voice synthesis).

Each engine implements ``synthesize(text, output_path, profile)`` and
writes a compressed audio file. Pitch/tempo post-processing is a separate
stage (see ``newsreel.nodes.voice``) so engines can be swapped freely.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

import structlog

from newsreel.config import settings
from newsreel.models.script import VoiceProfile
from newsreel.tools.process import run_process

logger = structlog.get_logger()


class SpeechEngine(Protocol):
    async def synthesize(self, text: str, output_path: Path, profile: VoiceProfile) -> Path: ...


class GttsCliEngine:
    """Google TTS through the ``gtts-cli`` command (ships with the gTTS package).

    The text is handed over in a file to keep quoting out of the argv.
    """

    def __init__(
        self,
        command: str | None = None,
        language: str | None = None,
        timeout: float | None = None,
    ):
        self.command = command or settings.tts_command
        self.language = language or settings.tts_language
        self.timeout = timeout or settings.tts_timeout_sec

    async def synthesize(self, text: str, output_path: Path, profile: VoiceProfile) -> Path:
        output_path = Path(output_path)
        text_path = output_path.with_suffix(".txt")
        text_path.write_text(text, encoding="utf-8")
        try:
            await run_process(
                [
                    self.command,
                    "--file", str(text_path),
                    "--lang", self.language,
                    "--output", str(output_path),
                ],
                timeout=self.timeout,
                cleanup=[output_path],
            )
        finally:
            text_path.unlink(missing_ok=True)
        return output_path


class ElevenLabsEngine:
    """ElevenLabs API engine; voice chosen per profile from settings."""

    def __init__(self, api_key: str | None = None):
        self.api_key = api_key or settings.elevenlabs_api_key

    def _voice_id(self, profile: VoiceProfile) -> str:
        voice_id = settings.voice_id_male if profile is VoiceProfile.MALE else settings.voice_id_female
        if not voice_id:
            raise RuntimeError(f"No ElevenLabs voice id configured for profile={profile.value}")
        return voice_id

    async def synthesize(self, text: str, output_path: Path, profile: VoiceProfile) -> Path:
        from elevenlabs import AsyncElevenLabs  # only needed for this engine

        if not self.api_key:
            raise RuntimeError("ELEVENLABS_API_KEY is required for the elevenlabs TTS engine")

        voice_id = self._voice_id(profile)
        logger.info("elevenlabs_tts.start", voice_id=voice_id, text_len=len(text))

        client = AsyncElevenLabs(api_key=self.api_key)
        audio_iter = client.text_to_speech.convert(
            voice_id=voice_id,
            text=text,
            model_id="eleven_multilingual_v2",
            output_format="mp3_44100_128",
        )

        chunks: list[bytes] = []
        async for chunk in audio_iter:
            chunks.append(chunk)

        audio_data = b"".join(chunks)
        if not audio_data:
            raise RuntimeError(f"ElevenLabs returned empty audio for voice_id={voice_id}")

        Path(output_path).write_bytes(audio_data)
        logger.info("elevenlabs_tts.done", output_path=str(output_path), bytes_written=len(audio_data))
        return Path(output_path)


def get_speech_engine(name: str | None = None) -> SpeechEngine:
    """Build the engine selected by ``TTS_ENGINE``."""
    name = (name or settings.tts_engine).lower()
    if name == "elevenlabs":
        return ElevenLabsEngine()
    if name == "gtts":
        return GttsCliEngine()
    raise ValueError(f"Unknown TTS engine: {name!r} (expected 'gtts' or 'elevenlabs')")
