"""Voice synthesis — TTS engine (Stage A) followed by an ffmpeg filter (Stage B)."""

from __future__ import annotations

import re
import uuid
from pathlib import Path

import structlog
from langchain_core.runnables import RunnableConfig

from newsreel.config import settings
from newsreel.errors import SynthesisFailed, VideoPipelineError
from newsreel.graph.context import get_deps, get_progress
from newsreel.graph.state import RenderState
from newsreel.models.media import AudioTrack
from newsreel.models.output import ProgressStage
from newsreel.models.script import VoiceProfile
from newsreel.tools.encoder import Encoder
from newsreel.tools.probe import DurationProbe
from newsreel.tools.process import remove_paths
from newsreel.tools.tts import SpeechEngine

logger = structlog.get_logger()

SAMPLE_RATE = 44100
TEMPO = 1.15

# Resampling at 95%/105% of the nominal rate is a cheap pitch shift; it
# couples pitch and tempo slightly.
_PITCH_RATIO: dict[VoiceProfile, float] = {
    VoiceProfile.MALE: 0.95,
    VoiceProfile.FEMALE: 1.05,
}

# Rough speaking rate used when the synthesized file cannot be probed.
_WORDS_PER_SEC = 2.6

_STAGE_DIRECTION_RE = re.compile(r"\[[^\]]*\]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Strip bracketed stage directions (``[VISUAL: ...]``) and collapse whitespace."""
    return _WHITESPACE_RE.sub(" ", _STAGE_DIRECTION_RE.sub("", text)).strip()


def voice_filter(profile: VoiceProfile) -> str:
    """Audio filter chain for *profile*; depends on nothing else."""
    ratio = _PITCH_RATIO[VoiceProfile(profile)]
    return f"atempo={TEMPO},asetrate={SAMPLE_RATE}*{ratio},aresample={SAMPLE_RATE}"


def estimate_duration(text: str) -> float:
    words = len(text.split())
    return round(words / _WORDS_PER_SEC / TEMPO, 2)


class VoiceSynthesizer:
    def __init__(self, engine: SpeechEngine, encoder: Encoder, probe: DurationProbe):
        self.engine = engine
        self.encoder = encoder
        self.probe = probe

    async def synthesize(self, text: str, profile: VoiceProfile, work_dir: Path) -> AudioTrack:
        """Produce a pitch/tempo-adjusted WAV narration track.

        Raises:
            SynthesisFailed: Either stage failed; partial files are removed.
        """
        profile = VoiceProfile(profile)
        clean = normalize_text(text)
        work_dir = Path(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)

        token = uuid.uuid4().hex[:10]
        raw_path = work_dir / f"tts_{token}_raw.mp3"
        wav_path = work_dir / f"tts_{token}.wav"

        logger.info("voice.synthesize.start", profile=profile.value, text_len=len(clean))

        try:
            # Stage A: raw speech
            await self.engine.synthesize(clean, raw_path, profile)
            if not raw_path.is_file() or raw_path.stat().st_size == 0:
                raise RuntimeError("TTS engine produced an empty audio file")

            # Stage B: tempo + pitch
            await self.encoder.run(
                [
                    "-i", str(raw_path),
                    "-af", voice_filter(profile),
                    "-ar", str(SAMPLE_RATE),
                    "-ac", "2",
                ],
                wav_path,
                timeout=settings.clip_timeout_sec,
            )
        except VideoPipelineError:
            remove_paths([raw_path, wav_path])
            raise
        except Exception as exc:
            remove_paths([raw_path, wav_path])
            logger.exception("voice.synthesize.failed", profile=profile.value)
            raise SynthesisFailed(f"Voice generation failed: {exc}") from exc

        remove_paths([raw_path])

        duration = await self.probe.measure(wav_path, fallback=estimate_duration(clean))
        logger.info(
            "voice.synthesize.done",
            path=wav_path.name,
            duration=duration,
            size_kb=round(wav_path.stat().st_size / 1024, 1),
        )
        return AudioTrack(path=str(wav_path), duration_hint=duration)


# ---------------------------------------------------------------------------
# Node implementation
# ---------------------------------------------------------------------------


async def synthesize_voice(state: RenderState, config: RunnableConfig) -> dict:
    """Narrate the whole script with the requested voice profile."""
    voice = get_deps(config).voice
    progress = get_progress(config)
    request = state["request"]

    progress.emit(ProgressStage.VOICE, 25, "Generating voice narration...")
    audio = await voice.synthesize(request.narration, request.voice_profile, Path(state["work_dir"]) / "audio")
    progress.emit(ProgressStage.VOICE, 45, "Voice narration generated successfully")
    return {"audio": audio}
