"""Pipeline collaborators, wired once and injected into every node."""

from __future__ import annotations

from dataclasses import dataclass

from newsreel.nodes.assembler import SceneVideoAssembler
from newsreel.nodes.stock_footage import StockFootageSource
from newsreel.nodes.template_images import TemplateImageSource
from newsreel.nodes.visuals import VisualSourcing
from newsreel.nodes.voice import VoiceSynthesizer
from newsreel.tools.encoder import Encoder
from newsreel.tools.ffmpeg_locator import ToolLocator, get_ffmpeg_locator
from newsreel.tools.pexels import FootageSearch, PexelsClient
from newsreel.tools.probe import DurationProbe
from newsreel.tools.tts import SpeechEngine, get_speech_engine


@dataclass
class PipelineDeps:
    locator: ToolLocator
    voice: VoiceSynthesizer
    visuals: VisualSourcing
    assembler: SceneVideoAssembler
    probe: DurationProbe


def build_pipeline_deps(
    locator: ToolLocator | None = None,
    encoder: Encoder | None = None,
    engine: SpeechEngine | None = None,
    search: FootageSearch | None = None,
    probe: DurationProbe | None = None,
) -> PipelineDeps:
    """Wire the production collaborators; any of them can be replaced."""
    locator = locator or get_ffmpeg_locator()
    encoder = encoder or Encoder(locator)
    probe = probe or DurationProbe(locator)
    return PipelineDeps(
        locator=locator,
        voice=VoiceSynthesizer(engine or get_speech_engine(), encoder, probe),
        visuals=VisualSourcing(
            StockFootageSource(search or PexelsClient()),
            TemplateImageSource(encoder),
        ),
        assembler=SceneVideoAssembler(encoder),
        probe=probe,
    )
