"""Visual sourcing — picks a strategy per visual mode and falls back between them."""

from __future__ import annotations

from pathlib import Path

import structlog
from langchain_core.runnables import RunnableConfig

from newsreel.errors import (
    FootageSearchUnavailable,
    ImageGenerationFailed,
    NoImagesGenerated,
    UnsupportedVisualMode,
)
from newsreel.graph.context import get_deps, get_progress
from newsreel.graph.state import RenderState
from newsreel.models.media import StockClip, TemplateImage, VisualAsset
from newsreel.models.output import ProgressStage
from newsreel.models.script import SceneModel, VideoRequest, VisualMode
from newsreel.nodes.stock_footage import StockFootageSource
from newsreel.nodes.template_images import TemplateImageSource

logger = structlog.get_logger()


class GenerativeVideoSource:
    """Generated video is not supported; this stub rejects the mode."""

    async def generate(self, scenes: list[SceneModel]) -> list[StockClip]:
        raise UnsupportedVisualMode(
            "AI video generation is not available. Use the 'stock-footage' mode "
            "for motion video or 'template-image' for stills."
        )


class VisualSourcing:
    def __init__(
        self,
        stock: StockFootageSource,
        templates: TemplateImageSource,
        generative: GenerativeVideoSource | None = None,
    ):
        self.stock = stock
        self.templates = templates
        self.generative = generative or GenerativeVideoSource()

    async def source(self, request: VideoRequest, work_dir: Path) -> list[VisualAsset]:
        """Return assets ordered by scene number; scenes may be missing.

        Raises:
            UnsupportedVisualMode: ``generative-video`` was requested.
            ImageGenerationFailed: Template mode failed for a scene.
        """
        work_dir = Path(work_dir)
        if request.visual_mode is VisualMode.GENERATIVE_VIDEO:
            return list(await self.generative.generate(request.scenes))
        if request.visual_mode is VisualMode.TEMPLATE_IMAGE:
            return list(await self.templates.select_images(request.scenes, work_dir / "images"))
        return await self._stock_with_fallback(request, work_dir)

    async def _stock_with_fallback(self, request: VideoRequest, work_dir: Path) -> list[VisualAsset]:
        scenes = request.scenes
        try:
            clips = await self.stock.fetch_clips(scenes, request.topic_context, work_dir / "videos")
        except FootageSearchUnavailable as exc:
            logger.warning("visuals.stock_unavailable", reason=exc.message)
            clips = []

        if not clips:
            logger.info("visuals.fallback_to_templates", scene_count=len(scenes))
            return list(await self._templates_or_nothing(scenes, work_dir))

        found = {c.scene_number for c in clips}
        missing = [s for s in scenes if s.scene_number not in found]
        if not missing:
            return list(clips)

        logger.info("visuals.substituting_missing", scene_numbers=[s.scene_number for s in missing])
        substitutes = await self._templates_or_nothing(missing, work_dir)
        assets: list[VisualAsset] = [*clips, *substitutes]
        return sorted(assets, key=lambda a: a.scene_number)

    async def _templates_or_nothing(self, scenes: list[SceneModel], work_dir: Path) -> list[TemplateImage]:
        try:
            return await self.templates.select_images(scenes, work_dir / "images")
        except (ImageGenerationFailed, NoImagesGenerated) as exc:
            logger.warning("visuals.template_fallback_failed", reason=exc.message)
            return []


# ---------------------------------------------------------------------------
# Node implementation
# ---------------------------------------------------------------------------


async def source_visuals(state: RenderState, config: RunnableConfig) -> dict:
    """Source per-scene visuals for the requested mode."""
    visuals = get_deps(config).visuals
    progress = get_progress(config)
    request = state["request"]
    count = len(request.scenes)

    progress.emit(ProgressStage.VISUALS, 55, f"Fetching visuals for {count} scenes ({request.visual_mode.value})...")
    assets = await visuals.source(request, Path(state["work_dir"]))
    clips = sum(isinstance(a, StockClip) for a in assets)
    progress.emit(
        ProgressStage.VISUALS,
        65,
        f"Sourced {len(assets)}/{count} scene visuals ({clips} video clips)",
    )
    return {"visuals": assets}
