"""Prepare node — resolves ffmpeg before any work and creates the run directory."""

from __future__ import annotations

from pathlib import Path

import structlog
from langchain_core.runnables import RunnableConfig

from newsreel.graph.context import get_deps, get_progress
from newsreel.graph.state import RenderState
from newsreel.models.output import ProgressStage

logger = structlog.get_logger()


async def prepare(state: RenderState, config: RunnableConfig) -> dict:
    """Fail fast with ``ToolNotFound`` so no synthesis or download starts without ffmpeg."""
    progress = get_progress(config)
    progress.emit(ProgressStage.PREPARING, 10, "Preparing video generation...")

    ffmpeg_path = await get_deps(config).locator.resolve()
    Path(state["work_dir"]).mkdir(parents=True, exist_ok=True)

    request = state["request"]
    logger.info(
        "prepare.done",
        run_id=state["run_id"],
        ffmpeg=ffmpeg_path,
        scene_count=len(request.scenes),
        voice_profile=request.voice_profile.value,
        visual_mode=request.visual_mode.value,
    )
    return {"ffmpeg_path": ffmpeg_path}
