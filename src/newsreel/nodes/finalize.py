"""Finalize node — measures the rendered file."""

from __future__ import annotations

from pathlib import Path

import structlog
from langchain_core.runnables import RunnableConfig

from newsreel.graph.context import get_deps, get_progress
from newsreel.graph.state import RenderState
from newsreel.models.media import MediaResult
from newsreel.models.output import ProgressStage

logger = structlog.get_logger()


async def finalize(state: RenderState, config: RunnableConfig) -> dict:
    """Probe the true duration (falling back to the requested one) and file size."""
    probe = get_deps(config).probe
    progress = get_progress(config)
    request = state["request"]
    video_path = Path(state["video_path"])

    progress.emit(ProgressStage.FINALIZE, 90, "Finalizing video...")
    measured = await probe.measure(video_path, fallback=request.requested_duration)

    result = MediaResult(
        path=str(video_path),
        measured_duration_seconds=round(measured, 2),
        size_bytes=video_path.stat().st_size,
    )
    logger.info(
        "finalize.done",
        run_id=state["run_id"],
        path=result.path,
        duration=result.measured_duration_seconds,
        size_bytes=result.size_bytes,
    )
    return {"result": result}
