"""FastAPI route handlers for the video API."""

from __future__ import annotations

import asyncio
import json
import uuid
from pathlib import Path

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import FileResponse
from sse_starlette.sse import EventSourceResponse

from newsreel.api.dependencies import Job, JobRegistry, get_job_registry, get_pipeline
from newsreel.api.schemas import VideoCreateResponse
from newsreel.errors import VideoPipelineError
from newsreel.graph.runner import VideoPipeline
from newsreel.models.output import JobStatusModel, ProgressStage
from newsreel.models.script import VideoRequest

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/videos")

# Seconds between keep-alive checks while waiting for progress events.
_STREAM_POLL_SEC = 15.0


def _get_job(job_id: str, registry: JobRegistry) -> Job:
    job = registry.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Video job {job_id} not found")
    return job


async def _run_job(job: Job, request: VideoRequest, pipeline: VideoPipeline) -> None:
    """Execute one render in the background and record the outcome on *job*."""
    job.status = "processing"
    try:
        job.result = await pipeline.run(request, progress=job.progress, run_id=job.job_id)
    except VideoPipelineError as exc:
        # Already logged and reported through progress by the pipeline
        job.mark_failed(exc)
        return
    job.status = "completed"


@router.post("", response_model=VideoCreateResponse, status_code=202)
async def create_video(
    request: VideoRequest,
    background_tasks: BackgroundTasks,
    pipeline: VideoPipeline = Depends(get_pipeline),
    registry: JobRegistry = Depends(get_job_registry),
):
    """Start a render in the background."""
    job = registry.create(uuid.uuid4().hex)
    background_tasks.add_task(_run_job, job, request, pipeline)
    logger.info(
        "video.job.created",
        job_id=job.job_id,
        scene_count=len(request.scenes),
        visual_mode=request.visual_mode.value,
    )
    return VideoCreateResponse(job_id=job.job_id, status=job.status)


@router.get("/{job_id}", response_model=JobStatusModel)
async def get_video_status(job_id: str, registry: JobRegistry = Depends(get_job_registry)):
    """Current status, last progress event, and result or error."""
    return _get_job(job_id, registry).to_status()


@router.get("/{job_id}/stream")
async def stream_video_progress(
    job_id: str,
    request: Request,
    registry: JobRegistry = Depends(get_job_registry),
):
    """Stream progress events over SSE until the job finishes."""
    job = _get_job(job_id, registry)

    async def event_generator():
        queue = job.progress.subscribe()
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=_STREAM_POLL_SEC)
                except asyncio.TimeoutError:
                    continue
                yield {"event": event.stage.value, "data": json.dumps(event.model_dump(mode="json"))}
                if event.stage in (ProgressStage.DONE, ProgressStage.ERROR):
                    break
        finally:
            job.progress.unsubscribe(queue)

    return EventSourceResponse(event_generator())


@router.get("/{job_id}/download")
async def download_video(job_id: str, registry: JobRegistry = Depends(get_job_registry)):
    """Return the finished MP4."""
    job = _get_job(job_id, registry)
    if job.result is None:
        raise HTTPException(status_code=409, detail=f"Video job {job_id} is {job.status}")

    path = Path(job.result.path)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Video file no longer exists")
    return FileResponse(path, media_type="video/mp4", filename=path.name)
