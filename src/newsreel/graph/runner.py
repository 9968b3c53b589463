"""Run one render through the graph and translate the outcome."""

from __future__ import annotations

import shutil
import uuid
from pathlib import Path

import structlog

from newsreel.config import settings
from newsreel.errors import VideoPipelineError
from newsreel.graph.builder import build_graph
from newsreel.graph.deps import PipelineDeps, build_pipeline_deps
from newsreel.graph.progress import ProgressTracker
from newsreel.models.media import MediaResult
from newsreel.models.output import ProgressStage
from newsreel.models.script import VideoRequest

logger = structlog.get_logger()


class VideoPipeline:
    def __init__(self, deps: PipelineDeps | None = None, work_root: Path | None = None):
        self.deps = deps or build_pipeline_deps()
        self.work_root = Path(work_root or settings.work_dir)
        self.graph = build_graph()

    async def run(
        self,
        request: VideoRequest,
        progress: ProgressTracker | None = None,
        run_id: str | None = None,
    ) -> MediaResult:
        """Render *request* and return the finished file.

        The per-run work directory is removed whatever the outcome.

        Raises:
            VideoPipelineError: With ``stage`` set to the failing stage.
        """
        run_id = run_id or uuid.uuid4().hex
        progress = progress or ProgressTracker(run_id)
        work_dir = self.work_root / f"run_{run_id}"
        config = {"configurable": {"deps": self.deps, "progress": progress}}

        logger.info("pipeline.start", run_id=run_id, scene_count=len(request.scenes))
        try:
            final_state = await self.graph.ainvoke(
                {"request": request, "run_id": run_id, "work_dir": str(work_dir)},
                config=config,
            )
        except VideoPipelineError as exc:
            logger.error("pipeline.failed", run_id=run_id, stage=exc.stage, error=exc.message)
            progress.emit(ProgressStage.ERROR, 0, exc.message, error_stage=exc.stage)
            raise
        except Exception as exc:
            logger.exception("pipeline.failed", run_id=run_id)
            error = VideoPipelineError(f"Video creation failed: {exc}")
            progress.emit(ProgressStage.ERROR, 0, error.message, error_stage=error.stage)
            raise error from exc
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        result: MediaResult = final_state["result"]
        progress.emit(ProgressStage.DONE, 100, "Video created successfully!")
        logger.info("pipeline.done", run_id=run_id, path=result.path)
        return result
