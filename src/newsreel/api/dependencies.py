"""FastAPI dependency injection — pipeline instance and job registry."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from newsreel.errors import VideoPipelineError
from newsreel.graph.progress import ProgressTracker
from newsreel.graph.runner import VideoPipeline
from newsreel.models.media import MediaResult
from newsreel.models.output import FailureModel, JobStatusModel


@dataclass
class Job:
    job_id: str
    progress: ProgressTracker
    status: str = "pending"
    result: Optional[MediaResult] = None
    error: Optional[FailureModel] = None

    def mark_failed(self, exc: VideoPipelineError) -> None:
        self.status = "error"
        self.error = FailureModel(**exc.to_dict())

    def to_status(self) -> JobStatusModel:
        return JobStatusModel(
            job_id=self.job_id,
            status=self.status,
            progress=self.progress.latest,
            result=self.result,
            error=self.error,
        )


class JobRegistry:
    """In-memory registry of render jobs; lost on restart."""

    def __init__(self):
        self._jobs: dict[str, Job] = {}

    def create(self, job_id: str) -> Job:
        job = Job(job_id=job_id, progress=ProgressTracker(job_id))
        self._jobs[job_id] = job
        return job

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)


@lru_cache(maxsize=1)
def get_pipeline() -> VideoPipeline:
    """Return the singleton pipeline wired with production collaborators."""
    return VideoPipeline()


@lru_cache(maxsize=1)
def get_job_registry() -> JobRegistry:
    return JobRegistry()
