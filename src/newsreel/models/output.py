"""Pydantic models for progress and job output."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from newsreel.models.media import MediaResult


class ProgressStage(str, Enum):
    PREPARING = "preparing"
    VOICE = "voice"
    VISUALS = "visuals"
    ASSEMBLY = "assembly"
    FINALIZE = "finalize"
    DONE = "done"
    ERROR = "error"


class ProgressEvent(BaseModel):
    stage: ProgressStage
    progress: int = Field(ge=0, le=100)
    message: str
    error_stage: Optional[str] = None


class FailureModel(BaseModel):
    stage: str
    message: str
    type: str


class JobStatusModel(BaseModel):
    job_id: str
    status: str  # "pending" | "processing" | "completed" | "error"
    progress: Optional[ProgressEvent] = None
    result: Optional[MediaResult] = None
    error: Optional[FailureModel] = None
