"""Response schemas for the FastAPI endpoints.

The create endpoint takes ``VideoRequest`` directly; it already accepts
camelCase and snake_case keys.
"""

from __future__ import annotations

from pydantic import BaseModel


class VideoCreateResponse(BaseModel):
    job_id: str
    status: str = "pending"


class HealthResponse(BaseModel):
    status: str = "ok"
    ffmpeg: str | None = None
