"""Pydantic models for media assets."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class AudioTrack(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    duration_hint: float


class StockClip(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["stock_clip"] = "stock_clip"
    path: str
    scene_number: int
    source_duration: float


class TemplateImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["template_image"] = "template_image"
    path: str
    scene_number: int


VisualAsset = Annotated[Union[StockClip, TemplateImage], Field(discriminator="kind")]


class MediaResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    measured_duration_seconds: float
    size_bytes: int
