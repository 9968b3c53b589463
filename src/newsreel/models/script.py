"""Pydantic models for script input."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class VoiceProfile(str, Enum):
    MALE = "male"
    FEMALE = "female"


class VisualMode(str, Enum):
    STOCK_FOOTAGE = "stock-footage"
    TEMPLATE_IMAGE = "template-image"
    GENERATIVE_VIDEO = "generative-video"  # rejected by the generative stub


class SceneModel(BaseModel):
    """One timed unit of narration + visual direction."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    scene_number: int = Field(gt=0)
    narration: str = ""
    visual_description: str = ""
    duration: float = Field(ge=0)


class TopicContext(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    topic: str = ""
    sub_topic: str | None = None


class VideoRequest(BaseModel):
    """Everything the core needs for one render."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    title: str = ""
    scenes: list[SceneModel] = Field(min_length=1)
    voice_profile: VoiceProfile = VoiceProfile.FEMALE
    visual_mode: VisualMode = VisualMode.STOCK_FOOTAGE
    target_duration: float | None = Field(default=None, ge=0)
    topic_context: TopicContext | None = None

    @field_validator("scenes")
    @classmethod
    def _order_scenes(cls, scenes: list[SceneModel]) -> list[SceneModel]:
        numbers = [s.scene_number for s in scenes]
        if len(set(numbers)) != len(numbers):
            raise ValueError("scene_number must be unique within a script")
        return sorted(scenes, key=lambda s: s.scene_number)

    @property
    def narration(self) -> str:
        return " ".join(s.narration for s in self.scenes)

    @property
    def requested_duration(self) -> float:
        if self.target_duration:
            return self.target_duration
        return sum(s.duration for s in self.scenes)
