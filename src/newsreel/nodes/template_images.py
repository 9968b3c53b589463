"""Template image selection — one pre-made still per scene, chosen by category."""

from __future__ import annotations

import uuid
from enum import Enum
from pathlib import Path

import structlog

from newsreel.config import get_assets_dir, settings
from newsreel.errors import ImageGenerationFailed, NoImagesGenerated, VideoPipelineError
from newsreel.models.media import TemplateImage
from newsreel.models.script import SceneModel
from newsreel.tools.encoder import Encoder

logger = structlog.get_logger()


class TemplateCategory(str, Enum):
    MILITARY = "military"
    TECHNOLOGY = "technology"
    NATURE = "nature"
    GOVERNMENT = "government"
    SCIENCE = "science"
    GENERIC = "generic"


# Checked in order; the first category with a matching substring wins.
CATEGORY_KEYWORDS: tuple[tuple[TemplateCategory, tuple[str, ...]], ...] = (
    (TemplateCategory.MILITARY, ("military", "defense", "war", "troop")),
    (TemplateCategory.TECHNOLOGY, ("technology", "computer", "digital", "quantum")),
    (TemplateCategory.NATURE, ("nature", "environment", "forest", "wildlife")),
    (TemplateCategory.GOVERNMENT, ("government", "congress", "politics", "legislation")),
    (TemplateCategory.SCIENCE, ("science", "research", "laboratory", "discovery")),
)


def classify(description: str) -> TemplateCategory:
    text = description.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in text for k in keywords):
            return category
    return TemplateCategory.GENERIC


def template_path(category: TemplateCategory, template_dir: Path | None = None) -> Path:
    base = template_dir or get_assets_dir() / "templates"
    return Path(base) / f"{category.value}.jpg"


class TemplateImageSource:
    def __init__(self, encoder: Encoder, template_dir: Path | None = None):
        self.encoder = encoder
        self.template_dir = template_dir

    async def select_images(self, scenes: list[SceneModel], work_dir: Path) -> list[TemplateImage]:
        """Normalize one category template per scene to the output frame size.

        Fails fast: inputs are local files, so any miss is an error.

        Raises:
            ImageGenerationFailed: A scene's template is missing or could not be scaled.
            NoImagesGenerated: *scenes* was empty.
        """
        work_dir = Path(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)
        width, height = settings.video_width, settings.video_height

        logger.info("template_images.start", scene_count=len(scenes))
        images: list[TemplateImage] = []

        for scene in scenes:
            category = classify(scene.visual_description)
            source = template_path(category, self.template_dir)
            output = work_dir / f"template_scene_{scene.scene_number}_{uuid.uuid4().hex[:8]}.jpg"

            if not source.is_file():
                logger.error("template_images.missing_template", scene_number=scene.scene_number, template=str(source))
                raise ImageGenerationFailed(scene.scene_number, f"template {source.name} not found")

            try:
                await self.encoder.run(
                    [
                        "-i", str(source),
                        "-vf", (
                            f"scale={width}:{height}:force_original_aspect_ratio=increase,"
                            f"crop={width}:{height}"
                        ),
                        "-q:v", "2",
                        "-frames:v", "1",
                        "-update", "1",
                    ],
                    output,
                    timeout=settings.clip_timeout_sec,
                )
            except VideoPipelineError:
                raise
            except Exception as exc:
                raise ImageGenerationFailed(scene.scene_number, str(exc)) from exc

            images.append(TemplateImage(path=str(output), scene_number=scene.scene_number))
            logger.info("template_images.scene_done", scene_number=scene.scene_number, category=category.value)

        if not images:
            raise NoImagesGenerated("Failed to generate any scene images")

        logger.info("template_images.done", image_count=len(images))
        return images
