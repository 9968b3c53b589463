"""Stock footage sourcing — per-scene search, ranking and download."""

from __future__ import annotations

import asyncio
import re
import uuid
from pathlib import Path

import structlog

from newsreel.config import settings
from newsreel.errors import FootageSearchUnavailable, SourcingPartialFailure
from newsreel.models.media import StockClip
from newsreel.models.script import SceneModel, TopicContext
from newsreel.tools.pexels import FootageSearch, PexelsVideo, PexelsVideoFile

logger = structlog.get_logger()

MAX_QUERY_WORDS = 5
HD_WIDTH = 1280
PREFERRED_WIDTHS = (1280, 1920)

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "for", "with",
    "by", "as", "is", "are", "was", "were", "this", "that", "these", "those",
    "showing", "shows", "show", "scene", "visual", "footage", "image",
    "background", "people", "person", "man", "woman", "working",
})

# Curated domain vocabulary. Generic keyword extraction from free text
# returns irrelevant footage (a "quantum computing" scene must not match
# office workers), so these always win when present.
PRIORITY_KEYWORDS = frozenset({
    # Tech/Computing
    "quantum", "computing", "technology", "computer", "processor", "chip",
    "algorithm", "data", "server", "circuit", "electronics", "semiconductor",
    "software", "hardware", "code", "programming",
    # Outdoors/Nature
    "hiking", "trail", "mountain", "nature", "forest", "wilderness", "outdoor",
    "camping", "backpacking", "scenic", "landscape", "peak", "summit", "valley",
    # Government/Politics
    "government", "congress", "senate", "capitol", "president", "legislation",
    "policy", "political", "federal", "washington", "parliament",
    # Military/Defense
    "military", "defense", "army", "navy", "soldier", "weapon", "combat",
    "tactical", "warfare", "forces", "troops",
    # Space/Astronomy
    "space", "rocket", "satellite", "nasa", "telescope", "astronaut", "planet",
    "mars", "moon", "orbit", "launch", "spacecraft", "galaxy", "star",
    # Science/Research
    "research", "scientist", "laboratory", "experiment", "innovation",
    "discovery", "scientific", "study", "analysis", "microscope",
    # Business/Economy
    "business", "economy", "market", "finance", "industry", "company",
    "corporate", "stock", "trade", "investment",
})


def _topic_prefix(topic_context: TopicContext | None) -> str:
    if topic_context is None:
        return ""
    source = topic_context.sub_topic or topic_context.topic or ""
    return " ".join(re.sub(r"[^a-z\s]", " ", source.lower()).split())


def build_search_query(description: str, topic_context: TopicContext | None = None) -> str:
    """Topic prefix + up to two domain keywords (else two content words), max 5 words."""
    prefix = _topic_prefix(topic_context)

    words = [
        w for w in re.sub(r"[^\w\s]", " ", description.lower()).split()
        if len(w) > 2 and w not in STOP_WORDS
    ]
    priority = [w for w in words if w in PRIORITY_KEYWORDS]
    regular = [w for w in words if w not in PRIORITY_KEYWORDS and len(w) > 3]

    terms: list[str] = prefix.split()
    if priority:
        terms.extend(priority[:2])
        if regular and len(terms) < MAX_QUERY_WORDS:
            terms.append(regular[0])
    else:
        terms.extend(regular[:2])

    if not terms:
        terms = (prefix or description[:30]).split()

    return " ".join(terms[:MAX_QUERY_WORDS])


def score_candidate(video: PexelsVideo) -> int:
    duration_score = 2 if 5 <= video.duration <= 30 else 1
    quality_score = 2 if any((f.width or 0) >= HD_WIDTH for f in video.video_files) else 1
    return duration_score + quality_score


def rank_candidates(videos: list[PexelsVideo]) -> PexelsVideo | None:
    """Highest score wins; ties keep the API's order (first encountered)."""
    best: PexelsVideo | None = None
    best_score = -1
    for video in videos:
        score = score_candidate(video)
        if score > best_score:
            best, best_score = video, score
    return best


def pick_rendition(video: PexelsVideo) -> PexelsVideoFile | None:
    for f in video.video_files:
        if f.width in PREFERRED_WIDTHS:
            return f
    return video.video_files[0] if video.video_files else None


class StockFootageSource:
    def __init__(self, search: FootageSearch, max_parallel: int | None = None):
        self.search = search
        self._semaphore = asyncio.Semaphore(max_parallel or settings.max_parallel_downloads)

    async def fetch_clips(
        self,
        scenes: list[SceneModel],
        topic_context: TopicContext | None,
        work_dir: Path,
    ) -> list[StockClip]:
        """Fetch one clip per scene where possible.

        Scenes that fail are logged and left out; the result is in ascending
        scene order.

        Raises:
            FootageSearchUnavailable: The search service is not configured.
        """
        work_dir = Path(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)
        logger.info(
            "stock.fetch.start",
            scene_count=len(scenes),
            topic=topic_context.topic if topic_context else None,
            sub_topic=topic_context.sub_topic if topic_context else None,
        )

        tasks = [asyncio.create_task(self._fetch_scene(scene, topic_context, work_dir)) for scene in scenes]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        clips = sorted((c for c in results if c is not None), key=lambda c: c.scene_number)

        logger.info("stock.fetch.done", requested=len(scenes), downloaded=len(clips))
        return clips

    async def _fetch_scene(
        self,
        scene: SceneModel,
        topic_context: TopicContext | None,
        work_dir: Path,
    ) -> StockClip | None:
        async with self._semaphore:
            try:
                return await self._fetch_one(scene, topic_context, work_dir)
            except FootageSearchUnavailable:
                raise
            except Exception as exc:
                logger.warning(
                    "stock.scene_failed",
                    scene_number=scene.scene_number,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return None

    async def _fetch_one(
        self,
        scene: SceneModel,
        topic_context: TopicContext | None,
        work_dir: Path,
    ) -> StockClip:
        query = build_search_query(scene.visual_description, topic_context)
        logger.info(
            "stock.scene_query",
            scene_number=scene.scene_number,
            description=scene.visual_description[:80],
            query=query,
        )

        videos = await self.search.search(query, per_page=settings.pexels_per_page)
        video = rank_candidates(videos)
        if video is None:
            raise SourcingPartialFailure(scene.scene_number, f"no videos found for {query!r}")

        rendition = pick_rendition(video)
        if rendition is None:
            raise SourcingPartialFailure(scene.scene_number, f"video {video.id} has no downloadable files")

        logger.info(
            "stock.scene_selected",
            scene_number=scene.scene_number,
            video_id=video.id,
            duration=video.duration,
            score=score_candidate(video),
            width=rendition.width,
        )
        path = work_dir / f"pexels_scene_{scene.scene_number}_{uuid.uuid4().hex[:8]}.mp4"
        await self.search.download(rendition.link, path)
        return StockClip(path=str(path), scene_number=scene.scene_number, source_duration=video.duration)
