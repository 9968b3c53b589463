"""Duration probing for finished media files."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from newsreel.config import settings
from newsreel.errors import DurationProbeFailed
from newsreel.tools.ffmpeg_locator import ToolLocator, get_ffmpeg_locator
from newsreel.tools.process import run_process

logger = structlog.get_logger()


class DurationProbe:
    """Measure playable duration; advisory, so failures degrade to an estimate."""

    def __init__(self, locator: ToolLocator | None = None):
        self.locator = locator or get_ffmpeg_locator()

    async def measure(self, path: str | Path, fallback: float) -> float:
        try:
            return await self.probe(path)
        except DurationProbeFailed as exc:
            logger.warning("probe.fallback", path=str(path), fallback=fallback, reason=exc.message)
            return fallback

    async def probe(self, path: str | Path) -> float:
        """Return the container duration in seconds.

        Raises:
            DurationProbeFailed: Neither ffprobe nor moviepy could read it.
        """
        path = str(path)
        ffprobe = await self.locator.resolve_sibling("ffprobe")
        if ffprobe:
            try:
                result = await run_process(
                    [ffprobe, "-v", "quiet", "-show_entries", "format=duration", "-of", "csv=p=0", path],
                    timeout=settings.probe_timeout_sec,
                )
                return _parse_duration(result.stdout)
            except Exception as exc:
                raise DurationProbeFailed(f"ffprobe could not read {path}: {exc}") from exc

        # No ffprobe next to a bundled ffmpeg: let moviepy parse `ffmpeg -i` output.
        loop = asyncio.get_running_loop()

        def _parse_infos() -> float:
            from moviepy.video.io.ffmpeg_reader import ffmpeg_parse_infos  # heavy import

            return float(ffmpeg_parse_infos(path)["duration"])

        try:
            duration = await loop.run_in_executor(None, _parse_infos)
        except Exception as exc:
            raise DurationProbeFailed(f"moviepy could not read {path}: {exc}") from exc
        if duration <= 0:
            raise DurationProbeFailed(f"non-positive duration for {path}")
        return duration


def _parse_duration(text: str) -> float:
    value = float(text.strip().splitlines()[0])
    if value <= 0:
        raise ValueError(f"non-positive duration {value}")
    return value
