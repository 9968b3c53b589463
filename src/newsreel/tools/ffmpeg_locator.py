"""ffmpeg binary discovery with a process-lifetime cache."""

from __future__ import annotations

import asyncio
import os
import shutil
from functools import lru_cache
from importlib import metadata
from pathlib import Path
from typing import Awaitable, Callable, Optional

import structlog

from newsreel.config import settings
from newsreel.errors import ToolNotFound
from newsreel.tools.process import run_process

logger = structlog.get_logger()

_VERSION_TIMEOUT_SEC = 15


def _is_executable(path: str | os.PathLike | None) -> bool:
    return bool(path) and os.path.isfile(path) and os.access(path, os.X_OK)


async def _responds_to_version(binary: str) -> bool:
    """Check that *binary* runs and answers ``-version``."""
    try:
        await run_process([binary, "-version"], timeout=_VERSION_TIMEOUT_SEC)
    except Exception:
        return False
    return True


# ---------------------------------------------------------------------------
# Strategies (each returns a path or None and never raises)
# ---------------------------------------------------------------------------


async def bundled_binary() -> str | None:
    """The ffmpeg shipped with imageio-ffmpeg (installed alongside moviepy)."""
    try:
        import imageio_ffmpeg

        path = imageio_ffmpeg.get_ffmpeg_exe()
    except Exception:
        logger.debug("ffmpeg_locator.bundled_unavailable", exc_info=True)
        return None
    return path if _is_executable(path) else None


async def package_binary() -> str | None:
    """Resolve the same bundled binary from the installed distribution's file list."""
    try:
        dist = metadata.distribution("imageio-ffmpeg")
        files = dist.files or []
    except Exception:
        logger.debug("ffmpeg_locator.package_unavailable", exc_info=True)
        return None
    for f in files:
        parts = f.parts
        if "binaries" in parts and Path(parts[-1]).name.startswith("ffmpeg"):
            candidate = dist.locate_file(f)
            if _is_executable(candidate):
                return str(candidate)
    return None


async def system_binary() -> str | None:
    """``ffmpeg`` reachable through PATH."""
    path = shutil.which("ffmpeg")
    if path and await _responds_to_version(path):
        return path
    return None


async def well_known_binary() -> str | None:
    for path in settings.ffmpeg_search_paths:
        if _is_executable(path) and await _responds_to_version(path):
            return path
    return None


Strategy = Callable[[], Awaitable[Optional[str]]]

DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    bundled_binary,
    package_binary,
    system_binary,
    well_known_binary,
)


class ToolLocator:
    """Resolve the encoder binary once and reuse it for the process lifetime."""

    def __init__(self, strategies: tuple[Strategy, ...] = DEFAULT_STRATEGIES):
        self._strategies = strategies
        self._path: str | None = None
        self._lock = asyncio.Lock()

    @property
    def cached_path(self) -> str | None:
        return self._path

    async def resolve(self) -> str:
        """Return the cached path, probing the strategies on first use.

        Raises:
            ToolNotFound: If every strategy is exhausted.
        """
        if self._path is not None:
            return self._path
        async with self._lock:
            if self._path is None:
                self._path = await self._probe()
        return self._path

    async def _probe(self) -> str:
        for strategy in self._strategies:
            try:
                path = await strategy()
            except Exception:
                logger.debug("ffmpeg_locator.strategy_error", strategy=strategy.__name__, exc_info=True)
                continue
            if path:
                logger.info("ffmpeg_locator.resolved", strategy=strategy.__name__, path=path)
                return path
            logger.debug("ffmpeg_locator.strategy_miss", strategy=strategy.__name__)

        raise ToolNotFound(
            "ffmpeg not found. Install imageio-ffmpeg (pip install imageio-ffmpeg) "
            "or a system ffmpeg (apt-get install ffmpeg / brew install ffmpeg)."
        )

    async def resolve_sibling(self, name: str) -> str | None:
        """Find a companion tool (e.g. ffprobe) next to ffmpeg or on PATH."""
        ffmpeg = await self.resolve()
        suffix = ".exe" if ffmpeg.lower().endswith(".exe") else ""
        sibling = Path(ffmpeg).with_name(f"{name}{suffix}")
        if _is_executable(sibling):
            return str(sibling)
        return shutil.which(name)


@lru_cache(maxsize=1)
def get_ffmpeg_locator() -> ToolLocator:
    """Return the process-wide locator."""
    return ToolLocator()
