"""Pexels video search and download — async helpers.

Pexels API docs: https://www.pexels.com/api/documentation/
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Protocol

import httpx
import structlog
from pydantic import BaseModel, Field

from newsreel.config import settings
from newsreel.errors import FootageSearchUnavailable
from newsreel.tools.process import remove_paths

logger = structlog.get_logger()

_DOWNLOAD_CHUNK = 65536


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class PexelsVideoFile(BaseModel):
    id: int = 0
    quality: str | None = None
    file_type: str | None = None
    width: int | None = None
    height: int | None = None
    link: str


class PexelsVideo(BaseModel):
    id: int
    width: int = 0
    height: int = 0
    duration: float = 0
    video_files: list[PexelsVideoFile] = Field(default_factory=list)


class PexelsSearchResponse(BaseModel):
    videos: list[PexelsVideo] = Field(default_factory=list)
    page: int = 1
    per_page: int = 0
    total_results: int = 0


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


class RateLimiter:
    """Enforce a minimum spacing between calls, shared by concurrent tasks."""

    def __init__(self, interval_sec: float):
        self.interval_sec = interval_sec
        self._lock = asyncio.Lock()
        self._last: float | None = None

    async def wait(self) -> None:
        async with self._lock:
            now = time.monotonic()
            if self._last is not None:
                delay = self._last + self.interval_sec - now
                if delay > 0:
                    await asyncio.sleep(delay)
            self._last = time.monotonic()


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class FootageSearch(Protocol):
    async def search(self, query: str, per_page: int = 15) -> list[PexelsVideo]: ...

    async def download(self, url: str, output_path: Path) -> Path: ...


class PexelsClient:
    """Landscape stock-video search plus streaming download."""

    def __init__(
        self,
        api_key: str | None = None,
        limiter: RateLimiter | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.pexels_api_key
        self.limiter = limiter or RateLimiter(settings.request_interval_sec)
        self._http = http

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return self._http or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def search(self, query: str, per_page: int = 15, page: int = 1) -> list[PexelsVideo]:
        """Search Pexels for landscape clips.

        Raises:
            FootageSearchUnavailable: No API key configured.
            httpx.HTTPError: The request failed.
        """
        if not self.api_key:
            raise FootageSearchUnavailable(
                "PEXELS_API_KEY not set. Get a free key at https://www.pexels.com/api/"
            )

        await self.limiter.wait()
        client = self._client(timeout=15)
        try:
            resp = await client.get(
                settings.pexels_search_url,
                headers={"Authorization": self.api_key},
                params={
                    "query": query,
                    "orientation": "landscape",
                    "per_page": per_page,
                    "page": page,
                },
            )
            resp.raise_for_status()
        finally:
            if self._http is None:
                await client.aclose()

        try:
            data = PexelsSearchResponse.model_validate(resp.json())
        except ValueError as exc:
            raise httpx.DecodingError(f"Unexpected Pexels search response: {exc}", request=resp.request) from exc
        logger.info("pexels.search.done", query=query, result_count=len(data.videos))
        return data.videos

    async def download(self, url: str, output_path: Path) -> Path:
        """Stream *url* to *output_path*; partial files are removed on failure."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        await self.limiter.wait()
        client = self._client(timeout=60)
        try:
            async with client.stream("GET", url) as stream:
                stream.raise_for_status()
                with open(output_path, "wb") as f:
                    async for chunk in stream.aiter_bytes(chunk_size=_DOWNLOAD_CHUNK):
                        f.write(chunk)
        except BaseException:
            remove_paths([output_path])
            raise
        finally:
            if self._http is None:
                await client.aclose()

        if output_path.stat().st_size == 0:
            remove_paths([output_path])
            raise RuntimeError(f"Downloaded clip is empty: {url}")

        size_mb = output_path.stat().st_size / (1024 * 1024)
        logger.info("pexels.download.done", path=output_path.name, size_mb=round(size_mb, 1))
        return output_path
