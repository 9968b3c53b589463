"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newsreel.api.dependencies import get_pipeline
from newsreel.api.routes import router
from newsreel.api.schemas import HealthResponse
from newsreel.config import configure_logging, settings
from newsreel.errors import ToolNotFound
from newsreel.graph.runner import VideoPipeline

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# CORS configuration
# ---------------------------------------------------------------------------

_DEFAULT_ORIGINS = {
    "http://localhost:3000",
    "http://127.0.0.1:3000",
}


def _get_allowed_origins() -> set[str]:
    origins = set(_DEFAULT_ORIGINS)
    if settings.allowed_origins:
        origins.update(o.strip() for o in settings.allowed_origins.split(",") if o.strip())
    return origins


_ALLOWED_ORIGINS = _get_allowed_origins()


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and report whether ffmpeg is reachable."""
    configure_logging()
    logger.info("app.startup", allowed_origins=sorted(_ALLOWED_ORIGINS))
    try:
        ffmpeg = await get_pipeline().deps.locator.resolve()
        logger.info("app.ffmpeg", path=ffmpeg)
    except ToolNotFound as exc:
        # Renders will fail with tool-missing; the API itself still serves.
        logger.warning("app.ffmpeg_missing", error=exc.message)
    yield
    logger.info("app.shutdown")


app = FastAPI(
    title="Newsreel Video Assembler",
    description="Turns scripted scenes into narrated MP4 videos",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(_ALLOWED_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health", response_model=HealthResponse)
async def health_check(pipeline: VideoPipeline = Depends(get_pipeline)):
    return HealthResponse(ffmpeg=pipeline.deps.locator.cached_path)
