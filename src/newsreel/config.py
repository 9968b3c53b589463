"""Application configuration loaded from environment variables."""

import logging
from pathlib import Path

import structlog
from pydantic_settings import BaseSettings

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Stock footage
    pexels_api_key: str = ""
    pexels_search_url: str = "https://api.pexels.com/videos/search"
    pexels_per_page: int = 15
    request_interval_sec: float = 0.5
    max_parallel_downloads: int = 3

    # Text-to-speech ("gtts" | "elevenlabs")
    tts_engine: str = "gtts"
    tts_command: str = "gtts-cli"
    tts_language: str = "en"
    tts_timeout_sec: float = 180.0
    elevenlabs_api_key: str = ""
    voice_id_male: str = ""
    voice_id_female: str = ""

    # ffmpeg discovery
    ffmpeg_search_paths: list[str] = [
        "/usr/bin/ffmpeg",
        "/usr/local/bin/ffmpeg",
        "/opt/homebrew/bin/ffmpeg",
    ]

    # Video output
    video_width: int = 1280
    video_height: int = 720
    video_fps: int = 30
    fade_sec: float = 0.5
    min_scene_sec: float = 0.1
    audio_bitrate: str = "192k"
    background_color: str = "0x1e40af"
    title_font: str = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"
    title_fontsize: int = 48
    max_parallel_encodes: int = 2

    # Timeouts / process limits
    clip_timeout_sec: float = 120.0
    assembly_timeout_base_sec: float = 300.0
    assembly_timeout_per_scene_sec: float = 60.0
    probe_timeout_sec: float = 30.0
    command_output_limit: int = 64 * 1024

    # Directories
    output_base_dir: str = "./output"
    work_dir: str = "./temp"
    assets_dir: str = ""

    # Server
    log_level: str = "INFO"
    allowed_origins: str = ""


settings = Settings()


def get_assets_dir() -> Path:
    """Return the assets directory (templates live under ``templates/``)."""
    if settings.assets_dir:
        return Path(settings.assets_dir)
    return _PROJECT_ROOT / "assets"


def configure_logging() -> None:
    """Apply ``settings.log_level`` to structlog's default logger."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))
