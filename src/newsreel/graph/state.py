"""Render state shared across the LangGraph nodes."""

from __future__ import annotations

from typing import Optional

from typing_extensions import TypedDict

from newsreel.models.media import AudioTrack, MediaResult, VisualAsset
from newsreel.models.script import VideoRequest


class RenderState(TypedDict, total=False):
    """State for one render run."""

    # Run configuration (set once at start)
    request: VideoRequest
    run_id: str
    work_dir: str

    # Node outputs
    ffmpeg_path: Optional[str]
    audio: Optional[AudioTrack]
    visuals: Optional[list[VisualAsset]]
    video_path: Optional[str]
    result: Optional[MediaResult]
