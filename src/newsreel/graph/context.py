"""Accessors for objects injected through ``config["configurable"]``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.runnables import RunnableConfig

from newsreel.graph.progress import ProgressTracker

if TYPE_CHECKING:
    from newsreel.graph.deps import PipelineDeps


def get_deps(config: RunnableConfig) -> PipelineDeps:
    return config["configurable"]["deps"]


def get_progress(config: RunnableConfig) -> ProgressTracker:
    return config["configurable"]["progress"]
