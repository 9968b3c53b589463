"""Monotonic progress reporting with fan-out to subscribers."""

from __future__ import annotations

import asyncio

import structlog

from newsreel.models.output import ProgressEvent, ProgressStage

logger = structlog.get_logger()

_TERMINAL = {ProgressStage.DONE, ProgressStage.ERROR}


class ProgressTracker:
    """Records (stage, percent, message) events; percent never goes down.

    Subscribers get an ``asyncio.Queue`` pre-filled with the history, so a
    late subscriber still sees every event.
    """

    def __init__(self, run_id: str = ""):
        self.run_id = run_id
        self.events: list[ProgressEvent] = []
        self._subscribers: set[asyncio.Queue[ProgressEvent]] = set()

    @property
    def latest(self) -> ProgressEvent | None:
        return self.events[-1] if self.events else None

    @property
    def finished(self) -> bool:
        return bool(self.events) and self.events[-1].stage in _TERMINAL

    def emit(
        self,
        stage: ProgressStage,
        progress: int,
        message: str,
        error_stage: str | None = None,
    ) -> ProgressEvent:
        if self.finished:
            return self.events[-1]
        floor = self.events[-1].progress if self.events else 0
        event = ProgressEvent(
            stage=stage,
            progress=max(min(progress, 100), floor),
            message=message,
            error_stage=error_stage,
        )
        self.events.append(event)
        logger.info(
            "progress",
            run_id=self.run_id,
            stage=event.stage.value,
            progress=event.progress,
            message=message,
        )
        for queue in self._subscribers:
            queue.put_nowait(event)
        return event

    def subscribe(self) -> asyncio.Queue[ProgressEvent]:
        queue: asyncio.Queue[ProgressEvent] = asyncio.Queue()
        for event in self.events:
            queue.put_nowait(event)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[ProgressEvent]) -> None:
        self._subscribers.discard(queue)
