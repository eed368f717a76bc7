"""In-process notification fan-out for transcript observers."""

from __future__ import annotations

import asyncio
import logging
from typing import Literal, Set, Union

from pydantic import BaseModel, Field

from ..store.models import TranscriptSegment

LOGGER = logging.getLogger("livescribe.events")


class TranscriptUpdate(BaseModel):
    type: Literal["TRANSCRIPT_UPDATE"] = "TRANSCRIPT_UPDATE"
    transcript_id: str = Field(alias="transcriptId")
    data: TranscriptSegment

    model_config = {"populate_by_name": True}


class RecordingError(BaseModel):
    type: Literal["RECORDING_ERROR"] = "RECORDING_ERROR"
    message: str


Event = Union[TranscriptUpdate, RecordingError]


class EventBus:
    """Each subscriber gets its own bounded queue; publishing never blocks."""

    def __init__(self, *, max_queue: int = 256) -> None:
        self.max_queue = max_queue
        self._subscribers: Set[asyncio.Queue] = set()

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def publish(self, event: Event) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                LOGGER.warning("Observer queue full; dropped %s", event.type)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


__all__ = ["Event", "EventBus", "RecordingError", "TranscriptUpdate"]
