"""Serialized chunk -> transcript conversion."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Deque, List

from ..audio.types import AudioChunk
from ..errors import TranscriptionError
from ..metrics import (
    CHUNKS_DISCARDED,
    PENDING_CHUNKS,
    SEGMENTS_APPENDED,
    TRANSCRIPTION_LATENCY,
    TRANSCRIPTION_REQUESTS,
)
from ..store.models import TranscriptSegment
from ..store.transcript_store import TranscriptStore
from .events import EventBus, TranscriptUpdate
from .reply_parser import parse_reply
from .transcriber import Transcriber

LOGGER = logging.getLogger("livescribe.orchestrator")


class TranscriptionOrchestrator:
    """Drain a bounded FIFO of chunks with at most one request in flight.

    Speaker labels from the service depend on what it saw before, so chunks
    are sent strictly in order and every resulting segment is stored and
    published before the next chunk is dequeued. When the queue is full the
    oldest waiting chunk is dropped.

    :meth:`run` returns once :meth:`close` was called and the queue is empty;
    it raises ``TranscriptionError`` on the first failed request and leaves
    any remaining chunks untouched.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        store: TranscriptStore,
        events: EventBus,
        *,
        chunk_seconds: float = 5.0,
        max_pending: int = 8,
        context_chars: int = 500,
        default_speaker: str = "Speaker",
    ) -> None:
        self.transcriber = transcriber
        self.store = store
        self.events = events
        self.chunk_seconds = chunk_seconds
        self.max_pending = max(1, int(max_pending))
        self.context_chars = max(0, int(context_chars))
        self.default_speaker = default_speaker
        self._pending: Deque[AudioChunk] = deque()
        self._wakeup = asyncio.Event()
        self._closed = False
        self._context = ""
        self._last_index = -1
        self.processed = 0
        self.dropped = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def context(self) -> str:
        return self._context

    def submit(self, chunk: AudioChunk) -> None:
        if self._closed:
            raise RuntimeError("Orchestrator is closed")
        if chunk.index <= self._last_index:
            raise ValueError(f"Chunk {chunk.index} out of order (last {self._last_index})")
        self._last_index = chunk.index
        if len(self._pending) >= self.max_pending:
            oldest = self._pending.popleft()
            self.dropped += 1
            CHUNKS_DISCARDED.labels(reason="overflow").inc()
            LOGGER.warning(
                "Transcription backlog full (%d); dropped chunk %d", self.max_pending, oldest.index
            )
        self._pending.append(chunk)
        PENDING_CHUNKS.set(len(self._pending))
        self._wakeup.set()

    def close(self) -> None:
        self._closed = True
        self._wakeup.set()

    async def run(self) -> None:
        while True:
            if not self._pending:
                if self._closed:
                    return
                self._wakeup.clear()
                await self._wakeup.wait()
                continue
            chunk = self._pending.popleft()
            PENDING_CHUNKS.set(len(self._pending))
            try:
                await self._process(chunk)
            except TranscriptionError:
                if self._pending:
                    LOGGER.warning("Abandoning %d queued chunk(s)", len(self._pending))
                    CHUNKS_DISCARDED.labels(reason="aborted").inc(len(self._pending))
                self._pending.clear()
                PENDING_CHUNKS.set(0)
                self._closed = True
                raise

    async def _process(self, chunk: AudioChunk) -> List[TranscriptSegment]:
        started = time.perf_counter()
        try:
            reply = await self.transcriber.transcribe(chunk, self._context)
        except TranscriptionError as exc:
            TRANSCRIPTION_REQUESTS.labels(status="error").inc()
            LOGGER.error("Transcription of chunk %d failed: %s", chunk.index, exc)
            raise
        finally:
            TRANSCRIPTION_LATENCY.observe(time.perf_counter() - started)
        TRANSCRIPTION_REQUESTS.labels(status="success").inc()
        segments = parse_reply(
            reply,
            chunk.index,
            self.chunk_seconds,
            default_speaker=self.default_speaker,
        )
        for segment in segments:
            transcript = self.store.append_segment(segment)
            SEGMENTS_APPENDED.inc()
            shown = segment.model_copy(update={"speaker": transcript.display_name(segment.speaker)})
            self.events.publish(TranscriptUpdate(transcript_id=transcript.id, data=shown))
        if segments:
            self._remember("\n".join(f"{seg.speaker}: {seg.text}" for seg in segments))
        self.processed += 1
        LOGGER.debug("Chunk %d produced %d segment(s)", chunk.index, len(segments))
        return segments

    def _remember(self, text: str) -> None:
        if not self.context_chars:
            return
        combined = f"{self._context}\n{text}" if self._context else text
        self._context = combined[-self.context_chars :]


__all__ = ["TranscriptionOrchestrator"]
