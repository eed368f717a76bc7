"""Recording state machine: capture -> segmenter -> orchestrator -> store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..audio.capture import AudioHandle, CaptureSelector, CaptureSource
from ..audio.silence_segmenter import SilenceSegmenter
from ..audio.types import AudioChunk
from ..config import Settings
from ..errors import StorageError
from ..metrics import CHUNKS_DISCARDED, CHUNKS_EMITTED
from ..store.transcript_store import TranscriptStore
from .events import EventBus, RecordingError
from .orchestrator import TranscriptionOrchestrator
from .transcriber import Transcriber

LOGGER = logging.getLogger("livescribe.session")


class RecordingState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"


class StopReason(str, Enum):
    USER = "user"
    SOURCE_ENDED = "source-ended"


@dataclass
class StartOutcome:
    started: bool
    message: str
    transcript_id: Optional[str] = None


@dataclass
class SessionContext:
    """Everything one recording owns; dropped when the session returns to idle."""

    selector: CaptureSelector
    handle: AudioHandle
    segmenter: SilenceSegmenter
    orchestrator: TranscriptionOrchestrator
    transcript_id: str
    sampler: Optional[asyncio.Task] = None
    pump: Optional[asyncio.Task] = None
    worker: Optional[asyncio.Task] = None
    supervisor: Optional[asyncio.Task] = None
    stop_task: Optional[asyncio.Task] = None
    discarded_seen: int = 0


class CaptureSession:
    """Sole owner of the recording state.

    ``start`` and ``stop`` are serialized by a lock; a failed transcription
    request tears the session down without waiting for either.
    """

    def __init__(
        self,
        source: CaptureSource,
        transcriber: Transcriber,
        store: TranscriptStore,
        events: EventBus,
        settings: Settings,
    ) -> None:
        self.source = source
        self.transcriber = transcriber
        self.store = store
        self.events = events
        self.settings = settings
        self._state = RecordingState.IDLE
        self._ctx: Optional[SessionContext] = None
        self._lock = asyncio.Lock()
        self.last_error: Optional[str] = None

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def active_transcript_id(self) -> Optional[str]:
        return self._ctx.transcript_id if self._ctx else None

    @property
    def pending_chunks(self) -> int:
        return self._ctx.orchestrator.pending if self._ctx else 0

    async def start(self, selector: CaptureSelector) -> StartOutcome:
        async with self._lock:
            if self._state is RecordingState.RECORDING:
                LOGGER.info("Request to start, but already recording")
                return StartOutcome(False, "Already recording", self.active_transcript_id)
            if self._state is RecordingState.STOPPING:
                return StartOutcome(False, "Stop in progress", self.active_transcript_id)

            handle = await self.source.open(selector)
            try:
                transcript = self.store.start_new_transcript()
            except Exception:
                await handle.close()
                raise

            settings = self.settings
            segmenter = SilenceSegmenter(
                silence_threshold=settings.silence_threshold,
                silence_seconds=settings.silence_seconds,
                min_chunk_seconds=settings.min_chunk_seconds,
                max_chunk_seconds=settings.max_chunk_seconds,
                min_chunk_bytes=settings.min_chunk_bytes,
                chunk_seconds=settings.chunk_seconds,
                sample_interval=settings.sample_interval,
                encoder=handle.encode,
                mime_type=handle.mime_type,
            )
            orchestrator = TranscriptionOrchestrator(
                self.transcriber,
                self.store,
                self.events,
                chunk_seconds=settings.chunk_seconds,
                max_pending=settings.max_pending_chunks,
                context_chars=settings.context_chars,
                default_speaker=settings.default_speaker,
            )
            ctx = SessionContext(
                selector=selector,
                handle=handle,
                segmenter=segmenter,
                orchestrator=orchestrator,
                transcript_id=transcript.id,
            )
            segmenter.start(asyncio.get_running_loop().time())
            self._ctx = ctx
            self._state = RecordingState.RECORDING
            self.last_error = None
            ctx.worker = asyncio.create_task(orchestrator.run(), name="livescribe-transcribe")
            ctx.sampler = asyncio.create_task(self._sample(ctx), name="livescribe-sample")
            ctx.pump = asyncio.create_task(self._pump(ctx), name="livescribe-capture")
            ctx.supervisor = asyncio.create_task(self._supervise(ctx), name="livescribe-supervise")
            LOGGER.info("Recording started from %s into %s", selector.source, transcript.id)
            return StartOutcome(True, "Recording started", transcript.id)

    async def stop(self, reason: StopReason = StopReason.USER) -> bool:
        async with self._lock:
            ctx = self._ctx
            if ctx is None or self._state is not RecordingState.RECORDING:
                return False
            LOGGER.info("Stopping recording (%s)", reason.value)
            self._state = RecordingState.STOPPING
            await self._halt_capture(ctx)
            final = ctx.segmenter.flush(asyncio.get_running_loop().time())
            self._account_discards(ctx)
            if final is not None and self._ctx is ctx:
                self._emit(ctx, final)
            ctx.orchestrator.close()
            await asyncio.shield(ctx.supervisor)
            return True

    async def shutdown(self) -> None:
        await self.stop()
        ctx = self._ctx
        if ctx is not None and ctx.supervisor is not None:
            await asyncio.shield(ctx.supervisor)

    # -- pipeline tasks ------------------------------------------------------

    async def _sample(self, ctx: SessionContext) -> None:
        loop = asyncio.get_running_loop()
        interval = self.settings.sample_interval
        while True:
            await asyncio.sleep(interval)
            chunk = ctx.segmenter.sample(loop.time(), ctx.handle.level)
            self._account_discards(ctx)
            if chunk is not None:
                self._emit(ctx, chunk)

    async def _pump(self, ctx: SessionContext) -> None:
        try:
            async for blob in ctx.handle:
                ctx.segmenter.feed(blob)
        except Exception as exc:
            LOGGER.error("Capture stream failed: %s", exc)
        LOGGER.info("Capture source ended")
        if self._ctx is ctx and self._state is RecordingState.RECORDING:
            ctx.stop_task = asyncio.create_task(self.stop(StopReason.SOURCE_ENDED))

    async def _supervise(self, ctx: SessionContext) -> None:
        error: Optional[BaseException] = None
        try:
            await ctx.worker
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = exc
        await self._teardown(ctx, error)

    def _emit(self, ctx: SessionContext, chunk: AudioChunk) -> None:
        if ctx.orchestrator.closed:
            CHUNKS_DISCARDED.labels(reason="aborted").inc()
            LOGGER.warning("Dropped chunk %d after transcription stopped", chunk.index)
            return
        CHUNKS_EMITTED.inc()
        ctx.orchestrator.submit(chunk)

    def _account_discards(self, ctx: SessionContext) -> None:
        fresh = ctx.segmenter.discarded - ctx.discarded_seen
        if fresh > 0:
            CHUNKS_DISCARDED.labels(reason="undersized").inc(fresh)
            ctx.discarded_seen = ctx.segmenter.discarded

    async def _halt_capture(self, ctx: SessionContext) -> None:
        current = asyncio.current_task()
        tasks = [task for task in (ctx.sampler, ctx.pump) if task is not None and task is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _teardown(self, ctx: SessionContext, error: Optional[BaseException]) -> None:
        if error is not None:
            LOGGER.error("Recording aborted: %s", error)
            for task in (ctx.sampler, ctx.pump):
                if task is not None:
                    task.cancel()
        try:
            self.store.finalize_current_transcript()
        except StorageError as exc:
            error = error or exc
            raise
        finally:
            if self._ctx is ctx:
                self._ctx = None
                self._state = RecordingState.IDLE
            if error is not None:
                self.last_error = str(error)
                self.events.publish(RecordingError(message=str(error)))
            await self._halt_capture(ctx)
            await ctx.handle.close()
            LOGGER.info("Recording session for %s closed", ctx.transcript_id)


__all__ = [
    "CaptureSession",
    "RecordingState",
    "SessionContext",
    "StartOutcome",
    "StopReason",
]
