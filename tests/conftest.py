"""Pytest configuration helpers."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest


def _ensure_repo_on_path() -> None:
    """Allow tests to import from repo modules without setting PYTHONPATH."""
    repo_root = Path(__file__).resolve().parents[1]
    path_str = str(repo_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_repo_on_path()

from livescribe.audio.capture import AudioHandle, CaptureSelector, CaptureSource  # noqa: E402
from livescribe.audio.types import AudioChunk  # noqa: E402
from livescribe.config import Settings  # noqa: E402
from livescribe.errors import CaptureError, TranscriptionError  # noqa: E402
from livescribe.services.transcriber import Transcriber  # noqa: E402


class FakeHandle(AudioHandle):
    """Emits a fixed blob every ``interval`` seconds until ended or closed."""

    mime_type = "audio/webm"

    def __init__(self, blob: bytes = b"x" * 100, interval: float = 0.01, level: float = 0.0) -> None:
        self.blob = blob
        self.interval = interval
        self._level = level
        self._ended = asyncio.Event()
        self.closed = False
        self.blobs_sent = 0

    @property
    def level(self) -> float:
        return self._level

    def set_level(self, value: float) -> None:
        self._level = value

    def end(self) -> None:
        self._ended.set()

    async def __aiter__(self):
        while not self._ended.is_set() and not self.closed:
            await asyncio.sleep(self.interval)
            if self._ended.is_set() or self.closed:
                return
            self.blobs_sent += 1
            yield self.blob

    async def close(self) -> None:
        self.closed = True


class FakeSource(CaptureSource):
    def __init__(self, *, fail: Optional[str] = None, **handle_kwargs) -> None:
        self.fail = fail
        self.handle_kwargs = handle_kwargs
        self.handles: List[FakeHandle] = []
        self.selectors: List[CaptureSelector] = []

    async def open(self, selector: CaptureSelector) -> AudioHandle:
        self.selectors.append(selector)
        if self.fail:
            raise CaptureError(self.fail)
        handle = FakeHandle(**self.handle_kwargs)
        self.handles.append(handle)
        return handle


class FakeTranscriber(Transcriber):
    """Replies ``Speaker 1: chunk N`` unless ``reply`` says otherwise."""

    def __init__(
        self,
        *,
        reply: Optional[Callable[[AudioChunk], str]] = None,
        fail_on: Optional[int] = None,
        delay: float = 0.0,
        valid: bool = True,
        summary_fails: bool = False,
    ) -> None:
        super().__init__()
        self.reply = reply or (lambda chunk: f"Speaker 1: chunk {chunk.index}")
        self.fail_on = fail_on
        self.delay = delay
        self.valid = valid
        self.summary_fails = summary_fails
        self.summaries: List[str] = []
        self.calls: List[Tuple[int, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def authenticate(self) -> bool:
        self.authenticated = self.valid
        return self.valid

    async def transcribe(self, chunk: AudioChunk, context: str = "") -> str:
        self.calls.append((chunk.index, context))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_on is not None and chunk.index == self.fail_on:
                raise TranscriptionError("API request failed: 503", status_code=503)
            return self.reply(chunk)
        finally:
            self.in_flight -= 1

    async def summarize(self, transcript: str) -> str:
        self.summaries.append(transcript)
        if self.summary_fails:
            raise TranscriptionError("API request failed: 500", status_code=500)
        return f"<p>{len(transcript.splitlines())} lines</p>"

    async def aclose(self) -> None:
        self.closed = True


def make_chunk(index: int, data: bytes = b"audio", chunk_seconds: float = 5.0) -> AudioChunk:
    start = index * chunk_seconds
    return AudioChunk(
        data=data,
        index=index,
        start_time=start,
        end_time=start + chunk_seconds,
        duration=chunk_seconds,
        mime_type="audio/webm",
    )


async def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """Fast settings: only stop() or the duration cap cut chunks unless overridden."""
    return Settings(
        store_path=str(tmp_path / "transcripts.json"),
        gemini_api_key="test-key",
        sample_interval=0.01,
        silence_threshold=30.0,
        silence_seconds=60.0,
        min_chunk_seconds=60.0,
        max_chunk_seconds=60.0,
        min_chunk_bytes=1,
        chunk_seconds=5.0,
        max_pending_chunks=8,
    )


@pytest.fixture()
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture()
def fake_transcriber() -> FakeTranscriber:
    return FakeTranscriber()

