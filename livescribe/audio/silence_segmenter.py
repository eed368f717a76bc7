"""Silence-driven chunk boundaries over a stream of encoded audio blobs."""

from __future__ import annotations

import logging
from typing import Callable, List

import numpy as np

from .types import AudioChunk

LOGGER = logging.getLogger("livescribe.segmenter")

Encoder = Callable[[List[bytes]], bytes]


def amplitude_level(pcm: np.ndarray) -> float:
    """Loudness of an int16 PCM buffer as ``20 * log10(mean(|x|) + 1)``."""

    data = np.asarray(pcm)
    if data.size == 0:
        return 0.0
    if data.ndim > 1:
        data = data[:, 0]
    average = float(np.mean(np.abs(data.astype(np.float32, copy=False))))
    return 20.0 * float(np.log10(average + 1.0))


def _join(blobs: List[bytes]) -> bytes:
    return b"".join(blobs)


class SilenceSegmenter:
    """Decide chunk boundaries from periodic amplitude samples.

    The segmenter never reads a clock or a device: callers pass the current
    time (seconds, monotonic) and level on every :meth:`sample` call and
    hand over captured blobs with :meth:`feed`.

    A chunk closes when silence has lasted longer than ``silence_seconds``
    and the chunk is older than ``min_chunk_seconds``, or unconditionally
    before the next sample would push it past ``max_chunk_seconds``; with a
    ``sample_interval`` of 0 that is the first sample at or beyond the cap.
    Closed chunks whose encoded payload is smaller than ``min_chunk_bytes``
    are dropped.
    """

    def __init__(
        self,
        *,
        silence_threshold: float = 30.0,
        silence_seconds: float = 2.0,
        min_chunk_seconds: float = 3.0,
        max_chunk_seconds: float = 30.0,
        min_chunk_bytes: int = 5000,
        chunk_seconds: float = 5.0,
        sample_interval: float = 0.0,
        encoder: Encoder | None = None,
        mime_type: str = "application/octet-stream",
    ) -> None:
        if max_chunk_seconds <= 0:
            raise ValueError("max_chunk_seconds must be positive")
        if chunk_seconds <= 0:
            raise ValueError("chunk_seconds must be positive")
        self.silence_threshold = float(silence_threshold)
        self.silence_seconds = float(silence_seconds)
        self.min_chunk_seconds = float(min_chunk_seconds)
        self.max_chunk_seconds = float(max_chunk_seconds)
        self.min_chunk_bytes = max(0, int(min_chunk_bytes))
        self.chunk_seconds = float(chunk_seconds)
        self.sample_interval = max(0.0, float(sample_interval))
        self.encoder = encoder or _join
        self.mime_type = mime_type
        self._blobs: list[bytes] = []
        self._size = 0
        self._next_index = 0
        self._chunk_start = 0.0
        self._last_sound = 0.0
        self.discarded = 0

    @property
    def next_index(self) -> int:
        return self._next_index

    @property
    def buffered_bytes(self) -> int:
        return self._size

    def start(self, now: float) -> None:
        self._blobs = []
        self._size = 0
        self._next_index = 0
        self._chunk_start = now
        self._last_sound = now
        self.discarded = 0

    def feed(self, blob: bytes) -> None:
        if not blob:
            return
        self._blobs.append(blob)
        self._size += len(blob)

    def sample(self, now: float, level: float) -> AudioChunk | None:
        if level > self.silence_threshold:
            self._last_sound = now
        age = now - self._chunk_start
        if age >= self.max_chunk_seconds or age + self.sample_interval > self.max_chunk_seconds:
            return self._close(now, reason="duration")
        silence = now - self._last_sound
        if silence > self.silence_seconds and age > self.min_chunk_seconds:
            return self._close(now, reason="silence")
        return None

    def flush(self, now: float) -> AudioChunk | None:
        return self._close(now, reason="flush")

    def _close(self, now: float, *, reason: str) -> AudioChunk | None:
        blobs, size = self._blobs, self._size
        duration = max(0.0, now - self._chunk_start)
        self._blobs = []
        self._size = 0
        self._chunk_start = now
        if not blobs:
            return None
        data = self.encoder(blobs)
        if len(data) < self.min_chunk_bytes:
            self.discarded += 1
            LOGGER.debug("Discarded %s-byte chunk (%s raw, %s cut)", len(data), size, reason)
            return None
        index = self._next_index
        self._next_index += 1
        start = index * self.chunk_seconds
        LOGGER.debug("Chunk %s closed by %s after %.2fs (%s bytes)", index, reason, duration, len(data))
        return AudioChunk(
            data=data,
            index=index,
            start_time=start,
            end_time=start + self.chunk_seconds,
            duration=duration,
            mime_type=self.mime_type,
        )


__all__ = ["AudioChunk", "SilenceSegmenter", "amplitude_level"]
