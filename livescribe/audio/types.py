"""Dataclasses shared across audio helpers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AudioChunk:
    """Encoded audio between two segment boundaries.

    ``start_time``/``end_time`` are nominal: derived from the sequence index
    and the configured chunk duration, not from the captured samples.
    ``duration`` is the wall-clock span the chunk was accumulated over.
    """

    data: bytes
    index: int
    start_time: float
    end_time: float
    duration: float
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)
