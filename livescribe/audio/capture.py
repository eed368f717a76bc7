"""Capture sources: the collaborator that delivers time-ordered audio blobs."""

from __future__ import annotations

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Literal, Optional

import numpy as np
import soundfile as sf
from pydantic import BaseModel

from ..errors import CaptureError
from .silence_segmenter import amplitude_level

LOGGER = logging.getLogger("livescribe.capture")

SourceKind = Literal["microphone", "shareable-target"]


class CaptureSelector(BaseModel):
    source: SourceKind = "microphone"
    device: Optional[str] = None


class AudioHandle(ABC):
    """Live capture handle.

    Iterating yields encoded blobs on the capture cadence; iteration ends
    when the source disappears (end-of-stream).
    """

    mime_type: str = "application/octet-stream"

    @property
    @abstractmethod
    def level(self) -> float:
        """Most recent amplitude level (see ``amplitude_level``)."""

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[bytes]:
        ...

    def encode(self, blobs: List[bytes]) -> bytes:
        return b"".join(blobs)

    @abstractmethod
    async def close(self) -> None:
        ...


class CaptureSource(ABC):
    @abstractmethod
    async def open(self, selector: CaptureSelector) -> AudioHandle:
        """Acquire a live handle; raise ``CaptureError`` when unavailable."""


class SoundDeviceHandle(AudioHandle):
    """``sounddevice.InputStream`` wrapper delivering raw int16 PCM blobs.

    Blobs are raw PCM so that consecutive blobs concatenate cleanly; a
    closed chunk is encoded to FLAC by :meth:`encode`.
    """

    mime_type = "audio/flac"

    def __init__(self, sd, *, device, sample_rate: int, channels: int, blob_seconds: float) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        self._level = 0.0
        self._closed = False
        blocksize = max(1, int(sample_rate * blob_seconds))
        self._stream = sd.InputStream(
            device=device,
            samplerate=sample_rate,
            channels=channels,
            dtype="int16",
            blocksize=blocksize,
            callback=self._on_block,
            finished_callback=self._on_finished,
        )
        self._stream.start()

    @property
    def level(self) -> float:
        return self._level

    def _on_block(self, indata, frames, time_info, status) -> None:  # noqa: ARG002
        pcm = np.array(indata[:, 0], dtype=np.int16)
        level = amplitude_level(pcm)
        blob = pcm.tobytes()
        self._loop.call_soon_threadsafe(self._deliver, blob, level)

    def _deliver(self, blob: bytes, level: float) -> None:
        self._level = level
        self._queue.put_nowait(blob)

    def _on_finished(self) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, None)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            blob = await self._queue.get()
            if blob is None:
                return
            yield blob

    def encode(self, blobs: List[bytes]) -> bytes:
        pcm = np.frombuffer(b"".join(blobs), dtype=np.int16)
        buffer = io.BytesIO()
        sf.write(buffer, pcm, self.sample_rate, format="FLAC", subtype="PCM_16")
        return buffer.getvalue()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.stop()
            self._stream.close()
        except Exception as exc:
            LOGGER.warning("Error closing input stream: %s", exc)


class SoundDeviceSource(CaptureSource):
    """Microphone or loopback capture via PortAudio.

    A ``shareable-target`` selector must name the loopback/monitor device to
    record from (e.g. a PulseAudio monitor or a virtual cable).
    """

    def __init__(self, *, sample_rate: int = 16000, channels: int = 1, blob_seconds: float = 0.5) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.blob_seconds = blob_seconds

    def _try_import_sounddevice(self):
        try:
            import sounddevice as sd  # type: ignore

            return sd
        except Exception as exc:
            raise CaptureError(f"Audio capture unavailable: {exc}") from exc

    async def open(self, selector: CaptureSelector) -> AudioHandle:
        sd = self._try_import_sounddevice()
        if selector.source == "shareable-target" and not selector.device:
            raise CaptureError("No shareable target selected")
        try:
            handle = SoundDeviceHandle(
                sd,
                device=selector.device,
                sample_rate=self.sample_rate,
                channels=self.channels,
                blob_seconds=self.blob_seconds,
            )
        except Exception as exc:
            raise CaptureError(f"Could not open {selector.source}: {exc}") from exc
        LOGGER.info("Capturing from %s (%s)", selector.source, selector.device or "default device")
        return handle


__all__ = [
    "AudioHandle",
    "CaptureSelector",
    "CaptureSource",
    "SoundDeviceHandle",
    "SoundDeviceSource",
]
