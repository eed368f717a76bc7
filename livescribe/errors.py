"""Error taxonomy shared by the recording pipeline."""

from __future__ import annotations


class LivescribeError(Exception):
    """Base class for errors raised by the pipeline."""


class CaptureError(LivescribeError):
    """Capture source unavailable, cancelled or permission denied."""


class TranscriptionError(LivescribeError):
    """Transcription service failed (network, auth, quota, bad reply)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorageError(LivescribeError):
    """Transcript store could not be read or written."""


class PreconditionError(LivescribeError):
    """Operation rejected because the current state does not allow it."""


class TranscriptNotFound(PreconditionError):
    def __init__(self, transcript_id: str) -> None:
        super().__init__(f"Transcript {transcript_id} not found")
        self.transcript_id = transcript_id


__all__ = [
    "CaptureError",
    "LivescribeError",
    "PreconditionError",
    "StorageError",
    "TranscriptNotFound",
    "TranscriptionError",
]
