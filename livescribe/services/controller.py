"""Command surface consumed by the UI / automation layer."""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ValidationError

from ..audio.capture import CaptureSelector
from ..errors import (
    CaptureError,
    LivescribeError,
    PreconditionError,
    StorageError,
    TranscriptionError,
    TranscriptNotFound,
)
from ..store.models import Transcript
from ..store.transcript_store import TranscriptStore
from .capture_session import CaptureSession, RecordingState
from .transcriber import Transcriber

LOGGER = logging.getLogger("livescribe.controller")

ErrorKind = Literal[
    "capture", "credential", "precondition", "not_found", "storage", "transcription", "invalid", "internal"
]


class CommandResult(BaseModel):
    status: Literal["ok", "error"] = "ok"
    message: str = ""
    error: Optional[ErrorKind] = None
    data: Any = None

    @classmethod
    def ok(cls, message: str = "", data: Any = None) -> "CommandResult":
        return cls(status="ok", message=message, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "CommandResult":
        return cls(status="error", error=kind, message=message)


def _dump(transcript: Optional[Transcript]) -> Optional[Dict[str, Any]]:
    if transcript is None:
        return None
    return transcript.model_dump(mode="json", by_alias=True)


def _failure(exc: LivescribeError) -> CommandResult:
    if isinstance(exc, TranscriptNotFound):
        return CommandResult.fail("not_found", str(exc))
    if isinstance(exc, PreconditionError):
        return CommandResult.fail("precondition", str(exc))
    if isinstance(exc, CaptureError):
        return CommandResult.fail("capture", str(exc))
    if isinstance(exc, StorageError):
        return CommandResult.fail("storage", str(exc))
    if isinstance(exc, TranscriptionError):
        return CommandResult.fail("transcription", str(exc))
    return CommandResult.fail("internal", str(exc))


class SessionController:
    def __init__(self, session: CaptureSession, store: TranscriptStore, transcriber: Transcriber) -> None:
        self.session = session
        self.store = store
        self.transcriber = transcriber

    async def _check_credential(self) -> Optional[CommandResult]:
        if not self.session.settings.api_key:
            return CommandResult.fail("credential", "API key is not set. Configure it before recording.")
        if not self.transcriber.authenticated and not await self.transcriber.authenticate():
            return CommandResult.fail("credential", "API key was rejected by the transcription service.")
        return None

    async def start_recording(self, selector: CaptureSelector | None = None) -> CommandResult:
        rejected = await self._check_credential()
        if rejected is not None:
            return rejected
        selector = selector or CaptureSelector(source=self.session.settings.default_source)
        try:
            outcome = await self.session.start(selector)
        except LivescribeError as exc:
            LOGGER.error("Could not start recording: %s", exc)
            return _failure(exc)
        return CommandResult.ok(
            outcome.message,
            {
                "started": outcome.started,
                "state": self.session.state.value,
                "transcriptId": outcome.transcript_id,
            },
        )

    async def stop_recording(self) -> CommandResult:
        try:
            stopped = await self.session.stop()
        except LivescribeError as exc:
            return _failure(exc)
        message = "Recording stopped" if stopped else "Not recording"
        return CommandResult.ok(message, {"stopped": stopped, "state": self.session.state.value})

    async def toggle_recording(self, selector: CaptureSelector | None = None) -> CommandResult:
        if self.session.state is RecordingState.RECORDING:
            return await self.stop_recording()
        return await self.start_recording(selector)

    def recording_status(self) -> CommandResult:
        return CommandResult.ok(
            data={
                "state": self.session.state.value,
                "transcriptId": self.session.active_transcript_id,
                "pendingChunks": self.session.pending_chunks,
                "lastError": self.session.last_error,
            }
        )

    def get_current_transcript(self) -> CommandResult:
        return CommandResult.ok(data=_dump(self.store.get_current_transcript()))

    def get_all_transcripts(self) -> CommandResult:
        return CommandResult.ok(data=[_dump(item) for item in self.store.get_all_transcripts()])

    def delete_transcript(self, transcript_id: str) -> CommandResult:
        try:
            self.store.delete_transcript(transcript_id)
        except LivescribeError as exc:
            return _failure(exc)
        return CommandResult.ok("Transcript deleted")

    def clear_all_transcripts(self) -> CommandResult:
        try:
            self.store.clear_all()
        except LivescribeError as exc:
            return _failure(exc)
        return CommandResult.ok("Transcripts cleared")

    def update_speaker_name(self, transcript_id: str, original_label: str, new_label: str) -> CommandResult:
        try:
            transcript = self.store.update_speaker_name(transcript_id, original_label, new_label)
        except LivescribeError as exc:
            return _failure(exc)
        return CommandResult.ok("Speaker renamed", _dump(transcript))

    async def summarize_transcript(self, transcript_id: str | None = None) -> CommandResult:
        """Summarize ``transcript_id``, else the active or most recent transcript."""

        try:
            if transcript_id:
                transcript = self.store.get_transcript(transcript_id)
            else:
                transcript = self.store.get_current_transcript()
                if transcript is None:
                    transcript = next(iter(self.store.get_all_transcripts()), None)
                if transcript is None:
                    raise PreconditionError("No transcript to summarize")
            if not transcript.segments:
                raise PreconditionError("Transcript is empty")
        except LivescribeError as exc:
            return _failure(exc)
        rejected = await self._check_credential()
        if rejected is not None:
            return rejected
        try:
            summary = await self.transcriber.summarize(transcript.as_text())
        except TranscriptionError as exc:
            LOGGER.error("Could not summarize %s: %s", transcript.id, exc)
            return _failure(exc)
        return CommandResult.ok("Summary ready", {"transcriptId": transcript.id, "summary": summary})

    def _selector(self, command: Dict[str, Any]) -> Optional[CaptureSelector]:
        if not (command.get("source") or command.get("device")):
            return None
        return CaptureSelector(
            source=command.get("source") or self.session.settings.default_source,
            device=command.get("device"),
        )

    async def dispatch(self, command: Dict[str, Any]) -> CommandResult:
        """Handle the message form, e.g. ``{"type": "DELETE_TRANSCRIPT", "transcriptId": "..."}``."""

        kind = command.get("type")
        try:
            if kind == "START_RECORDING":
                return await self.start_recording(self._selector(command))
            if kind == "STOP_RECORDING":
                return await self.stop_recording()
            if kind == "TOGGLE_RECORDING":
                return await self.toggle_recording(self._selector(command))
            if kind == "GET_CURRENT_TRANSCRIPT":
                return self.get_current_transcript()
            if kind == "GET_ALL_TRANSCRIPTS":
                return self.get_all_transcripts()
            if kind == "DELETE_TRANSCRIPT":
                return self.delete_transcript(str(command["transcriptId"]))
            if kind == "CLEAR_ALL_TRANSCRIPTS":
                return self.clear_all_transcripts()
            if kind == "UPDATE_SPEAKER_NAME":
                return self.update_speaker_name(
                    str(command["transcriptId"]),
                    str(command["originalName"]),
                    str(command["newName"]),
                )
            if kind == "SUMMARIZE_TRANSCRIPT":
                transcript_id = command.get("transcriptId")
                return await self.summarize_transcript(str(transcript_id) if transcript_id else None)
        except KeyError as exc:
            return CommandResult.fail("invalid", f"Missing field {exc.args[0]!r} for {kind}")
        except ValidationError as exc:
            return CommandResult.fail("invalid", str(exc))
        return CommandResult.fail("invalid", f"Unknown command {kind!r}")


__all__ = ["CommandResult", "SessionController"]
