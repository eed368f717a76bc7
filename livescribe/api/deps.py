"""Request dependencies and result -> HTTP mapping."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse

from ..services.capture_session import CaptureSession
from ..services.controller import CommandResult, SessionController
from ..services.events import EventBus
from ..services.transcriber import Transcriber
from ..store.transcript_store import TranscriptStore

OUTCOME_HEADER = "X-Livescribe-Outcome"

STATUS_BY_ERROR = {
    "invalid": 400,
    "credential": 401,
    "not_found": 404,
    "precondition": 409,
    "capture": 503,
    "transcription": 502,
    "storage": 500,
    "internal": 500,
}


@dataclass
class Runtime:
    store: TranscriptStore
    events: EventBus
    transcriber: Transcriber
    session: CaptureSession
    controller: SessionController


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_controller(request: Request) -> SessionController:
    return get_runtime(request).controller


def respond(result: CommandResult) -> JSONResponse:
    status_code = 200 if result.status == "ok" else STATUS_BY_ERROR.get(result.error or "internal", 500)
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json"),
        headers={OUTCOME_HEADER: result.error or "ok"},
    )
