"""FastAPI application exposing the session control surface."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..audio.capture import CaptureSource, SoundDeviceSource
from ..config import Settings, get_settings
from ..metrics import COMMAND_LATENCY, COMMANDS, OBSERVERS, RECORDING_STATE
from ..services.capture_session import CaptureSession
from ..services.controller import SessionController
from ..services.events import EventBus
from ..services.transcriber import Transcriber, create_transcriber
from ..store.transcript_store import TranscriptStore
from .deps import OUTCOME_HEADER, Runtime, get_runtime
from .routers import events, recording, transcripts
from .schemas import HealthResponse

LOGGER = logging.getLogger("livescribe.api")


def build_runtime(
    settings: Settings,
    *,
    source: Optional[CaptureSource] = None,
    transcriber: Optional[Transcriber] = None,
) -> Runtime:
    store = TranscriptStore(Path(settings.store_path), max_transcripts=settings.max_transcripts)
    bus = EventBus()
    transcriber = transcriber or create_transcriber(settings)
    source = source or SoundDeviceSource(
        sample_rate=settings.sample_rate,
        channels=settings.channels,
        blob_seconds=settings.blob_seconds,
    )
    session = CaptureSession(source, transcriber, store, bus, settings)
    controller = SessionController(session, store, transcriber)
    return Runtime(store=store, events=bus, transcriber=transcriber, session=session, controller=controller)


def create_app(
    settings: Optional[Settings] = None,
    *,
    source: Optional[CaptureSource] = None,
    transcriber: Optional[Transcriber] = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime = build_runtime(settings, source=source, transcriber=transcriber)
        app.state.runtime = runtime
        LOGGER.info("%s %s ready (store: %s)", settings.app_name, settings.version, settings.store_path)
        try:
            yield
        finally:
            await runtime.session.shutdown()
            await runtime.transcriber.aclose()

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.include_router(recording.router)
    app.include_router(transcripts.router)
    app.include_router(events.router)

    @app.middleware("http")
    async def observe_commands(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        route = getattr(request.scope.get("route"), "path", "unmatched")
        outcome = response.headers.get(OUTCOME_HEADER) or ("ok" if response.status_code < 400 else "error")
        COMMANDS.labels(route=route, outcome=outcome).inc()
        COMMAND_LATENCY.labels(route=route).observe(time.perf_counter() - started)
        return response

    @app.get("/metrics", include_in_schema=False)
    async def metrics(runtime: Runtime = Depends(get_runtime)) -> Response:
        RECORDING_STATE.state(runtime.session.state.value)
        OBSERVERS.set(runtime.events.subscriber_count)
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz", response_model=HealthResponse)
    async def healthz(runtime: Runtime = Depends(get_runtime)) -> HealthResponse:
        return HealthResponse(
            ok=True,
            state=runtime.session.state.value,
            transcriber=settings.transcriber_backend,
            credential="ok" if runtime.transcriber.authenticated else ("set" if settings.api_key else "missing"),
            observers=runtime.events.subscriber_count,
        )

    return app
