"""Recording start, stop and toggle endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from ...audio.capture import CaptureSelector
from ...services.controller import SessionController
from ..deps import get_controller, respond
from ..schemas import StartRecordingRequest

router = APIRouter(prefix="/v1/recording", tags=["recording"])


def _selector(payload: StartRecordingRequest | None, controller: SessionController) -> CaptureSelector | None:
    if not payload or not (payload.source or payload.device):
        return None
    return CaptureSelector(
        source=payload.source or controller.session.settings.default_source,
        device=payload.device,
    )


@router.post("/start")
async def start_recording(
    payload: StartRecordingRequest | None = Body(None),
    controller: SessionController = Depends(get_controller),
):
    return respond(await controller.start_recording(_selector(payload, controller)))


@router.post("/stop")
async def stop_recording(controller: SessionController = Depends(get_controller)):
    return respond(await controller.stop_recording())


@router.get("")
async def recording_status(controller: SessionController = Depends(get_controller)):
    return respond(controller.recording_status())


@router.post("/toggle")
async def toggle_recording(
    payload: StartRecordingRequest | None = Body(None),
    controller: SessionController = Depends(get_controller),
):
    return respond(await controller.toggle_recording(_selector(payload, controller)))
