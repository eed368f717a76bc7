"""Transcript queries, deletion and speaker aliases."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from ...services.controller import SessionController
from ..deps import get_controller, respond
from ..schemas import SpeakerRenameRequest

router = APIRouter(prefix="/v1", tags=["transcripts"])


@router.get("/transcripts/current")
async def current_transcript(controller: SessionController = Depends(get_controller)):
    return respond(controller.get_current_transcript())


@router.get("/transcripts")
async def all_transcripts(controller: SessionController = Depends(get_controller)):
    return respond(controller.get_all_transcripts())


@router.delete("/transcripts/{transcript_id}")
async def delete_transcript(transcript_id: str, controller: SessionController = Depends(get_controller)):
    return respond(controller.delete_transcript(transcript_id))


@router.delete("/transcripts")
async def clear_transcripts(controller: SessionController = Depends(get_controller)):
    return respond(controller.clear_all_transcripts())


@router.put("/transcripts/{transcript_id}/speakers")
async def rename_speaker(
    transcript_id: str,
    payload: SpeakerRenameRequest,
    controller: SessionController = Depends(get_controller),
):
    return respond(controller.update_speaker_name(transcript_id, payload.original_label, payload.new_label))


@router.post("/transcripts/{transcript_id}/summary")
async def summarize_transcript(transcript_id: str, controller: SessionController = Depends(get_controller)):
    return respond(await controller.summarize_transcript(transcript_id))


@router.post("/commands")
async def dispatch_command(
    command: Dict[str, Any] = Body(...),
    controller: SessionController = Depends(get_controller),
):
    return respond(await controller.dispatch(command))
