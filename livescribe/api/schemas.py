"""Pydantic schemas for the HTTP control surface."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..audio.capture import SourceKind


class StartRecordingRequest(BaseModel):
    source: Optional[SourceKind] = None
    device: Optional[str] = None


class SpeakerRenameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original_label: str = Field(alias="originalName")
    new_label: str = Field(alias="newName")


class HealthResponse(BaseModel):
    ok: bool
    state: str
    transcriber: str
    credential: str
    observers: int
