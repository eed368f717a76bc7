"""Transcript data model."""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class TranscriptState(str, Enum):
    ACTIVE = "active"
    FINALIZED = "finalized"


class TranscriptSegment(BaseModel):
    """One speaker-attributed line; times are chunk-granular (nominal)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    speaker: str
    text: str
    start_time: float = Field(alias="startTime")
    end_time: float = Field(alias="endTime")


class Transcript(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = Field(default_factory=time.time, alias="createdAt")
    finalized_at: float | None = Field(default=None, alias="finalizedAt")
    state: TranscriptState = TranscriptState.ACTIVE
    segments: List[TranscriptSegment] = Field(default_factory=list)
    speakers: List[str] = Field(default_factory=list)
    speaker_map: Dict[str, str] = Field(default_factory=dict, alias="speakerMap")
    duration: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.state is TranscriptState.ACTIVE

    def display_name(self, label: str) -> str:
        return self.speaker_map.get(label, label)

    def as_text(self) -> str:
        """One ``Name: text`` line per segment, using renamed speakers."""
        return "\n".join(f"{self.display_name(seg.speaker)}: {seg.text}" for seg in self.segments)


__all__ = ["Transcript", "TranscriptSegment", "TranscriptState"]
