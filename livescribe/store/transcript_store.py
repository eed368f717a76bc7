"""Append-only transcript log with a speaker alias layer."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..errors import PreconditionError, StorageError, TranscriptNotFound
from .models import Transcript, TranscriptSegment, TranscriptState

LOGGER = logging.getLogger("livescribe.store")


class TranscriptStore:
    """Persist the active transcript and the most recent finalized ones.

    The file holds ``{"active": ..., "transcripts": [...]}`` with finalized
    transcripts newest first. Every mutation is written before returning.
    """

    def __init__(self, path: Path, *, max_transcripts: int = 10) -> None:
        self.path = Path(path)
        self.max_transcripts = max(1, int(max_transcripts))
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create {self.path.parent}: {exc}") from exc
        self._active: Optional[Transcript] = None
        self._transcripts: List[Transcript] = []
        self._load()

    # -- lifecycle -----------------------------------------------------------

    def start_new_transcript(self) -> Transcript:
        if self._active is not None:
            raise PreconditionError(f"Transcript {self._active.id} is still active")
        self._active = Transcript()
        self._persist()
        LOGGER.info("Started transcript %s", self._active.id)
        return self._active.model_copy(deep=True)

    def append_segment(self, segment: TranscriptSegment) -> Transcript:
        active = self._active
        if active is None or not active.is_active:
            raise PreconditionError("No active transcript to append to")
        if active.segments and segment.start_time < active.segments[-1].start_time:
            raise PreconditionError(
                f"Segment at {segment.start_time}s arrived after {active.segments[-1].start_time}s"
            )
        active.segments.append(segment)
        if segment.speaker not in active.speakers:
            active.speakers.append(segment.speaker)
        self._persist()
        return active.model_copy(deep=True)

    def finalize_current_transcript(self) -> Optional[Transcript]:
        active = self._active
        if active is None:
            return None
        self._finalize(active)
        self._persist()
        LOGGER.info("Finalized transcript %s (%d segments)", active.id, len(active.segments))
        return active.model_copy(deep=True)

    def _finalize(self, transcript: Transcript) -> None:
        transcript.state = TranscriptState.FINALIZED
        transcript.finalized_at = time.time()
        transcript.duration = transcript.segments[-1].end_time if transcript.segments else 0.0
        self._active = None
        self._transcripts.insert(0, transcript)
        evicted = self._transcripts[self.max_transcripts :]
        if evicted:
            del self._transcripts[self.max_transcripts :]
            LOGGER.info("Evicted %d old transcript(s)", len(evicted))

    # -- aliases -------------------------------------------------------------

    def update_speaker_name(self, transcript_id: str, original_label: str, new_label: str) -> Transcript:
        transcript = self._find(transcript_id)
        name = (new_label or "").strip()
        if not name:
            raise PreconditionError("Speaker name must not be empty")
        if original_label not in transcript.speakers:
            raise PreconditionError(f"Unknown speaker {original_label!r}")
        if transcript.speaker_map.get(original_label) != name:
            transcript.speaker_map[original_label] = name
            self._persist()
        return transcript.model_copy(deep=True)

    # -- removal -------------------------------------------------------------

    def delete_transcript(self, transcript_id: str) -> None:
        if self._active is not None and self._active.id == transcript_id:
            raise PreconditionError("Cannot delete the active transcript")
        remaining = [item for item in self._transcripts if item.id != transcript_id]
        if len(remaining) == len(self._transcripts):
            raise TranscriptNotFound(transcript_id)
        self._transcripts = remaining
        self._persist()

    def clear_all(self) -> None:
        self._transcripts = []
        self._persist()

    # -- queries -------------------------------------------------------------

    def get_current_transcript(self) -> Optional[Transcript]:
        return self._active.model_copy(deep=True) if self._active else None

    def get_all_transcripts(self) -> List[Transcript]:
        return [item.model_copy(deep=True) for item in self._transcripts]

    def get_transcript(self, transcript_id: str) -> Transcript:
        return self._find(transcript_id).model_copy(deep=True)

    def _find(self, transcript_id: str) -> Transcript:
        if self._active is not None and self._active.id == transcript_id:
            return self._active
        for item in self._transcripts:
            if item.id == transcript_id:
                return item
        raise TranscriptNotFound(transcript_id)

    # -- persistence ---------------------------------------------------------

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            active = raw.get("active")
            self._active = Transcript.model_validate(active) if active else None
            self._transcripts = [Transcript.model_validate(item) for item in raw.get("transcripts", [])]
        except (OSError, ValueError, ValidationError, AttributeError) as exc:
            raise StorageError(f"Cannot read {self.path}: {exc}") from exc
        if self._active is not None:
            LOGGER.warning("Recovering unfinished transcript %s", self._active.id)
            self._finalize(self._active)
            self._persist()

    def _persist(self) -> None:
        payload = {
            "active": self._active.model_dump(mode="json", by_alias=True) if self._active else None,
            "transcripts": [item.model_dump(mode="json", by_alias=True) for item in self._transcripts],
        }
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Cannot write {self.path}: {exc}") from exc


__all__ = ["TranscriptStore"]
