"""Turn a transcription reply into speaker-tagged segments."""

from __future__ import annotations

import re
from typing import List

from ..store.models import TranscriptSegment

# "Name: text" needs whitespace after the colon so "note:http://x" stays
# untagged; the numbered "Speaker N:" form does not.
SPEAKER_LINE = re.compile(
    r"^\s*(?:(?P<label>[^\W\d_]\w*(?:[ \t]+\w+)?)[ \t]*:[ \t]+"
    r"|(?P<tag>Speaker[ \t]+\w+)[ \t]*:[ \t]*)"
    r"(?P<text>\S.*?)\s*$"
)
NO_SPEECH = re.compile(r"^\s*no speech detected\W*$", re.IGNORECASE)


def is_no_speech(text: str) -> bool:
    return bool(NO_SPEECH.match(text or ""))


def parse_reply(
    text: str,
    chunk_index: int,
    chunk_seconds: float,
    *,
    default_speaker: str = "Speaker",
) -> List[TranscriptSegment]:
    """Split ``Speaker N: text`` lines; every segment gets the chunk's window.

    Untagged lines keep their full text under ``default_speaker``. Only the
    first colon separates label and text, so ``Speaker 1: at 10:30`` keeps
    ``at 10:30``.
    """

    text = text or ""
    if not text.strip() or is_no_speech(text):
        return []
    start = chunk_index * chunk_seconds
    end = start + chunk_seconds
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        lines = [text.strip()]
    segments: List[TranscriptSegment] = []
    for line in lines:
        if is_no_speech(line):
            continue
        match = SPEAKER_LINE.match(line)
        if match:
            label = match.group("label") or match.group("tag")
            speaker, body = " ".join(label.split()), match.group("text")
        else:
            speaker, body = default_speaker, line
        segments.append(TranscriptSegment(speaker=speaker, text=body, start_time=start, end_time=end))
    return segments


__all__ = ["is_no_speech", "parse_reply"]
