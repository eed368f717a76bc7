"""Clients for the external speech-to-text service."""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from ..audio.types import AudioChunk
from ..config import Settings
from ..errors import TranscriptionError

LOGGER = logging.getLogger("livescribe.transcriber")

NO_SPEECH_SENTINEL = "No speech detected"

TRANSCRIBE_PROMPT = """You are a meeting transcriber. Transcribe the attached audio.

Previous context: {context}

Rules:
- Identify different speakers and label them as "Speaker 1", "Speaker 2", etc.
- Keep speaker labels consistent with the previous context.
- Clean up grammar and remove filler words.
- Put each utterance on its own line formatted as "Speaker X: text".
- If there is no clear speech, return exactly "{sentinel}".
"""

SUMMARY_PROMPT = """Summarize this transcript in HTML format with proper structure:

{transcript}

Include:
- Main topics discussed
- Key points from each speaker
- Action items or decisions made
- Timeline of discussion

Use HTML tags like <h3>, <ul>, <li>, <p>, <strong> for formatting.
"""


class Transcriber(ABC):
    """One request per chunk; raises ``TranscriptionError`` on any failure."""

    def __init__(self) -> None:
        self.authenticated = False

    @abstractmethod
    async def authenticate(self) -> bool:
        """Validate the credential against the service."""

    @abstractmethod
    async def transcribe(self, chunk: AudioChunk, context: str = "") -> str:
        ...

    async def summarize(self, transcript: str) -> str:
        """Summarize rendered ``Speaker: text`` lines as an HTML fragment."""
        raise TranscriptionError(f"{type(self).__name__} does not support summaries")

    async def aclose(self) -> None:
        return None


class GeminiTranscriber(Transcriber):
    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta/models",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__()
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> dict:
        if not self.api_key:
            raise TranscriptionError("API key missing")
        return {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

    def _url(self) -> str:
        return f"{self.base_url}/{self.model}:generateContent"

    async def authenticate(self) -> bool:
        body = {"contents": [{"parts": [{"text": "Test authentication"}]}]}
        try:
            resp = await self._client.post(self._url(), headers=self._headers(), json=body)
        except TranscriptionError:
            self.authenticated = False
            return False
        except httpx.HTTPError as exc:
            LOGGER.warning("Authentication request failed: %s", exc)
            self.authenticated = False
            return False
        self.authenticated = resp.status_code == 200
        return self.authenticated

    async def transcribe(self, chunk: AudioChunk, context: str = "") -> str:
        body: Dict[str, Any] = {
            "contents": [
                {
                    "parts": [
                        {"text": TRANSCRIBE_PROMPT.format(context=context or "(none)", sentinel=NO_SPEECH_SENTINEL)},
                        {
                            "inline_data": {
                                "mime_type": chunk.mime_type,
                                "data": base64.b64encode(chunk.data).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generationConfig": {"temperature": 0.1, "maxOutputTokens": 1024},
        }
        return await self._generate(body, action="Transcription")

    async def summarize(self, transcript: str) -> str:
        body: Dict[str, Any] = {
            "contents": [{"parts": [{"text": SUMMARY_PROMPT.format(transcript=transcript)}]}],
            "generationConfig": {"temperature": 0.2, "maxOutputTokens": 1000},
        }
        return await self._generate(body, action="Summary")

    async def _generate(self, body: Dict[str, Any], *, action: str) -> str:
        headers = self._headers()
        try:
            resp = await self._client.post(self._url(), headers=headers, json=body)
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"{action} request failed: {exc}") from exc
        if resp.status_code in (401, 403):
            raise TranscriptionError("Unauthorized: check API key", status_code=resp.status_code)
        if resp.status_code != 200:
            raise TranscriptionError(f"API request failed: {resp.status_code}", status_code=resp.status_code)
        try:
            data = resp.json()
            parts = data["candidates"][0]["content"]["parts"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise TranscriptionError(f"Invalid response: {exc}") from exc
        return "".join(part.get("text", "") for part in parts if isinstance(part, dict))

    async def aclose(self) -> None:
        await self._client.aclose()


class OpenAITranscriber(Transcriber):
    """Whisper-style transcription; replies carry no speaker labels."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "gpt-4o-mini-transcribe",
        summary_model: str = "gpt-4o-mini",
        timeout: float = 30.0,
    ) -> None:
        super().__init__()
        self.model = model
        self.summary_model = summary_model
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout) if api_key else None

    async def authenticate(self) -> bool:
        if self._client is None:
            self.authenticated = False
            return False
        try:
            await self._client.models.retrieve(self.model)
        except OpenAIError as exc:
            LOGGER.warning("Authentication request failed: %s", exc)
            self.authenticated = False
            return False
        self.authenticated = True
        return True

    async def transcribe(self, chunk: AudioChunk, context: str = "") -> str:
        if self._client is None:
            raise TranscriptionError("API key missing")
        suffix = "flac" if chunk.mime_type == "audio/flac" else "webm"
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "file": (f"chunk-{chunk.index}.{suffix}", chunk.data, chunk.mime_type),
        }
        if context:
            kwargs["prompt"] = context
        try:
            transcript = await self._client.audio.transcriptions.create(**kwargs)
        except OpenAIError as exc:
            raise TranscriptionError(f"Transcription request failed: {exc}") from exc
        return transcript.text or ""

    async def summarize(self, transcript: str) -> str:
        if self._client is None:
            raise TranscriptionError("API key missing")
        try:
            completion = await self._client.chat.completions.create(
                model=self.summary_model,
                messages=[{"role": "user", "content": SUMMARY_PROMPT.format(transcript=transcript)}],
                temperature=0.2,
                max_tokens=1000,
            )
        except OpenAIError as exc:
            raise TranscriptionError(f"Summary request failed: {exc}") from exc
        return completion.choices[0].message.content or ""

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


def create_transcriber(settings: Settings) -> Transcriber:
    if settings.transcriber_backend == "openai":
        return OpenAITranscriber(
            settings.openai_api_key,
            model=settings.openai_whisper_model,
            summary_model=settings.openai_summary_model,
            timeout=settings.request_timeout,
        )
    return GeminiTranscriber(
        settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.request_timeout,
    )


__all__ = [
    "GeminiTranscriber",
    "NO_SPEECH_SENTINEL",
    "OpenAITranscriber",
    "SUMMARY_PROMPT",
    "Transcriber",
    "create_transcriber",
]
