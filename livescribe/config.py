"""Settings resolved from the environment."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field


class Settings(BaseModel):
    app_name: str = Field(default="livescribe")
    version: str = Field(default="0.1.0")
    log_level: str = Field(default=os.getenv("LIVESCRIBE_LOG_LEVEL", "INFO"))
    host: str = Field(default=os.getenv("LIVESCRIBE_HOST", "127.0.0.1"))
    port: int = Field(default=int(os.getenv("LIVESCRIBE_PORT", "8765")))

    # Storage
    store_path: str = Field(
        default=os.getenv("LIVESCRIBE_STORE_PATH", "data/transcripts.json")
    )
    max_transcripts: int = Field(default=int(os.getenv("LIVESCRIBE_MAX_TRANSCRIPTS", "10")))

    # Capture
    default_source: Literal["microphone", "shareable-target"] = Field(
        default=os.getenv("LIVESCRIBE_SOURCE", "microphone")  # type: ignore[arg-type]
    )
    sample_rate: int = Field(default=int(os.getenv("LIVESCRIBE_SAMPLE_RATE", "16000")))
    channels: int = Field(default=1)
    blob_seconds: float = Field(default=float(os.getenv("LIVESCRIBE_BLOB_SECONDS", "0.5")))

    # Segmentation
    sample_interval: float = Field(default=float(os.getenv("LIVESCRIBE_SAMPLE_INTERVAL", "0.05")))
    silence_threshold: float = Field(default=float(os.getenv("LIVESCRIBE_SILENCE_THRESHOLD", "30")))
    silence_seconds: float = Field(default=float(os.getenv("LIVESCRIBE_SILENCE_SECONDS", "2.0")))
    min_chunk_seconds: float = Field(default=float(os.getenv("LIVESCRIBE_MIN_CHUNK_SECONDS", "3.0")))
    max_chunk_seconds: float = Field(default=float(os.getenv("LIVESCRIBE_MAX_CHUNK_SECONDS", "30.0")))
    min_chunk_bytes: int = Field(default=int(os.getenv("LIVESCRIBE_MIN_CHUNK_BYTES", "5000")))
    chunk_seconds: float = Field(default=float(os.getenv("LIVESCRIBE_CHUNK_SECONDS", "5.0")))

    # Transcription
    transcriber_backend: Literal["gemini", "openai"] = Field(
        default=os.getenv("LIVESCRIBE_TRANSCRIBER", "gemini")  # type: ignore[arg-type]
    )
    gemini_api_key: str | None = Field(default=os.getenv("GEMINI_API_KEY"))
    gemini_model: str = Field(default=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"))
    gemini_base_url: str = Field(
        default=os.getenv(
            "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/models"
        )
    )
    openai_api_key: str | None = Field(default=os.getenv("OPENAI_API_KEY"))
    openai_whisper_model: str = Field(
        default=os.getenv("OPENAI_WHISPER_MODEL", "gpt-4o-mini-transcribe")
    )
    request_timeout: float = Field(default=float(os.getenv("LIVESCRIBE_REQUEST_TIMEOUT", "30")))
    context_chars: int = Field(default=int(os.getenv("LIVESCRIBE_CONTEXT_CHARS", "500")))
    max_pending_chunks: int = Field(default=int(os.getenv("LIVESCRIBE_MAX_PENDING_CHUNKS", "8")))
    default_speaker: str = Field(default="Speaker")
    openai_summary_model: str = Field(default=os.getenv("OPENAI_SUMMARY_MODEL", "gpt-4o-mini"))

    @property
    def api_key(self) -> str | None:
        if self.transcriber_backend == "openai":
            return self.openai_api_key
        return self.gemini_api_key


@lru_cache()
def get_settings() -> Settings:
    return Settings()
