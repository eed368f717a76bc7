"""Prometheus metrics for the recording pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Enum, Gauge, Histogram

CHUNKS_EMITTED = Counter(
    "livescribe_chunks_emitted_total",
    "Chunks handed to the transcription queue",
)

CHUNKS_DISCARDED = Counter(
    "livescribe_chunks_discarded_total",
    "Chunks dropped before transcription",
    labelnames=("reason",),
)

TRANSCRIPTION_REQUESTS = Counter(
    "livescribe_transcription_requests_total",
    "Transcription service calls",
    labelnames=("status",),
)

TRANSCRIPTION_LATENCY = Histogram(
    "livescribe_transcription_latency_seconds",
    "Time spent waiting on the transcription service",
)

SEGMENTS_APPENDED = Counter(
    "livescribe_segments_appended_total",
    "Transcript segments appended to the active transcript",
)

PENDING_CHUNKS = Gauge(
    "livescribe_pending_chunks",
    "Chunks waiting for transcription",
)

RECORDING_STATE = Enum(
    "livescribe_recording_state",
    "Recording state of the capture session",
    states=["idle", "recording", "stopping"],
)

OBSERVERS = Gauge(
    "livescribe_observers",
    "Connected notification subscribers",
)

COMMANDS = Counter(
    "livescribe_commands_total",
    "Control surface requests by route and outcome",
    labelnames=("route", "outcome"),
)

COMMAND_LATENCY = Histogram(
    "livescribe_command_latency_seconds",
    "Control surface request latency",
    labelnames=("route",),
)
