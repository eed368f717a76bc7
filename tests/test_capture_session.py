import asyncio

import pytest

from conftest import FakeSource, FakeTranscriber, wait_for
from livescribe.audio.capture import CaptureSelector
from livescribe.errors import CaptureError
from livescribe.services.capture_session import CaptureSession, RecordingState
from livescribe.services.events import EventBus, RecordingError, TranscriptUpdate
from livescribe.store.models import TranscriptState
from livescribe.store.transcript_store import TranscriptStore

MIC = CaptureSelector(source="microphone")


def _session(settings, source, transcriber):
    store = TranscriptStore(settings.store_path, max_transcripts=settings.max_transcripts)
    bus = EventBus()
    return CaptureSession(source, transcriber, store, bus, settings), store, bus


def _drain(queue):
    events = []
    while not queue.empty():
        events.append(queue.get_nowait())
    return events


def test_start_then_stop_flushes_partial_chunk(settings, fake_source, fake_transcriber):
    async def scenario():
        session, store, bus = _session(settings, fake_source, fake_transcriber)
        observer = bus.subscribe()
        outcome = await session.start(MIC)
        assert outcome.started
        assert session.state is RecordingState.RECORDING
        await wait_for(lambda: fake_source.handles[0].blobs_sent >= 3)
        assert await session.stop()
        return session, store, outcome, _drain(observer)

    session, store, outcome, events = asyncio.run(scenario())
    assert session.state is RecordingState.IDLE
    assert store.get_current_transcript() is None
    transcripts = store.get_all_transcripts()
    assert [item.id for item in transcripts] == [outcome.transcript_id]
    assert transcripts[0].state is TranscriptState.FINALIZED
    assert [seg.text for seg in transcripts[0].segments] == ["chunk 0"]
    assert [type(event) for event in events] == [TranscriptUpdate]
    assert fake_source.handles[0].closed


def test_start_while_recording_is_reported_noop(settings, fake_source, fake_transcriber):
    async def scenario():
        session, store, _ = _session(settings, fake_source, fake_transcriber)
        first = await session.start(MIC)
        second = await session.start(MIC)
        current = store.get_current_transcript()
        await session.stop()
        return first, second, current

    first, second, current = asyncio.run(scenario())
    assert first.started and not second.started
    assert second.message == "Already recording"
    assert second.transcript_id == first.transcript_id == current.id
    assert len(fake_source.handles) == 1


def test_capture_failure_stays_idle_without_transcript(settings, fake_transcriber):
    source = FakeSource(fail="Permission denied")

    async def scenario():
        session, store, _ = _session(settings, source, fake_transcriber)
        with pytest.raises(CaptureError):
            await session.start(MIC)
        return session, store

    session, store = asyncio.run(scenario())
    assert session.state is RecordingState.IDLE
    assert store.get_current_transcript() is None
    assert store.get_all_transcripts() == []


def test_stop_when_idle_is_noop(settings, fake_source, fake_transcriber):
    async def scenario():
        session, _, _ = _session(settings, fake_source, fake_transcriber)
        return await session.stop()

    assert asyncio.run(scenario()) is False


def test_transcription_failure_returns_to_idle_and_keeps_segments(settings, fake_source):
    settings = settings.model_copy(update={"max_chunk_seconds": 0.05})
    transcriber = FakeTranscriber(fail_on=3)

    async def scenario():
        session, store, bus = _session(settings, fake_source, transcriber)
        observer = bus.subscribe()
        outcome = await session.start(MIC)
        await wait_for(lambda: session.state is RecordingState.IDLE)
        return session, store, outcome, _drain(observer)

    session, store, outcome, events = asyncio.run(scenario())
    errors = [event for event in events if isinstance(event, RecordingError)]
    assert len(errors) == 1
    assert "503" in errors[0].message
    assert session.last_error == errors[0].message
    transcript = store.get_transcript(outcome.transcript_id)
    assert transcript.state is TranscriptState.FINALIZED
    assert [seg.start_time for seg in transcript.segments] == [0.0, 5.0, 10.0]
    assert store.get_current_transcript() is None
    assert fake_source.handles[0].closed


def test_source_ended_triggers_stop(settings, fake_source, fake_transcriber):
    async def scenario():
        session, store, _ = _session(settings, fake_source, fake_transcriber)
        outcome = await session.start(MIC)
        await wait_for(lambda: fake_source.handles[0].blobs_sent >= 2)
        fake_source.handles[0].end()
        await wait_for(lambda: session.state is RecordingState.IDLE)
        return store, outcome

    store, outcome = asyncio.run(scenario())
    transcript = store.get_transcript(outcome.transcript_id)
    assert transcript.state is TranscriptState.FINALIZED
    assert [seg.text for seg in transcript.segments] == ["chunk 0"]


def test_silence_cuts_chunks_during_recording(settings, fake_source, fake_transcriber):
    settings = settings.model_copy(update={"silence_seconds": 0.02, "min_chunk_seconds": 0.05})

    async def scenario():
        session, store, _ = _session(settings, fake_source, fake_transcriber)
        await session.start(MIC)
        await wait_for(lambda: len(fake_transcriber.calls) >= 2)
        await session.stop()
        return store

    store = asyncio.run(scenario())
    transcript = store.get_all_transcripts()[0]
    starts = [seg.start_time for seg in transcript.segments]
    assert len(starts) >= 2
    assert starts == sorted(starts)
    assert starts[:2] == [0.0, 5.0]


def test_new_session_resets_chunk_index(settings, fake_source, fake_transcriber):
    async def scenario():
        session, store, _ = _session(settings, fake_source, fake_transcriber)
        for _ in range(2):
            await session.start(MIC)
            await wait_for(lambda: fake_source.handles[-1].blobs_sent >= 1)
            await session.stop()
        return store

    store = asyncio.run(scenario())
    transcripts = store.get_all_transcripts()
    assert len(transcripts) == 2
    for transcript in transcripts:
        assert [seg.start_time for seg in transcript.segments] == [0.0]
    assert [index for index, _ in fake_transcriber.calls] == [0, 0]


def test_stop_waits_for_in_flight_request(settings, fake_source):
    transcriber = FakeTranscriber(delay=0.1)

    async def scenario():
        session, store, _ = _session(settings, fake_source, transcriber)
        outcome = await session.start(MIC)
        await wait_for(lambda: fake_source.handles[0].blobs_sent >= 1)
        await session.stop()
        return store, outcome

    store, outcome = asyncio.run(scenario())
    assert [seg.text for seg in store.get_transcript(outcome.transcript_id).segments] == ["chunk 0"]
