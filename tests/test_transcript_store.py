import json

import pytest

from livescribe.errors import PreconditionError, StorageError, TranscriptNotFound
from livescribe.store.models import TranscriptSegment, TranscriptState
from livescribe.store.transcript_store import TranscriptStore


def _segment(speaker="Speaker 1", text="hello", start=0.0, length=5.0):
    return TranscriptSegment(speaker=speaker, text=text, start_time=start, end_time=start + length)


@pytest.fixture()
def store(tmp_path):
    return TranscriptStore(tmp_path / "store" / "transcripts.json", max_transcripts=3)


def test_append_and_finalize(store):
    transcript = store.start_new_transcript()
    store.append_segment(_segment(text="one"))
    store.append_segment(_segment(speaker="Speaker 2", text="two", start=5.0))
    store.append_segment(_segment(text="three", start=5.0))

    current = store.get_current_transcript()
    assert current.id == transcript.id
    assert current.state is TranscriptState.ACTIVE
    assert [seg.text for seg in current.segments] == ["one", "two", "three"]
    assert current.speakers == ["Speaker 1", "Speaker 2"]

    finalized = store.finalize_current_transcript()
    assert finalized.state is TranscriptState.FINALIZED
    assert finalized.duration == 10.0
    assert finalized.finalized_at is not None
    assert store.get_current_transcript() is None
    assert [item.id for item in store.get_all_transcripts()] == [transcript.id]


def test_start_while_active_is_rejected(store):
    store.start_new_transcript()
    with pytest.raises(PreconditionError):
        store.start_new_transcript()


def test_append_without_active_transcript_is_rejected(store):
    with pytest.raises(PreconditionError):
        store.append_segment(_segment())
    store.start_new_transcript()
    store.finalize_current_transcript()
    with pytest.raises(PreconditionError):
        store.append_segment(_segment())


def test_append_rejects_earlier_start_time(store):
    store.start_new_transcript()
    store.append_segment(_segment(start=10.0))
    with pytest.raises(PreconditionError):
        store.append_segment(_segment(start=5.0))
    assert len(store.get_current_transcript().segments) == 1


def test_finalize_without_active_is_noop(store):
    assert store.finalize_current_transcript() is None
    assert store.get_all_transcripts() == []


def test_finalize_empty_transcript(store):
    store.start_new_transcript()
    finalized = store.finalize_current_transcript()
    assert finalized.segments == []
    assert finalized.duration == 0.0
    assert finalized.state is TranscriptState.FINALIZED
    assert len(store.get_all_transcripts()) == 1


def test_speaker_rename_is_idempotent_and_display_only(store):
    transcript = store.start_new_transcript()
    store.append_segment(_segment())
    store.finalize_current_transcript()

    once = store.update_speaker_name(transcript.id, "Speaker 1", "Alice")
    twice = store.update_speaker_name(transcript.id, "Speaker 1", "Alice")
    assert once.speaker_map == twice.speaker_map == {"Speaker 1": "Alice"}
    assert twice.segments[0].speaker == "Speaker 1"
    assert twice.display_name("Speaker 1") == "Alice"
    assert twice.display_name("Speaker 9") == "Speaker 9"

    renamed = store.update_speaker_name(transcript.id, "Speaker 1", "Bob")
    assert renamed.speaker_map == {"Speaker 1": "Bob"}


def test_speaker_rename_on_active_transcript(store):
    transcript = store.start_new_transcript()
    store.append_segment(_segment())
    store.update_speaker_name(transcript.id, "Speaker 1", "Alice")
    assert store.get_current_transcript().speaker_map == {"Speaker 1": "Alice"}


def test_speaker_rename_rejections(store):
    transcript = store.start_new_transcript()
    store.append_segment(_segment())
    with pytest.raises(TranscriptNotFound):
        store.update_speaker_name("missing", "Speaker 1", "Alice")
    with pytest.raises(PreconditionError):
        store.update_speaker_name(transcript.id, "Speaker 7", "Alice")
    with pytest.raises(PreconditionError):
        store.update_speaker_name(transcript.id, "Speaker 1", "   ")


def test_delete_and_clear(store):
    ids = []
    for _ in range(2):
        ids.append(store.start_new_transcript().id)
        store.finalize_current_transcript()
    active = store.start_new_transcript()

    with pytest.raises(PreconditionError):
        store.delete_transcript(active.id)
    with pytest.raises(TranscriptNotFound):
        store.delete_transcript("missing")

    store.delete_transcript(ids[0])
    assert [item.id for item in store.get_all_transcripts()] == [ids[1]]

    store.clear_all()
    assert store.get_all_transcripts() == []
    assert store.get_current_transcript().id == active.id


def test_retention_evicts_oldest_first(store):
    ids = []
    for _ in range(5):
        ids.append(store.start_new_transcript().id)
        store.finalize_current_transcript()
    assert [item.id for item in store.get_all_transcripts()] == list(reversed(ids))[:3]


def test_state_survives_reload(tmp_path):
    path = tmp_path / "transcripts.json"
    store = TranscriptStore(path)
    transcript = store.start_new_transcript()
    store.append_segment(_segment())
    store.finalize_current_transcript()
    store.update_speaker_name(transcript.id, "Speaker 1", "Alice")

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["active"] is None
    entry = raw["transcripts"][0]
    assert entry["speakerMap"] == {"Speaker 1": "Alice"}
    assert entry["segments"][0]["startTime"] == 0.0

    reloaded = TranscriptStore(path).get_transcript(transcript.id)
    assert reloaded.speaker_map == {"Speaker 1": "Alice"}
    assert reloaded.segments[0].text == "hello"


def test_unfinished_transcript_is_finalized_on_load(tmp_path):
    path = tmp_path / "transcripts.json"
    store = TranscriptStore(path)
    transcript = store.start_new_transcript()
    store.append_segment(_segment())

    recovered = TranscriptStore(path)
    assert recovered.get_current_transcript() is None
    restored = recovered.get_transcript(transcript.id)
    assert restored.state is TranscriptState.FINALIZED
    assert len(restored.segments) == 1


def test_corrupt_file_raises_storage_error(tmp_path):
    path = tmp_path / "transcripts.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StorageError):
        TranscriptStore(path)


def test_returned_transcripts_are_copies(store):
    store.start_new_transcript()
    current = store.get_current_transcript()
    current.segments.append(_segment())
    assert store.get_current_transcript().segments == []
