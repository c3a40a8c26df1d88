from __future__ import annotations

import pytest
from datetime import datetime, timezone

from batchvoice.app.domain.errors import IllegalTransitionError
from batchvoice.app.domain.models import (
    FileStatus,
    MediaUpload,
    PipelineStage,
    TranscriptionResult,
)
from batchvoice.app.services.file_store import FileRecordStore

FIXED = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


def _store() -> FileRecordStore:
    return FileRecordStore(clock=lambda: FIXED)


class TestAddFiles:
    def test_accepts_by_extension_or_mime(self) -> None:
        store = _store()

        ids = store.add_files([
            MediaUpload("talk.MP3", b"a", ""),
            MediaUpload("clip", b"bb", "video/webm"),
        ])

        assert len(ids) == 2
        first = store.get(ids[0])
        assert first.status == FileStatus.PENDING
        assert first.progress == 0
        assert first.size == 1
        assert first.timestamps.added == FIXED

    def test_drops_unsupported_files(self) -> None:
        store = _store()

        ids = store.add_files([
            MediaUpload("notes.txt", b"x", "text/plain"),
            MediaUpload("song.flac", b"x", "audio/flac"),
        ])

        assert len(ids) == 1
        assert store.get(ids[0]).name == "song.flac"
        assert len(store) == 1

    def test_ids_are_unique(self) -> None:
        store = _store()

        ids = store.add_files([MediaUpload("a.mp3", b"x")] * 3)

        assert len(set(ids)) == 3


class TestMutations:
    def test_missing_id_is_a_noop(self) -> None:
        store = _store()

        assert store.update_status("nope", FileStatus.TRANSCRIBING) is None
        assert store.attach_transcription("nope", TranscriptionResult(text="x")) is None
        assert store.append_error("nope", PipelineStage.TRANSCRIPTION, "x") is None
        assert store.remove_file("nope") is None

    def test_stage_round_uses_clock(self) -> None:
        store = _store()
        (file_id,) = store.add_files([MediaUpload("a.mp3", b"x")])

        store.start_stage(file_id, PipelineStage.TRANSCRIPTION)
        record = store.attach_transcription(file_id, TranscriptionResult(text="hi"))

        assert record.status == FileStatus.TRANSCRIBED
        assert record.timestamps.transcription_start == FIXED
        assert record.timestamps.transcription_end == FIXED

    def test_illegal_update_raises_and_keeps_record(self) -> None:
        store = _store()
        (file_id,) = store.add_files([MediaUpload("a.mp3", b"x")])

        with pytest.raises(IllegalTransitionError):
            store.update_status(file_id, FileStatus.COMPLETED)

        assert store.get(file_id).status == FileStatus.PENDING

    def test_in_flight_and_with_status(self) -> None:
        store = _store()
        first, second = store.add_files([MediaUpload("a.mp3", b"x"), MediaUpload("b.mp3", b"x")])

        store.start_stage(first, PipelineStage.TRANSCRIPTION)

        assert [r.id for r in store.in_flight()] == [first]
        assert [r.id for r in store.with_status(FileStatus.PENDING)] == [second]

    def test_edits_do_not_change_status(self) -> None:
        store = _store()
        (file_id,) = store.add_files([MediaUpload("a.mp3", b"x")])

        record = store.set_editable_transcript(file_id, "typed by hand")

        assert record.editable_transcript == "typed by hand"
        assert record.status == FileStatus.PENDING

    def test_clear_all_returns_count(self) -> None:
        store = _store()
        store.add_files([MediaUpload("a.mp3", b"x"), MediaUpload("b.mp3", b"x")])

        assert store.clear_all() == 2
        assert store.records() == []
