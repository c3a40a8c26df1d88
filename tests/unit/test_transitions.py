from __future__ import annotations

import pytest
from datetime import datetime, timezone

from batchvoice.app.domain import transitions
from batchvoice.app.domain.errors import IllegalTransitionError
from batchvoice.app.domain.models import (
    AudioResult,
    FileRecord,
    FileStatus,
    PipelineStage,
    RewriteResult,
    TranscriptionResult,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _record(**overrides) -> FileRecord:
    base = dict(id="f1", name="talk.mp3", size=10, content_type="audio/mpeg")
    base.update(overrides)
    return FileRecord(**base)


def _rewrite(text: str = "clean text") -> RewriteResult:
    return RewriteResult(processed_text=text, original_text="raw", prompt_used="p", model="gpt-3.5-turbo")


class TestLegalEdges:
    def test_happy_path_edges(self) -> None:
        assert transitions.can_transition(FileStatus.PENDING, FileStatus.TRANSCRIBING)
        assert transitions.can_transition(FileStatus.AI_PROCESSED, FileStatus.REVIEW_PENDING)
        assert transitions.can_transition(FileStatus.AI_PROCESSED, FileStatus.GENERATING_SPEECH)
        assert transitions.can_transition(FileStatus.FAILED, FileStatus.PENDING)

    def test_no_skips_or_exits_from_terminal(self) -> None:
        assert not transitions.can_transition(FileStatus.PENDING, FileStatus.COMPLETED)
        assert not transitions.can_transition(FileStatus.TRANSCRIBED, FileStatus.FAILED)
        assert not transitions.can_transition(FileStatus.COMPLETED, FileStatus.PENDING)
        assert not transitions.can_transition(FileStatus.REJECTED, FileStatus.APPROVED)

    def test_failed_only_reachable_from_in_flight(self) -> None:
        sources = {s for s, targets in transitions.LEGAL_TRANSITIONS.items() if FileStatus.FAILED in targets}
        assert sources == {FileStatus.TRANSCRIBING, FileStatus.AI_PROCESSING, FileStatus.GENERATING_SPEECH}

    def test_illegal_edge_raises(self) -> None:
        with pytest.raises(IllegalTransitionError) as exc_info:
            transitions.with_status(_record(), FileStatus.COMPLETED)

        assert exc_info.value.current == "pending"
        assert exc_info.value.target == "completed"


class TestStageTransitions:
    def test_start_stage_sets_running_status_and_timestamp(self) -> None:
        record = transitions.start_stage(_record(), PipelineStage.TRANSCRIPTION, NOW)

        assert record.status == FileStatus.TRANSCRIBING
        assert record.timestamps.transcription_start == NOW

    def test_complete_transcription(self) -> None:
        record = transitions.start_stage(_record(), PipelineStage.TRANSCRIPTION, NOW)
        record = transitions.complete_transcription(record, TranscriptionResult(text="hello"), NOW)

        assert record.status == FileStatus.TRANSCRIBED
        assert record.progress == 33
        assert record.editable_transcript == "hello"
        assert record.timestamps.transcription_end == NOW

    def test_complete_speech_sets_full_progress(self) -> None:
        record = _record(status=FileStatus.GENERATING_SPEECH, progress=66)
        audio = AudioResult(data=b"mp3", format="mp3")

        record = transitions.complete_speech(record, audio, NOW)

        assert record.status == FileStatus.COMPLETED
        assert record.progress == 100
        assert record.final_audio is audio
        assert record.timestamps.completed_at == NOW

    def test_fail_stage_appends_error_and_keeps_progress(self) -> None:
        record = _record(status=FileStatus.AI_PROCESSING, progress=33)

        record = transitions.fail_stage(record, PipelineStage.AI_PROCESSING, "boom", NOW)

        assert record.status == FileStatus.FAILED
        assert record.progress == 33
        assert record.errors[-1].stage == PipelineStage.AI_PROCESSING
        assert record.errors[-1].message == "boom"

    def test_errors_are_append_only(self) -> None:
        record = transitions.append_error(_record(), PipelineStage.TRANSCRIPTION, "first", NOW)
        record = transitions.append_error(record, PipelineStage.AI_PROCESSING, "second", NOW)

        assert [e.message for e in record.errors] == ["first", "second"]

    def test_progress_never_moves_backwards(self) -> None:
        record = _record(status=FileStatus.AI_PROCESSED, progress=66)

        record = transitions.with_status(record, FileStatus.REVIEW_PENDING, progress=10)

        assert record.progress == 66


class TestRetryAndReview:
    def test_reset_for_retry_starts_new_attempt(self) -> None:
        record = _record(status=FileStatus.TRANSCRIBING)
        record = transitions.fail_stage(record, PipelineStage.TRANSCRIPTION, "down", NOW)

        record = transitions.reset_for_retry(record)

        assert record.status == FileStatus.PENDING
        assert record.progress == 0
        assert record.attempt == 2
        assert len(record.errors) == 1

    def test_reset_only_from_failed(self) -> None:
        with pytest.raises(IllegalTransitionError):
            transitions.reset_for_retry(_record(status=FileStatus.COMPLETED))

    def test_review_edges(self) -> None:
        record = _record(status=FileStatus.AI_PROCESSED, progress=66)

        pending = transitions.request_review(record)
        assert pending.status == FileStatus.REVIEW_PENDING
        assert transitions.approve(pending).status == FileStatus.APPROVED
        assert transitions.reject(pending).status == FileStatus.REJECTED


class TestEditPolicy:
    def test_new_output_overwrites_edit_by_default(self) -> None:
        record = _record(status=FileStatus.AI_PROCESSED, rewrite=_rewrite("v1"), editable_rewrite="edited")

        record = transitions.replace_rewrite(record, _rewrite("v2"), NOW)

        assert record.editable_rewrite == "v2"
        assert record.status == FileStatus.AI_PROCESSED

    def test_edit_preserved_when_requested(self) -> None:
        record = _record(status=FileStatus.AI_PROCESSED, rewrite=_rewrite("v1"), editable_rewrite="edited")

        record = transitions.replace_rewrite(record, _rewrite("v2"), NOW, preserve_manual_edits=True)

        assert record.editable_rewrite == "edited"
        assert record.rewrite.processed_text == "v2"

    def test_untouched_editable_follows_new_output(self) -> None:
        record = _record(status=FileStatus.AI_PROCESSED, rewrite=_rewrite("v1"), editable_rewrite="v1")

        record = transitions.replace_rewrite(record, _rewrite("v2"), NOW, preserve_manual_edits=True)

        assert record.editable_rewrite == "v2"

    @pytest.mark.parametrize(
        "status",
        [FileStatus.GENERATING_SPEECH, FileStatus.COMPLETED, FileStatus.REJECTED, FileStatus.APPROVED],
    )
    def test_replace_rewrite_only_before_speech(self, status: FileStatus) -> None:
        record = _record(status=status, rewrite=_rewrite("v1"))

        with pytest.raises(IllegalTransitionError):
            transitions.replace_rewrite(record, _rewrite("v2"), NOW)
