# batchvoice/app/domain/transitions.py
"""
Pure transition functions over FileRecord.

Each function takes a record and returns a new one, raising
IllegalTransitionError when the requested edge is not part of the
state machine. Nothing here touches the store, the queue or the network.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from batchvoice.app.domain.errors import IllegalTransitionError
from batchvoice.app.domain.models import (
    PROGRESS_AI_PROCESSED,
    PROGRESS_COMPLETED,
    PROGRESS_TRANSCRIBED,
    REPROCESSABLE_STATUSES,
    AudioResult,
    FileRecord,
    FileStatus,
    PipelineStage,
    RewriteResult,
    StageError,
    TranscriptionResult,
)

LEGAL_TRANSITIONS: dict[FileStatus, frozenset[FileStatus]] = {
    FileStatus.PENDING: frozenset({FileStatus.TRANSCRIBING}),
    FileStatus.TRANSCRIBING: frozenset({FileStatus.TRANSCRIBED, FileStatus.FAILED}),
    FileStatus.TRANSCRIBED: frozenset({FileStatus.AI_PROCESSING}),
    FileStatus.AI_PROCESSING: frozenset({FileStatus.AI_PROCESSED, FileStatus.FAILED}),
    FileStatus.AI_PROCESSED: frozenset({FileStatus.REVIEW_PENDING, FileStatus.GENERATING_SPEECH}),
    FileStatus.REVIEW_PENDING: frozenset({FileStatus.APPROVED, FileStatus.REJECTED}),
    FileStatus.APPROVED: frozenset({FileStatus.GENERATING_SPEECH}),
    FileStatus.GENERATING_SPEECH: frozenset({FileStatus.COMPLETED, FileStatus.FAILED}),
    FileStatus.COMPLETED: frozenset(),
    FileStatus.REJECTED: frozenset(),
    FileStatus.FAILED: frozenset({FileStatus.PENDING}),
}

STAGE_RUNNING_STATUS = {
    PipelineStage.TRANSCRIPTION: FileStatus.TRANSCRIBING,
    PipelineStage.AI_PROCESSING: FileStatus.AI_PROCESSING,
    PipelineStage.SPEECH_GENERATION: FileStatus.GENERATING_SPEECH,
}

RUNNING_STATUS_STAGE = {status: stage for stage, status in STAGE_RUNNING_STATUS.items()}

_STAGE_START_FIELD = {
    PipelineStage.TRANSCRIPTION: "transcription_start",
    PipelineStage.AI_PROCESSING: "ai_processing_start",
    PipelineStage.SPEECH_GENERATION: "speech_generation_start",
}


def can_transition(current: FileStatus, target: FileStatus) -> bool:
    return target in LEGAL_TRANSITIONS.get(current, frozenset())


def _ensure_transition(record: FileRecord, target: FileStatus) -> None:
    if not can_transition(record.status, target):
        raise IllegalTransitionError(record.id, record.status.value, target.value)


def _next_editable(
    current: Optional[str],
    previous_output: Optional[str],
    new_output: str,
    preserve_manual_edits: bool,
) -> str:
    # An edit is a value that differs from what the stage produced last time.
    if preserve_manual_edits and current is not None and current != previous_output:
        return current
    return new_output


def with_status(record: FileRecord, status: FileStatus, progress: Optional[int] = None) -> FileRecord:
    """Generic status update along a legal edge. Progress never moves backwards."""
    _ensure_transition(record, status)
    new_progress = record.progress if progress is None else max(record.progress, min(progress, 100))
    return replace(record, status=status, progress=new_progress)


def start_stage(record: FileRecord, stage: PipelineStage, now: datetime) -> FileRecord:
    target = STAGE_RUNNING_STATUS[stage]
    _ensure_transition(record, target)
    timestamps = replace(record.timestamps, **{_STAGE_START_FIELD[stage]: now})
    return replace(record, status=target, timestamps=timestamps)


def complete_transcription(
    record: FileRecord,
    result: TranscriptionResult,
    now: datetime,
    preserve_manual_edits: bool = False,
) -> FileRecord:
    _ensure_transition(record, FileStatus.TRANSCRIBED)
    previous = record.transcription.text if record.transcription else None
    return replace(
        record,
        status=FileStatus.TRANSCRIBED,
        progress=max(record.progress, PROGRESS_TRANSCRIBED),
        transcription=result,
        editable_transcript=_next_editable(
            record.editable_transcript, previous, result.text, preserve_manual_edits
        ),
        timestamps=replace(record.timestamps, transcription_end=now),
    )


def complete_rewrite(
    record: FileRecord,
    result: RewriteResult,
    now: datetime,
    preserve_manual_edits: bool = False,
) -> FileRecord:
    _ensure_transition(record, FileStatus.AI_PROCESSED)
    previous = record.rewrite.processed_text if record.rewrite else None
    return replace(
        record,
        status=FileStatus.AI_PROCESSED,
        progress=max(record.progress, PROGRESS_AI_PROCESSED),
        rewrite=result,
        editable_rewrite=_next_editable(
            record.editable_rewrite, previous, result.processed_text, preserve_manual_edits
        ),
        timestamps=replace(record.timestamps, ai_processing_end=now),
    )


def replace_rewrite(
    record: FileRecord,
    result: RewriteResult,
    now: datetime,
    preserve_manual_edits: bool = False,
) -> FileRecord:
    """Swap in a reprocessed rewrite. Status and progress are left untouched."""
    if record.status not in REPROCESSABLE_STATUSES:
        raise IllegalTransitionError(record.id, record.status.value, FileStatus.AI_PROCESSING.value)
    previous = record.rewrite.processed_text if record.rewrite else None
    return replace(
        record,
        rewrite=result,
        editable_rewrite=_next_editable(
            record.editable_rewrite, previous, result.processed_text, preserve_manual_edits
        ),
        timestamps=replace(record.timestamps, ai_processing_end=now),
    )


def complete_speech(record: FileRecord, result: AudioResult, now: datetime) -> FileRecord:
    _ensure_transition(record, FileStatus.COMPLETED)
    return replace(
        record,
        status=FileStatus.COMPLETED,
        progress=PROGRESS_COMPLETED,
        final_audio=result,
        timestamps=replace(record.timestamps, speech_generation_end=now, completed_at=now),
    )


def append_error(record: FileRecord, stage: PipelineStage, message: str, now: datetime) -> FileRecord:
    error = StageError(stage=stage, message=message, occurred_at=now)
    return replace(record, errors=record.errors + (error,))


def fail_stage(record: FileRecord, stage: PipelineStage, message: str, now: datetime) -> FileRecord:
    _ensure_transition(record, FileStatus.FAILED)
    failed = replace(record, status=FileStatus.FAILED)
    return append_error(failed, stage, message, now)


def request_review(record: FileRecord) -> FileRecord:
    return with_status(record, FileStatus.REVIEW_PENDING)


def approve(record: FileRecord) -> FileRecord:
    return with_status(record, FileStatus.APPROVED)


def reject(record: FileRecord) -> FileRecord:
    return with_status(record, FileStatus.REJECTED)


def reset_for_retry(record: FileRecord) -> FileRecord:
    """FAILED -> PENDING as a new attempt. Earlier results and errors are kept."""
    _ensure_transition(record, FileStatus.PENDING)
    return replace(record, status=FileStatus.PENDING, progress=0, attempt=record.attempt + 1)


def edit_transcript(record: FileRecord, text: str) -> FileRecord:
    return replace(record, editable_transcript=text)


def edit_rewrite(record: FileRecord, text: str) -> FileRecord:
    return replace(record, editable_rewrite=text)
