# batchvoice/app/services/file_store.py
"""
In-memory store of FileRecords.

Every mutation is addressed by id, re-reads the current record, runs a pure
transition function from `batchvoice.app.domain.transitions` and swaps the
result in. Operations on an unknown id are no-ops that return None, which
lets late results for removed files fall on the floor.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
from uuid import uuid4

from batchvoice.app.domain import transitions
from batchvoice.app.domain.errors import UnsupportedMediaError
from batchvoice.app.domain.models import (
    AudioResult,
    FileRecord,
    FileStatus,
    MediaUpload,
    PipelineStage,
    RewriteResult,
    StageTimestamps,
    TranscriptionResult,
)
from batchvoice.services.media import validate_media

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class FileRecordStore:
    def __init__(self, clock: Callable[[], datetime] = _now_utc) -> None:
        self._records: dict[str, FileRecord] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._records

    def add_files(self, uploads: Iterable[MediaUpload]) -> list[str]:
        """Create PENDING records for accepted uploads. Unsupported files are dropped."""
        added: list[str] = []
        now = self._clock()
        for upload in uploads:
            try:
                validate_media(upload.filename, upload.content_type)
            except UnsupportedMediaError as error:
                logger.info("Dropping upload: %s", error)
                continue

            record = FileRecord(
                id=str(uuid4()),
                name=upload.filename,
                size=upload.size,
                content_type=upload.content_type,
                media=upload,
                timestamps=StageTimestamps(added=now),
            )
            self._records[record.id] = record
            added.append(record.id)

        if added:
            logger.info("Added %d file(s) to store", len(added))
        return added

    def get(self, file_id: str) -> Optional[FileRecord]:
        return self._records.get(file_id)

    def records(self) -> list[FileRecord]:
        return list(self._records.values())

    def with_status(self, *statuses: FileStatus) -> list[FileRecord]:
        wanted = set(statuses)
        return [record for record in self._records.values() if record.status in wanted]

    def in_flight(self) -> list[FileRecord]:
        return [record for record in self._records.values() if record.status.is_in_flight]

    def remove_file(self, file_id: str) -> Optional[FileRecord]:
        return self._records.pop(file_id, None)

    def clear_all(self) -> int:
        count = len(self._records)
        self._records.clear()
        return count

    def _apply(self, file_id: str, transition: Callable[[FileRecord], FileRecord]) -> Optional[FileRecord]:
        record = self._records.get(file_id)
        if record is None:
            logger.debug("Ignoring update for missing file %s", file_id)
            return None
        updated = transition(record)
        self._records[file_id] = updated
        return updated

    def update_status(
        self,
        file_id: str,
        status: FileStatus,
        progress: Optional[int] = None,
    ) -> Optional[FileRecord]:
        return self._apply(file_id, lambda r: transitions.with_status(r, status, progress))

    def start_stage(self, file_id: str, stage: PipelineStage) -> Optional[FileRecord]:
        now = self._clock()
        return self._apply(file_id, lambda r: transitions.start_stage(r, stage, now))

    def attach_transcription(
        self,
        file_id: str,
        result: TranscriptionResult,
        preserve_manual_edits: bool = False,
    ) -> Optional[FileRecord]:
        now = self._clock()
        return self._apply(
            file_id,
            lambda r: transitions.complete_transcription(r, result, now, preserve_manual_edits),
        )

    def attach_rewrite(
        self,
        file_id: str,
        result: RewriteResult,
        preserve_manual_edits: bool = False,
    ) -> Optional[FileRecord]:
        now = self._clock()
        return self._apply(
            file_id,
            lambda r: transitions.complete_rewrite(r, result, now, preserve_manual_edits),
        )

    def replace_rewrite(
        self,
        file_id: str,
        result: RewriteResult,
        preserve_manual_edits: bool = False,
    ) -> Optional[FileRecord]:
        now = self._clock()
        return self._apply(
            file_id,
            lambda r: transitions.replace_rewrite(r, result, now, preserve_manual_edits),
        )

    def attach_audio(self, file_id: str, result: AudioResult) -> Optional[FileRecord]:
        now = self._clock()
        return self._apply(file_id, lambda r: transitions.complete_speech(r, result, now))

    def append_error(self, file_id: str, stage: PipelineStage, message: str) -> Optional[FileRecord]:
        now = self._clock()
        return self._apply(file_id, lambda r: transitions.append_error(r, stage, message, now))

    def fail_stage(self, file_id: str, stage: PipelineStage, message: str) -> Optional[FileRecord]:
        now = self._clock()
        return self._apply(file_id, lambda r: transitions.fail_stage(r, stage, message, now))

    def request_review(self, file_id: str) -> Optional[FileRecord]:
        return self._apply(file_id, transitions.request_review)

    def approve(self, file_id: str) -> Optional[FileRecord]:
        return self._apply(file_id, transitions.approve)

    def reject(self, file_id: str) -> Optional[FileRecord]:
        return self._apply(file_id, transitions.reject)

    def reset_for_retry(self, file_id: str) -> Optional[FileRecord]:
        return self._apply(file_id, transitions.reset_for_retry)

    def set_editable_transcript(self, file_id: str, text: str) -> Optional[FileRecord]:
        return self._apply(file_id, lambda r: transitions.edit_transcript(r, text))

    def set_editable_rewrite(self, file_id: str, text: str) -> Optional[FileRecord]:
        return self._apply(file_id, lambda r: transitions.edit_rewrite(r, text))
