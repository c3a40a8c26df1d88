# batchvoice/app/services/review_gate.py
"""
Human review checkpoint between the rewrite and speech stages.

The gate only keeps bookkeeping: the FIFO ReviewQueue and the set of
approved files. It re-enters approved files into the processing queue
through the `requeue` callback it is attached to, so it never imports
the engine.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from batchvoice.app.domain.models import FileRecord, FileStatus
from batchvoice.app.services.file_store import FileRecordStore

logger = logging.getLogger(__name__)

Requeue = Callable[[Iterable[str]], int]


class ReviewGate:
    def __init__(self, store: FileRecordStore, requeue: Optional[Requeue] = None) -> None:
        self._store = store
        self._requeue = requeue
        self._review_queue: list[str] = []
        self._approved: list[str] = []

    def attach(self, requeue: Requeue) -> None:
        self._requeue = requeue

    @property
    def review_queue(self) -> list[str]:
        return list(self._review_queue)

    @property
    def approved_files(self) -> list[str]:
        return list(self._approved)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._review_queue

    def pending(self) -> list[FileRecord]:
        records = (self._store.get(file_id) for file_id in self._review_queue)
        return [record for record in records if record is not None]

    def submit(self, file_id: str) -> Optional[FileRecord]:
        """Park an AI_PROCESSED file in REVIEW_PENDING."""
        record = self._store.request_review(file_id)
        if record is None:
            return None
        if file_id not in self._review_queue:
            self._review_queue.append(file_id)
        logger.info("review.submitted file=%s queue=%d", file_id, len(self._review_queue))
        return record

    def approve(self, file_id: str, edited_text: Optional[str] = None) -> Optional[FileRecord]:
        record = self._store.approve(file_id)
        if record is None:
            self.discard(file_id)
            return None
        if edited_text is not None:
            record = self._store.set_editable_rewrite(file_id, edited_text)

        self._remove_from_review(file_id)
        if file_id not in self._approved:
            self._approved.append(file_id)
        logger.info("review.approved file=%s", file_id)
        self._send_to_queue([file_id])
        return record

    def reject(self, file_id: str) -> Optional[FileRecord]:
        record = self._store.reject(file_id)
        if record is None:
            self.discard(file_id)
            return None
        self._remove_from_review(file_id)
        logger.info("review.rejected file=%s", file_id)
        return record

    def approve_all(self) -> int:
        """Approve every file awaiting review in FIFO order, then queue all approved files for speech."""
        for file_id in list(self._review_queue):
            self.approve(file_id)
        return self.queue_approved()

    def queue_approved(self) -> int:
        ready = [
            file_id
            for file_id in self._approved
            if (record := self._store.get(file_id)) is not None and record.status is FileStatus.APPROVED
        ]
        if ready:
            self._send_to_queue(ready)
        return len(ready)

    def mark_speech_started(self, file_id: str) -> None:
        if file_id in self._approved:
            self._approved.remove(file_id)

    def discard(self, file_id: str) -> None:
        self._remove_from_review(file_id)
        self.mark_speech_started(file_id)

    def clear(self) -> None:
        self._review_queue.clear()
        self._approved.clear()

    def _remove_from_review(self, file_id: str) -> None:
        if file_id in self._review_queue:
            self._review_queue.remove(file_id)

    def _send_to_queue(self, file_ids: list[str]) -> None:
        if self._requeue is None:
            logger.warning("Review gate has no processing queue attached; %d file(s) not requeued", len(file_ids))
            return
        self._requeue(file_ids)
