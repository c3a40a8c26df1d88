# batchvoice/app/services/queue_engine.py
"""
Single-flight batch scheduler.

One asyncio task drains the ProcessingQueue head by head and drives each
file through transcription, rewrite, the optional review gate and speech.
The record is re-read from the store after every suspension point, so a
file removed or paused mid-stage simply stops advancing.

Every remote call runs under `_stage_lock`, which also serializes manual
reprocess calls against the scheduler.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from batchvoice.app.domain.errors import (
    EmptyBatchError,
    FileNotFoundInStoreError,
    IllegalTransitionError,
    MissingCredentialError,
    PreconditionError,
    StageFailure,
    StageTimeoutError,
)
from batchvoice.app.domain.models import (
    ADMISSIBLE_STATUSES,
    IN_FLIGHT_STATUSES,
    REPROCESSABLE_STATUSES,
    AudioResult,
    FileRecord,
    FileStatus,
    GlobalSettings,
    PipelineStage,
    ProcessingStats,
    RewriteResult,
    TranscriptionResult,
)
from batchvoice.app.domain.transitions import RUNNING_STATUS_STAGE
from batchvoice.app.infra.stages.base import RewriteBackend, SpeechBackend, TranscriptionBackend
from batchvoice.app.services.file_store import FileRecordStore
from batchvoice.app.services.review_gate import ReviewGate
from batchvoice.app.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueueEngine:
    def __init__(
        self,
        store: FileRecordStore,
        review_gate: ReviewGate,
        transcriber: TranscriptionBackend,
        rewriter: RewriteBackend,
        speech: SpeechBackend,
        settings_service: SettingsService,
        stage_delay_seconds: float = 1.0,
        settle_delay_seconds: float = 2.0,
        stage_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._store = store
        self._gate = review_gate
        self._transcriber = transcriber
        self._rewriter = rewriter
        self._speech = speech
        self._settings = settings_service
        self._stage_delay = stage_delay_seconds
        self._settle_delay = settle_delay_seconds
        self._stage_timeout = stage_timeout_seconds

        self._queue: list[str] = []
        self._current: Optional[str] = None
        self._stage_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task[None]] = None

        self._gate.attach(self.enqueue)

    # =================================================================
    # State
    # =================================================================

    @property
    def queue(self) -> list[str]:
        return list(self._queue)

    @property
    def review_gate(self) -> ReviewGate:
        return self._gate

    @property
    def current_file_id(self) -> Optional[str]:
        return self._current

    @property
    def is_processing(self) -> bool:
        return self._task is not None and not self._task.done()

    def stats(self) -> ProcessingStats:
        records = self._store.records()

        def count(*statuses: FileStatus) -> int:
            return sum(1 for record in records if record.status in statuses)

        return ProcessingStats(
            total=len(records),
            completed=count(FileStatus.COMPLETED),
            failed=count(FileStatus.FAILED),
            processing=count(*IN_FLIGHT_STATUSES),
            pending=count(FileStatus.PENDING),
            review_pending=count(FileStatus.REVIEW_PENDING),
            approved=count(FileStatus.APPROVED),
            rejected=count(FileStatus.REJECTED),
            queue_length=len(self._queue),
            review_queue_length=len(self._gate.review_queue),
            is_processing=self.is_processing,
        )

    # =================================================================
    # Admission
    # =================================================================

    def enqueue(self, file_ids: Iterable[str]) -> int:
        """Append ids not already queued and make sure the scheduler is running."""
        added = 0
        for file_id in file_ids:
            if file_id in self._queue or file_id not in self._store:
                continue
            self._queue.append(file_id)
            added += 1
        if added:
            logger.info("queue.enqueued count=%d length=%d", added, len(self._queue))
        self._kick()
        return added

    def start_batch_processing(self, file_ids: Iterable[str]) -> int:
        admissible = [
            file_id
            for file_id in dict.fromkeys(file_ids)
            if (record := self._store.get(file_id)) is not None and record.status in ADMISSIBLE_STATUSES
        ]
        if not admissible:
            raise EmptyBatchError()
        self.enqueue(admissible)
        return len(admissible)

    def start_batch_audio_generation(self) -> int:
        approved = [record.id for record in self._store.with_status(FileStatus.APPROVED)]
        if not approved:
            raise EmptyBatchError("No approved files ready for audio generation")
        self.enqueue(approved)
        return len(approved)

    def retry_failed_files(self) -> int:
        failed = [record.id for record in self._store.with_status(FileStatus.FAILED)]
        for file_id in failed:
            self._store.reset_for_retry(file_id)
        if failed:
            logger.info("queue.retry count=%d", len(failed))
            self.enqueue(failed)
        return len(failed)

    def retry_file(self, file_id: str) -> FileRecord:
        record = self._require(file_id)
        if record.status is not FileStatus.FAILED:
            raise IllegalTransitionError(file_id, record.status.value, FileStatus.PENDING.value)
        record = self._store.reset_for_retry(file_id)
        self.enqueue([file_id])
        return record

    def pause_processing(self) -> int:
        """Drop every queued id. The file in the slot halts after its current stage."""
        dropped = len(self._queue)
        self._queue.clear()
        logger.info("queue.paused dropped=%d current=%s", dropped, self._current)
        return dropped

    def resume_processing(self) -> int:
        ids = [record.id for record in self._store.records() if record.status in ADMISSIBLE_STATUSES]
        self.enqueue(ids)
        return len(ids)

    # =================================================================
    # Removal
    # =================================================================

    def remove_file(self, file_id: str) -> FileRecord:
        record = self._store.remove_file(file_id)
        if record is None:
            raise FileNotFoundInStoreError(file_id)
        self._drop_bookkeeping(file_id)
        logger.info("queue.file_removed file=%s status=%s", file_id, record.status.value)
        return record

    def clear_all(self) -> int:
        self._queue.clear()
        self._gate.clear()
        return self._store.clear_all()

    def _drop_bookkeeping(self, file_id: str) -> None:
        if file_id in self._queue:
            self._queue.remove(file_id)
        self._gate.discard(file_id)

    # =================================================================
    # Review
    # =================================================================

    def approve(self, file_id: str, edited_text: Optional[str] = None) -> FileRecord:
        self._require(file_id)
        return self._gate.approve(file_id, edited_text)

    def reject(self, file_id: str) -> FileRecord:
        self._require(file_id)
        return self._gate.reject(file_id)

    def approve_all(self) -> int:
        return self._gate.approve_all()

    # =================================================================
    # Reprocess
    # =================================================================

    async def reprocess_file(self, file_id: str) -> FileRecord:
        """Re-run only the rewrite stage with the current prompt. Status and progress are kept."""
        record = self._require(file_id)
        if record.status not in REPROCESSABLE_STATUSES:
            raise IllegalTransitionError(file_id, record.status.value, FileStatus.AI_PROCESSING.value)

        stage = PipelineStage.AI_PROCESSING
        global_settings = self._settings.snapshot()
        try:
            result = await self._call_rewrite(file_id, global_settings)
        except Exception as exc:
            self._store.append_error(file_id, stage, str(exc))
            logger.warning("queue.reprocess_failed file=%s error=%s", file_id, exc)
            if isinstance(exc, StageFailure):
                raise
            raise StageFailure(stage.value, str(exc)) from exc

        # The scheduler may have moved the file on while the model was answering
        try:
            updated = self._store.replace_rewrite(
                file_id, result, preserve_manual_edits=global_settings.preserve_manual_edits
            )
        except IllegalTransitionError as exc:
            logger.info("queue.result_discarded file=%s stage=%s status=%s", file_id, stage.value, exc.current)
            raise
        if updated is None:
            raise FileNotFoundInStoreError(file_id)
        logger.info("queue.reprocessed file=%s tokens=%d", file_id, result.tokens_used)
        return updated

    # =================================================================
    # Scheduler
    # =================================================================

    def _kick(self) -> None:
        if not self._queue or self.is_processing:
            return
        self._task = asyncio.create_task(self._run(), name="batch-queue")

    async def wait_idle(self) -> None:
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Cancel the scheduler. A file interrupted mid-stage is failed so it can be retried."""
        self._queue.clear()
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._current = None
        for record in self._store.in_flight():
            stage = RUNNING_STATUS_STAGE[record.status]
            self._store.fail_stage(record.id, stage, "Processing stopped")
            logger.warning("queue.stage_interrupted file=%s stage=%s", record.id, stage.value)

    async def _run(self) -> None:
        while self._queue:
            head = self._queue[0]
            self._current = head
            logger.info("queue.file_started file=%s remaining=%d", head, len(self._queue) - 1)
            try:
                await self._advance(head)
            except Exception:
                logger.exception("queue.unexpected_error file=%s", head)
            finally:
                if head in self._queue:
                    self._queue.remove(head)
                self._current = None
            if self._queue:
                await asyncio.sleep(self._settle_delay)

    def _still_queued(self, file_id: str) -> Optional[FileRecord]:
        if file_id not in self._queue:
            return None
        return self._store.get(file_id)

    async def _advance(self, file_id: str) -> None:
        while True:
            record = self._still_queued(file_id)
            if record is None:
                return

            if record.status is FileStatus.PENDING:
                ok = await self._transcribe(record)
            elif record.status is FileStatus.TRANSCRIBED:
                ok = await self._rewrite(record)
            elif record.status is FileStatus.AI_PROCESSED:
                if self._settings.snapshot().batch_review_mode:
                    self._gate.submit(file_id)
                    return
                ok = await self._synthesize(record)
            elif record.status is FileStatus.APPROVED:
                self._gate.mark_speech_started(file_id)
                ok = await self._synthesize(record)
            else:
                logger.debug("queue.file_skipped file=%s status=%s", file_id, record.status.value)
                return

            if not ok:
                return
            current = self._store.get(file_id)
            if current is None or current.status is FileStatus.COMPLETED:
                if current is not None:
                    logger.info("queue.file_completed file=%s", file_id)
                return
            await asyncio.sleep(self._stage_delay)

    async def _guarded(self, stage: PipelineStage, call: Callable[[], Awaitable[T]]) -> T:
        """Run `call` under the stage lock. Inputs are read inside `call`, after the lock is held."""
        async with self._stage_lock:
            if self._stage_timeout is None:
                return await call()
            try:
                return await asyncio.wait_for(call(), self._stage_timeout)
            except asyncio.TimeoutError as exc:
                raise StageTimeoutError(stage.value, self._stage_timeout) from exc

    def _fresh(self, file_id: str, stage: PipelineStage) -> FileRecord:
        record = self._store.get(file_id)
        if record is None:
            raise PreconditionError(stage.value, "File was removed")
        return record

    def _fail(self, file_id: str, stage: PipelineStage, exc: Exception) -> bool:
        message = str(exc) or exc.__class__.__name__
        if self._store.fail_stage(file_id, stage, message) is None:
            logger.info("queue.result_discarded file=%s stage=%s", file_id, stage.value)
            return False
        logger.warning("queue.stage_failed file=%s stage=%s error=%s", file_id, stage.value, message)
        return False

    async def _transcribe(self, record: FileRecord) -> bool:
        stage = PipelineStage.TRANSCRIPTION
        if self._store.start_stage(record.id, stage) is None:
            return False

        async def call() -> TranscriptionResult:
            media = self._fresh(record.id, stage).media
            if media is None:
                raise PreconditionError(stage.value, "No media available for transcription")
            return await self._transcriber.transcribe(media)

        try:
            result = await self._guarded(stage, call)
        except Exception as exc:
            return self._fail(record.id, stage, exc)

        preserve = self._settings.snapshot().preserve_manual_edits
        if self._store.attach_transcription(record.id, result, preserve_manual_edits=preserve) is None:
            logger.info("queue.result_discarded file=%s stage=%s", record.id, stage.value)
            return False
        logger.info("queue.stage_done file=%s stage=%s", record.id, stage.value)
        return True

    async def _rewrite(self, record: FileRecord) -> bool:
        stage = PipelineStage.AI_PROCESSING
        if self._store.start_stage(record.id, stage) is None:
            return False
        global_settings = self._settings.snapshot()
        try:
            result = await self._call_rewrite(record.id, global_settings)
        except Exception as exc:
            return self._fail(record.id, stage, exc)

        updated = self._store.attach_rewrite(
            record.id, result, preserve_manual_edits=global_settings.preserve_manual_edits
        )
        if updated is None:
            logger.info("queue.result_discarded file=%s stage=%s", record.id, stage.value)
            return False
        logger.info("queue.stage_done file=%s stage=%s tokens=%d", record.id, stage.value, result.tokens_used)
        return True

    async def _call_rewrite(self, file_id: str, global_settings: GlobalSettings) -> RewriteResult:
        stage = PipelineStage.AI_PROCESSING
        api_key = self._settings.resolve_api_key(global_settings)
        if not api_key:
            raise MissingCredentialError(stage.value)

        async def call() -> RewriteResult:
            text = self._fresh(file_id, stage).transcript_text
            if not text:
                raise PreconditionError(stage.value, "No transcript available for AI processing")
            return await self._rewriter.rewrite(
                text,
                self._settings.active_prompt(global_settings),
                api_key,
                global_settings.ai.model,
                prompt_type=global_settings.ai.selected_prompt_type,
            )

        return await self._guarded(stage, call)

    async def _synthesize(self, record: FileRecord) -> bool:
        stage = PipelineStage.SPEECH_GENERATION
        if self._store.start_stage(record.id, stage) is None:
            return False
        voice = self._settings.snapshot().voice

        async def call() -> AudioResult:
            text = self._fresh(record.id, stage).rewrite_text
            if not text:
                raise PreconditionError(stage.value, "No processed text available for speech generation")
            return await self._speech.synthesize(text, voice)

        try:
            result = await self._guarded(stage, call)
        except Exception as exc:
            return self._fail(record.id, stage, exc)

        if self._store.attach_audio(record.id, result) is None:
            logger.info("queue.result_discarded file=%s stage=%s", record.id, stage.value)
            return False
        logger.info("queue.stage_done file=%s stage=%s bytes=%d", record.id, stage.value, len(result.data))
        return True

    def _require(self, file_id: str) -> FileRecord:
        record = self._store.get(file_id)
        if record is None:
            raise FileNotFoundInStoreError(file_id)
        return record
