# batchvoice/app/routers/processing.py
"""
Queue control: start, retry, pause/resume, reprocess and stats.

Every route only schedules work on the engine and returns immediately,
except reprocess, which awaits the single rewrite call.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from batchvoice.app.deps import get_engine, get_store
from batchvoice.app.domain.errors import (
    EmptyBatchError,
    FileNotFoundInStoreError,
    IllegalTransitionError,
    StageFailure,
)
from batchvoice.app.schemas.files import FileResponse
from batchvoice.app.schemas.processing import QueueActionResponse, StartBatchRequest, StatsResponse
from batchvoice.app.services.file_store import FileRecordStore
from batchvoice.app.services.queue_engine import QueueEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/processing", tags=["Processing"])


def _action(engine: QueueEngine, count: int) -> QueueActionResponse:
    return QueueActionResponse(count=count, queue=engine.queue)


@router.post("/start", response_model=QueueActionResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_batch(
    request: Optional[StartBatchRequest] = None,
    engine: QueueEngine = Depends(get_engine),
    store: FileRecordStore = Depends(get_store),
):
    file_ids = request.file_ids if request else None
    if file_ids is None:
        file_ids = [record.id for record in store.records()]
    try:
        count = engine.start_batch_processing(file_ids)
    except EmptyBatchError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _action(engine, count)


@router.post("/retry", response_model=QueueActionResponse, status_code=status.HTTP_202_ACCEPTED)
async def retry_failed(engine: QueueEngine = Depends(get_engine)):
    return _action(engine, engine.retry_failed_files())


@router.post("/files/{file_id}/retry", response_model=FileResponse, status_code=status.HTTP_202_ACCEPTED)
async def retry_file(file_id: str, engine: QueueEngine = Depends(get_engine)):
    try:
        record = engine.retry_file(file_id)
    except FileNotFoundInStoreError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IllegalTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return FileResponse.from_record(record)


@router.post("/pause", response_model=QueueActionResponse)
async def pause(engine: QueueEngine = Depends(get_engine)):
    return _action(engine, engine.pause_processing())


@router.post("/resume", response_model=QueueActionResponse, status_code=status.HTTP_202_ACCEPTED)
async def resume(engine: QueueEngine = Depends(get_engine)):
    return _action(engine, engine.resume_processing())


@router.post("/files/{file_id}/reprocess", response_model=FileResponse)
async def reprocess_file(file_id: str, engine: QueueEngine = Depends(get_engine)):
    """Re-run the rewrite with the current prompt. Waits for the model reply."""
    try:
        record = await engine.reprocess_file(file_id)
    except FileNotFoundInStoreError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IllegalTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StageFailure as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return FileResponse.from_record(record)


@router.post("/audio", response_model=QueueActionResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_audio(engine: QueueEngine = Depends(get_engine)):
    try:
        count = engine.start_batch_audio_generation()
    except EmptyBatchError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _action(engine, count)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(engine: QueueEngine = Depends(get_engine)):
    return StatsResponse.from_stats(engine.stats(), current_file_id=engine.current_file_id)
