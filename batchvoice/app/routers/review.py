# batchvoice/app/routers/review.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from batchvoice.app.deps import get_engine
from batchvoice.app.domain.errors import FileNotFoundInStoreError, IllegalTransitionError
from batchvoice.app.schemas.files import FileListResponse, FileResponse
from batchvoice.app.schemas.processing import ApproveRequest, QueueActionResponse
from batchvoice.app.services.queue_engine import QueueEngine

router = APIRouter(prefix="/review", tags=["Review"])


class ReviewQueueResponse(FileListResponse):
    approved_files: list[str]


def _review_error(error: Exception) -> HTTPException:
    if isinstance(error, FileNotFoundInStoreError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))


@router.get("", response_model=ReviewQueueResponse)
async def list_review_queue(engine: QueueEngine = Depends(get_engine)):
    gate = engine.review_gate
    pending = gate.pending()
    return ReviewQueueResponse(
        files=[FileResponse.from_record(r) for r in pending],
        total=len(pending),
        approved_files=gate.approved_files,
    )


@router.post("/approve-all", response_model=QueueActionResponse, status_code=status.HTTP_202_ACCEPTED)
async def approve_all(engine: QueueEngine = Depends(get_engine)):
    count = engine.approve_all()
    return QueueActionResponse(count=count, queue=engine.queue)


@router.post("/{file_id}/approve", response_model=FileResponse)
async def approve(
    file_id: str,
    request: Optional[ApproveRequest] = None,
    engine: QueueEngine = Depends(get_engine),
):
    edited = request.edited_text if request else None
    try:
        record = engine.approve(file_id, edited)
    except (FileNotFoundInStoreError, IllegalTransitionError) as e:
        raise _review_error(e)
    return FileResponse.from_record(record)


@router.post("/{file_id}/reject", response_model=FileResponse)
async def reject(file_id: str, engine: QueueEngine = Depends(get_engine)):
    try:
        record = engine.reject(file_id)
    except (FileNotFoundInStoreError, IllegalTransitionError) as e:
        raise _review_error(e)
    return FileResponse.from_record(record)
