# batchvoice/app/routers/files.py
"""
File intake, listing, edits and removal.
"""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from batchvoice.app.deps import get_engine, get_store
from batchvoice.app.domain.errors import FileNotFoundInStoreError
from batchvoice.app.domain.models import FileRecord, MediaUpload
from batchvoice.app.schemas.files import (
    AddFilesResponse,
    ClearResponse,
    FileListResponse,
    FileResponse,
    TextEditRequest,
)
from batchvoice.app.services.file_store import FileRecordStore
from batchvoice.app.services.queue_engine import QueueEngine
from batchvoice.services.media import is_supported_media

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["Files"])


def _not_found(file_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"File not found: {file_id}")


def _get_or_404(store: FileRecordStore, file_id: str) -> FileRecord:
    record = store.get(file_id)
    if record is None:
        raise _not_found(file_id)
    return record


@router.post("", response_model=AddFilesResponse, status_code=status.HTTP_201_CREATED)
async def add_files(
    files: List[UploadFile] = File(...),
    store: FileRecordStore = Depends(get_store),
):
    """Accept a multipart batch. Unsupported files are dropped and listed in `rejected`."""
    uploads = []
    rejected = []
    for upload in files:
        name = upload.filename or "upload"
        content_type = upload.content_type or ""
        if not is_supported_media(name, content_type):
            rejected.append(name)
            continue
        uploads.append(MediaUpload(filename=name, content=await upload.read(), content_type=content_type))

    added = store.add_files(uploads)
    return AddFilesResponse(added=added, rejected=rejected)


@router.get("", response_model=FileListResponse)
async def list_files(store: FileRecordStore = Depends(get_store)):
    records = store.records()
    return FileListResponse(files=[FileResponse.from_record(r) for r in records], total=len(records))


@router.get("/{file_id}", response_model=FileResponse)
async def get_file(file_id: str, store: FileRecordStore = Depends(get_store)):
    return FileResponse.from_record(_get_or_404(store, file_id))


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_file(file_id: str, engine: QueueEngine = Depends(get_engine)):
    try:
        engine.remove_file(file_id)
    except FileNotFoundInStoreError:
        raise _not_found(file_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("", response_model=ClearResponse)
async def clear_files(engine: QueueEngine = Depends(get_engine)):
    return ClearResponse(removed=engine.clear_all())


@router.put("/{file_id}/transcript", response_model=FileResponse)
async def edit_transcript(
    file_id: str,
    request: TextEditRequest,
    store: FileRecordStore = Depends(get_store),
):
    record = store.set_editable_transcript(file_id, request.text)
    if record is None:
        raise _not_found(file_id)
    return FileResponse.from_record(record)


@router.put("/{file_id}/rewrite", response_model=FileResponse)
async def edit_rewrite(
    file_id: str,
    request: TextEditRequest,
    store: FileRecordStore = Depends(get_store),
):
    record = store.set_editable_rewrite(file_id, request.text)
    if record is None:
        raise _not_found(file_id)
    return FileResponse.from_record(record)


@router.get("/{file_id}/audio")
async def get_audio(file_id: str, store: FileRecordStore = Depends(get_store)):
    record = _get_or_404(store, file_id)
    audio = record.final_audio
    if audio is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No audio generated for this file")
    return Response(
        content=audio.data,
        media_type=audio.media_type,
        headers={"Content-Disposition": f'attachment; filename="final_audio.{audio.format}"'},
    )
