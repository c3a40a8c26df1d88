# batchvoice/app/routers/exports.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from batchvoice.app.deps import get_store
from batchvoice.app.domain.errors import EmptyBatchError, UnknownExportKindError
from batchvoice.app.services import exports
from batchvoice.app.services.file_store import FileRecordStore

router = APIRouter(prefix="/exports", tags=["Exports"])


def _download(bundle: exports.ExportBundle) -> Response:
    return Response(
        content=bundle.content,
        media_type=bundle.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{bundle.filename}"',
            "X-File-Count": str(bundle.file_count),
        },
    )


@router.get("/all")
async def export_all(include_metadata: bool = True, store: FileRecordStore = Depends(get_store)):
    try:
        bundle = exports.export_all(store.records(), include_metadata=include_metadata)
    except EmptyBatchError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _download(bundle)


@router.get("/files/{file_id}")
async def export_file(file_id: str, store: FileRecordStore = Depends(get_store)):
    record = store.get(file_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"File not found: {file_id}")
    try:
        bundle = exports.export_single(record)
    except EmptyBatchError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _download(bundle)


@router.get("/{kind}")
async def export_kind(kind: str, store: FileRecordStore = Depends(get_store)):
    try:
        bundle = exports.export_by_kind(store.records(), kind)
    except UnknownExportKindError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except EmptyBatchError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return _download(bundle)
