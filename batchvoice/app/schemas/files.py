from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from batchvoice.app.domain.models import FileRecord
from batchvoice.services.media import format_file_size


class StageErrorResponse(BaseModel):
    stage: str
    message: str
    occurred_at: datetime


class TimestampsResponse(BaseModel):
    added: Optional[datetime] = None
    transcription_start: Optional[datetime] = None
    transcription_end: Optional[datetime] = None
    ai_processing_start: Optional[datetime] = None
    ai_processing_end: Optional[datetime] = None
    speech_generation_start: Optional[datetime] = None
    speech_generation_end: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TranscriptionResponse(BaseModel):
    text: str
    duration: float = 0.0
    processing_time: float = 0.0


class RewriteResponse(BaseModel):
    processed_text: str
    original_text: str
    prompt_used: str
    prompt_type: Optional[str] = None
    model: str
    tokens_used: int = 0


class AudioInfoResponse(BaseModel):
    format: str
    media_type: str
    size: int = Field(..., description="Audio size in bytes")
    voice: Optional[str] = None
    speed: Optional[float] = None
    model: Optional[str] = None


class FileResponse(BaseModel):
    """One file and what has been computed for it so far. Audio bytes are served separately."""
    id: str
    name: str
    size: int
    size_display: str = Field(..., description="Human readable size, e.g. 1.5 MB")
    content_type: str
    status: str = Field(..., description="pending, transcribing, ..., completed, failed")
    progress: int = Field(..., ge=0, le=100)
    attempt: int = 1
    transcription: Optional[TranscriptionResponse] = None
    editable_transcript: Optional[str] = None
    rewrite: Optional[RewriteResponse] = None
    editable_rewrite: Optional[str] = None
    audio: Optional[AudioInfoResponse] = None
    timestamps: TimestampsResponse
    errors: List[StageErrorResponse] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileResponse":
        transcription = record.transcription
        rewrite = record.rewrite
        audio = record.final_audio
        ts = record.timestamps
        return cls(
            id=record.id,
            name=record.name,
            size=record.size,
            size_display=format_file_size(record.size),
            content_type=record.content_type,
            status=record.status.value,
            progress=record.progress,
            attempt=record.attempt,
            transcription=TranscriptionResponse(
                text=transcription.text,
                duration=transcription.duration,
                processing_time=transcription.processing_time,
            ) if transcription else None,
            editable_transcript=record.editable_transcript,
            rewrite=RewriteResponse(
                processed_text=rewrite.processed_text,
                original_text=rewrite.original_text,
                prompt_used=rewrite.prompt_used,
                prompt_type=rewrite.prompt_type,
                model=rewrite.model,
                tokens_used=rewrite.tokens_used,
            ) if rewrite else None,
            editable_rewrite=record.editable_rewrite,
            audio=AudioInfoResponse(
                format=audio.format,
                media_type=audio.media_type,
                size=len(audio.data),
                voice=audio.voice,
                speed=audio.speed,
                model=audio.model,
            ) if audio else None,
            timestamps=TimestampsResponse(
                added=ts.added,
                transcription_start=ts.transcription_start,
                transcription_end=ts.transcription_end,
                ai_processing_start=ts.ai_processing_start,
                ai_processing_end=ts.ai_processing_end,
                speech_generation_start=ts.speech_generation_start,
                speech_generation_end=ts.speech_generation_end,
                completed_at=ts.completed_at,
            ),
            errors=[
                StageErrorResponse(stage=e.stage.value, message=e.message, occurred_at=e.occurred_at)
                for e in record.errors
            ],
        )


class FileListResponse(BaseModel):
    files: List[FileResponse]
    total: int


class AddFilesResponse(BaseModel):
    added: List[str] = Field(..., description="Ids of accepted files")
    rejected: List[str] = Field(default_factory=list, description="Names of files dropped as unsupported")


class TextEditRequest(BaseModel):
    text: str = Field(..., description="Replacement text kept as the user edit")


class ClearResponse(BaseModel):
    removed: int
