# batchvoice/app/services/exports.py
"""
Download bundles built from COMPLETED records.

Everything here is read-only over the records it is given and builds the
archives in memory. Text files keep the stored transcript and rewrite
verbatim after a fixed marker line so `read_bundle_texts` can recover them.
"""
from __future__ import annotations

import io
import json
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from batchvoice.app.domain.errors import EmptyBatchError, UnknownExportKindError
from batchvoice.app.domain.models import FileRecord, FileStatus
from batchvoice.services.media import format_duration, safe_filename

TRANSCRIPTION_MARKER = "\n\nTRANSCRIPTION:\n"
PROCESSED_MARKER = "\n\nPROCESSED TEXT:\n"
SEPARATOR = "=" * 80

TRANSCRIPTION_FILE = "transcription.txt"
AI_PROCESSED_FILE = "ai_processed.txt"
METADATA_FILE = "metadata.json"
SUMMARY_FILE = "processing_summary.json"

EXPORT_KINDS = ("transcriptions", "ai_processed", "audio_files")


@dataclass(frozen=True)
class ExportBundle:
    filename: str
    content: bytes
    media_type: str
    file_count: int
    folder_names: list[str] = field(default_factory=list)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _one_line(value: Any) -> str:
    return " ".join(str(value).splitlines())


def completed_records(records: Iterable[FileRecord]) -> list[FileRecord]:
    return [record for record in records if record.status is FileStatus.COMPLETED]


def _audio_extension(record: FileRecord) -> str:
    return record.final_audio.format if record.final_audio and record.final_audio.format else "mp3"


def transcription_document(record: FileRecord) -> str:
    transcription = record.transcription
    header = [
        f"Original File: {_one_line(record.name)}",
        f"Processed: {_iso(record.timestamps.transcription_end) or 'unknown'}",
        f"Duration: {format_duration(transcription.duration if transcription else None)}",
        f"Processing Time: {transcription.processing_time if transcription else 0.0:.2f}s",
    ]
    return "\n".join(header) + TRANSCRIPTION_MARKER + (record.transcript_text or "")


def rewrite_document(record: FileRecord) -> str:
    rewrite = record.rewrite
    header = [
        f"Original File: {_one_line(record.name)}",
        f"AI Model: {_one_line(rewrite.model) if rewrite else 'unknown'}",
        f"Tokens Used: {rewrite.tokens_used if rewrite else 0}",
        f"Processed: {_iso(record.timestamps.ai_processing_end) or 'unknown'}",
        f"Prompt Type: {_one_line(rewrite.prompt_type) if rewrite and rewrite.prompt_type else 'unknown'}",
    ]
    return "\n".join(header) + PROCESSED_MARKER + (record.rewrite_text or "")


def file_metadata(record: FileRecord) -> dict[str, Any]:
    timestamps = record.timestamps
    transcription = record.transcription
    rewrite = record.rewrite
    audio = record.final_audio
    return {
        "originalFile": {
            "name": record.name,
            "size": record.size,
            "type": record.content_type,
        },
        "processing": {
            "status": record.status.value,
            "progress": record.progress,
            "attempt": record.attempt,
            "timestamps": {
                "added": _iso(timestamps.added),
                "transcriptionStart": _iso(timestamps.transcription_start),
                "transcriptionEnd": _iso(timestamps.transcription_end),
                "aiProcessingStart": _iso(timestamps.ai_processing_start),
                "aiProcessingEnd": _iso(timestamps.ai_processing_end),
                "speechGenerationStart": _iso(timestamps.speech_generation_start),
                "speechGenerationEnd": _iso(timestamps.speech_generation_end),
                "completedAt": _iso(timestamps.completed_at),
            },
            "errors": [
                {"stage": error.stage.value, "message": error.message, "occurredAt": _iso(error.occurred_at)}
                for error in record.errors
            ],
        },
        "transcription": {
            "duration": transcription.duration,
            "processing_time": transcription.processing_time,
            "text_length": len(transcription.text),
        } if transcription else None,
        "aiProcessing": {
            "model": rewrite.model,
            "tokens_used": rewrite.tokens_used,
            "prompt_type": rewrite.prompt_type,
            "prompt_used": rewrite.prompt_used,
            "original_text": rewrite.original_text,
        } if rewrite else None,
        "voiceGeneration": {
            "voice": audio.voice,
            "speed": audio.speed,
            "format": audio.format,
            "model": audio.model,
        } if audio else None,
    }


def _summary_entry(record: FileRecord) -> dict[str, Any]:
    start = record.timestamps.transcription_start
    end = record.timestamps.speech_generation_end
    return {
        "name": record.name,
        "status": record.status.value,
        "duration": record.transcription.duration if record.transcription else None,
        "tokensUsed": record.rewrite.tokens_used if record.rewrite else None,
        "voice": record.final_audio.voice if record.final_audio else None,
        "processingTime": {
            "transcription": record.transcription.processing_time if record.transcription else None,
            "totalTime": (end - start).total_seconds() if start and end else None,
        },
    }


def _unique_folder(base: str, taken: set[str]) -> str:
    name = base
    n = 2
    while name in taken:
        name = f"{base}_{n}"
        n += 1
    taken.add(name)
    return name


def _write_folder(zf: zipfile.ZipFile, folder: str, record: FileRecord, include_metadata: bool) -> None:
    if record.transcription is not None:
        zf.writestr(f"{folder}/{TRANSCRIPTION_FILE}", transcription_document(record).encode("utf-8"))
    if record.rewrite is not None:
        zf.writestr(f"{folder}/{AI_PROCESSED_FILE}", rewrite_document(record).encode("utf-8"))
    if record.final_audio is not None:
        zf.writestr(f"{folder}/final_audio.{_audio_extension(record)}", record.final_audio.data)
    if include_metadata:
        zf.writestr(f"{folder}/{METADATA_FILE}", json.dumps(file_metadata(record), indent=2, ensure_ascii=False))


def export_all(
    records: Iterable[FileRecord],
    include_metadata: bool = True,
    now: Optional[datetime] = None,
) -> ExportBundle:
    """One folder per COMPLETED record plus a processing_summary.json at the root."""
    now = now or _now()
    completed = completed_records(records)
    if not completed:
        raise EmptyBatchError("No completed files to export")

    buffer = io.BytesIO()
    folder_names: list[str] = []
    taken: set[str] = set()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for record in completed:
            folder = _unique_folder(safe_filename(record.name, "processed", now=now), taken)
            _write_folder(zf, folder, record, include_metadata)
            folder_names.append(folder)

        summary = {
            "generated": now.isoformat(),
            "totalFiles": len(completed),
            "files": [_summary_entry(record) for record in completed],
        }
        zf.writestr(SUMMARY_FILE, json.dumps(summary, indent=2, ensure_ascii=False))

    return ExportBundle(
        filename=f"transcribe_batch_{now.strftime('%Y-%m-%d')}_{len(completed)}files.zip",
        content=buffer.getvalue(),
        media_type="application/zip",
        file_count=len(completed),
        folder_names=folder_names,
    )


def export_single(record: FileRecord, now: Optional[datetime] = None) -> ExportBundle:
    if record.status is not FileStatus.COMPLETED:
        raise EmptyBatchError("No completed files to export")
    now = now or _now()
    folder = safe_filename(record.name, "processed", now=now)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        _write_folder(zf, folder, record, include_metadata=True)
    return ExportBundle(
        filename=f"{safe_filename(record.name, 'complete', now=now)}.zip",
        content=buffer.getvalue(),
        media_type="application/zip",
        file_count=1,
        folder_names=[folder],
    )


def _combined_text(title: str, records: list[FileRecord], entry, now: datetime) -> bytes:
    parts = [
        f"{title}\nGenerated: {now.isoformat()}\nTotal Files: {len(records)}\n\n{SEPARATOR}\n\n"
    ]
    for index, record in enumerate(records, start=1):
        parts.append(f"{index}. {_one_line(record.name)}\n{entry(record)}\n\n{SEPARATOR}\n\n")
    return "".join(parts).encode("utf-8")


def _transcription_entry(record: FileRecord) -> str:
    duration = record.transcription.duration if record.transcription else None
    return (
        f"Duration: {format_duration(duration)}\n"
        f"Processed: {_iso(record.timestamps.transcription_end) or 'unknown'}\n\n"
        f"{record.transcript_text or ''}"
    )


def _rewrite_entry(record: FileRecord) -> str:
    rewrite = record.rewrite
    return (
        f"Model: {rewrite.model}\n"
        f"Tokens: {rewrite.tokens_used}\n"
        f"Prompt Type: {rewrite.prompt_type or 'unknown'}\n\n"
        f"{record.rewrite_text or ''}"
    )


def export_by_kind(records: Iterable[FileRecord], kind: str, now: Optional[datetime] = None) -> ExportBundle:
    """Single-asset export: all transcripts, all rewrites (text files) or all audio (zip)."""
    if kind not in EXPORT_KINDS:
        raise UnknownExportKindError(kind)
    now = now or _now()
    completed = completed_records(records)
    if not completed:
        raise EmptyBatchError("No completed files to export")
    day = now.strftime("%Y-%m-%d")

    if kind == "transcriptions":
        content = _combined_text("Transcription Batch Export", completed, _transcription_entry, now)
        return ExportBundle(f"all_transcriptions_{day}.txt", content, "text/plain; charset=utf-8", len(completed))

    if kind == "ai_processed":
        with_rewrite = [record for record in completed if record.rewrite is not None]
        content = _combined_text("AI Processed Text Batch Export", with_rewrite, _rewrite_entry, now)
        return ExportBundle(f"all_ai_processed_{day}.txt", content, "text/plain; charset=utf-8", len(with_rewrite))

    buffer = io.BytesIO()
    count = 0
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for index, record in enumerate(completed, start=1):
            if record.final_audio is None:
                continue
            name = f"{index}_{safe_filename(record.name, now=now)}.{_audio_extension(record)}"
            zf.writestr(name, record.final_audio.data)
            count += 1
    return ExportBundle(f"all_audio_files_{day}.zip", buffer.getvalue(), "application/zip", count)


def read_bundle_texts(bundle: bytes) -> dict[str, dict[str, Optional[str]]]:
    """Recover {folder: {"transcript": ..., "rewrite": ...}} from an export_all/export_single zip."""
    texts: dict[str, dict[str, Optional[str]]] = {}
    with zipfile.ZipFile(io.BytesIO(bundle)) as zf:
        for name in zf.namelist():
            folder, _, leaf = name.rpartition("/")
            if not folder:
                continue
            if leaf == TRANSCRIPTION_FILE:
                key, marker = "transcript", TRANSCRIPTION_MARKER
            elif leaf == AI_PROCESSED_FILE:
                key, marker = "rewrite", PROCESSED_MARKER
            else:
                continue
            document = zf.read(name).decode("utf-8")
            _, found, body = document.partition(marker)
            entry = texts.setdefault(folder, {"transcript": None, "rewrite": None})
            entry[key] = body if found else None
    return texts
