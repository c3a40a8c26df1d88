# batchvoice/app/domain/models.py
"""
Domain models for the batch processing pipeline.
These are pure data structures with no infrastructure dependencies.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class FileStatus(str, Enum):
    """Status of a file moving through transcription, rewrite and speech."""
    PENDING = "pending"
    TRANSCRIBING = "transcribing"
    TRANSCRIBED = "transcribed"
    AI_PROCESSING = "ai_processing"
    AI_PROCESSED = "ai_processed"
    REVIEW_PENDING = "review_pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    GENERATING_SPEECH = "generating_speech"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_in_flight(self) -> bool:
        """True while a remote stage call is outstanding for the file."""
        return self in IN_FLIGHT_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class PipelineStage(str, Enum):
    """The three remote transformations applied to a file."""
    TRANSCRIPTION = "transcription"
    AI_PROCESSING = "ai_processing"
    SPEECH_GENERATION = "speech_generation"


IN_FLIGHT_STATUSES = frozenset({
    FileStatus.TRANSCRIBING,
    FileStatus.AI_PROCESSING,
    FileStatus.GENERATING_SPEECH,
})

TERMINAL_STATUSES = frozenset({
    FileStatus.COMPLETED,
    FileStatus.REJECTED,
    FileStatus.FAILED,
})

# Statuses with forward progress available to the queue engine
ADMISSIBLE_STATUSES = frozenset({
    FileStatus.PENDING,
    FileStatus.TRANSCRIBED,
    FileStatus.AI_PROCESSED,
    FileStatus.APPROVED,
})

REPROCESSABLE_STATUSES = frozenset({
    FileStatus.AI_PROCESSED,
    FileStatus.REVIEW_PENDING,
})

PROGRESS_TRANSCRIBED = 33
PROGRESS_AI_PROCESSED = 66
PROGRESS_COMPLETED = 100


@dataclass(frozen=True)
class MediaUpload:
    """Raw uploaded media. Kept in memory only, never persisted."""
    filename: str
    content: bytes
    content_type: str = ""

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class TranscriptionResult:
    """Result of the speech-to-text stage."""
    text: str
    duration: float = 0.0
    processing_time: float = 0.0


@dataclass(frozen=True)
class RewriteResult:
    """Result of the language model rewrite stage."""
    processed_text: str
    original_text: str
    prompt_used: str
    model: str
    tokens_used: int = 0
    prompt_type: Optional[str] = None


@dataclass(frozen=True)
class AudioResult:
    """Synthesized audio plus the voice parameters used to produce it."""
    data: bytes
    format: str
    media_type: str = "application/octet-stream"
    voice: Optional[str] = None
    speed: Optional[float] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class StageError:
    stage: PipelineStage
    message: str
    occurred_at: datetime


@dataclass(frozen=True)
class StageTimestamps:
    added: Optional[datetime] = None
    transcription_start: Optional[datetime] = None
    transcription_end: Optional[datetime] = None
    ai_processing_start: Optional[datetime] = None
    ai_processing_end: Optional[datetime] = None
    speech_generation_start: Optional[datetime] = None
    speech_generation_end: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class FileRecord:
    """
    One uploaded file and everything computed for it so far.

    Records are immutable values. The store replaces a record with the
    output of a transition function, so a reference captured before a
    suspension point is never mutated behind the caller's back.
    """
    id: str
    name: str
    size: int
    content_type: str
    media: Optional[MediaUpload] = None

    status: FileStatus = FileStatus.PENDING
    progress: int = 0
    attempt: int = 1

    transcription: Optional[TranscriptionResult] = None
    editable_transcript: Optional[str] = None
    rewrite: Optional[RewriteResult] = None
    editable_rewrite: Optional[str] = None
    final_audio: Optional[AudioResult] = None

    timestamps: StageTimestamps = field(default_factory=StageTimestamps)
    errors: tuple[StageError, ...] = ()

    @property
    def transcript_text(self) -> Optional[str]:
        """User-edited transcript, falling back to the raw transcription."""
        if self.editable_transcript:
            return self.editable_transcript
        return self.transcription.text if self.transcription else None

    @property
    def rewrite_text(self) -> Optional[str]:
        """User-edited rewrite, falling back to the model output."""
        if self.editable_rewrite:
            return self.editable_rewrite
        return self.rewrite.processed_text if self.rewrite else None

    @property
    def last_error(self) -> Optional[StageError]:
        return self.errors[-1] if self.errors else None


@dataclass
class VoiceSettings:
    voice: str = "af_heart"
    speed: float = 1.0
    format: str = "mp3"
    model: str = "kokoro"


@dataclass
class AISettings:
    selected_prompt_type: str = "professional"
    custom_prompt: str = ""
    model: str = "gpt-3.5-turbo"
    api_key: str = ""


@dataclass
class GlobalSettings:
    """Process-wide user settings. Read by the engine at each stage call."""
    batch_review_mode: bool = False
    preserve_manual_edits: bool = False
    ai: AISettings = field(default_factory=AISettings)
    voice: VoiceSettings = field(default_factory=VoiceSettings)


@dataclass
class ProcessingStats:
    total: int = 0
    completed: int = 0
    failed: int = 0
    processing: int = 0
    pending: int = 0
    review_pending: int = 0
    approved: int = 0
    rejected: int = 0
    queue_length: int = 0
    review_queue_length: int = 0
    is_processing: bool = False

    @property
    def completion_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.completed / self.total) * 100
