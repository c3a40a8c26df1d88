# batchvoice/app/infra/stages/base.py
"""
Abstract interfaces for the three remote pipeline stages.
The queue engine only depends on these, so backends can be swapped or stubbed.
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from batchvoice.app.domain.models import (
    AudioResult,
    MediaUpload,
    RewriteResult,
    TranscriptionResult,
    VoiceSettings,
)


class TranscriptionBackend(ABC):
    """
    Speech-to-text stage.

    Implementations:
    - HttpTranscriptionClient: multipart POST to a Whisper-style endpoint
    """

    @abstractmethod
    async def transcribe(self, media: MediaUpload) -> TranscriptionResult:
        """
        Transcribe one uploaded media file.

        Raises:
            ServiceError: On any HTTP or network failure
        """
        pass


class RewriteBackend(ABC):
    """
    Language model rewrite stage.

    Implementations:
    - ChatCompletionsRewriteClient: OpenAI-compatible chat completions
    """

    @abstractmethod
    async def rewrite(
        self,
        text: str,
        prompt: str,
        api_key: str,
        model: str,
        prompt_type: str | None = None,
    ) -> RewriteResult:
        """
        Rewrite text according to a prompt.

        Args:
            text: The transcript to rewrite
            prompt: Instruction applied to the text
            api_key: Caller-supplied credential
            model: Model identifier
            prompt_type: Name of the preset the prompt came from, if any

        Raises:
            ServiceError: On missing/invalid credential, quota or HTTP failure
        """
        pass


class SpeechBackend(ABC):
    """
    Text-to-speech stage plus the voice catalog.

    Implementations:
    - HttpSpeechClient: OpenAI-compatible /v1/audio/speech endpoint
    """

    @abstractmethod
    async def synthesize(self, text: str, voice: VoiceSettings) -> AudioResult:
        pass

    @abstractmethod
    async def list_voices(self) -> list[str]:
        pass
