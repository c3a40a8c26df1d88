from __future__ import annotations

import logging

import httpx

from batchvoice.app.domain.models import AudioResult, VoiceSettings
from batchvoice.app.infra.stages.base import SpeechBackend
from batchvoice.services.errors import (
    NetworkTimeoutError,
    SpeechServiceError,
    VoiceCatalogError,
)

logger = logging.getLogger(__name__)

AUDIO_MEDIA_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "opus": "audio/ogg",
    "flac": "audio/flac",
    "aac": "audio/aac",
    "pcm": "audio/pcm",
}


class HttpSpeechClient(SpeechBackend):
    def __init__(
        self,
        http: httpx.AsyncClient,
        speech_url: str,
        voices_url: str,
        voices_timeout_seconds: float = 10.0,
    ) -> None:
        self._http = http
        self.speech_url = speech_url
        self.voices_url = voices_url
        self.voices_timeout_seconds = voices_timeout_seconds

    async def synthesize(self, text: str, voice: VoiceSettings) -> AudioResult:
        payload = {
            "model": voice.model,
            "input": text,
            "voice": voice.voice,
            "response_format": voice.format,
            "speed": voice.speed,
            "stream": False,
        }

        logger.info("Synthesizing %d chars with voice=%s format=%s", len(text), voice.voice, voice.format)
        try:
            response = await self._http.post(self.speech_url, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as error:
            raise NetworkTimeoutError(self.speech_url, self._http.timeout.read) from error
        except httpx.HTTPStatusError as error:
            raise SpeechServiceError(f"HTTP error! status: {error.response.status_code}") from error
        except httpx.HTTPError as error:
            raise SpeechServiceError(f"Speech request failed: {error}") from error

        media_type = response.headers.get("content-type") or AUDIO_MEDIA_TYPES.get(
            voice.format, "application/octet-stream"
        )
        return AudioResult(
            data=response.content,
            format=voice.format,
            media_type=media_type,
            voice=voice.voice,
            speed=voice.speed,
            model=voice.model,
        )

    async def list_voices(self) -> list[str]:
        try:
            response = await self._http.get(self.voices_url, timeout=self.voices_timeout_seconds)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as error:
            raise NetworkTimeoutError(self.voices_url, self.voices_timeout_seconds) from error
        except (httpx.HTTPError, ValueError) as error:
            raise VoiceCatalogError(f"Failed to load voices: {error}") from error

        voices = payload.get("voices") if isinstance(payload, dict) else None
        if not isinstance(voices, list):
            raise VoiceCatalogError("Voice catalog response did not include a voice list")
        return [str(voice) for voice in voices]
