from __future__ import annotations

import logging

import httpx

from batchvoice.app.domain.models import MediaUpload, TranscriptionResult
from batchvoice.app.infra.stages.base import TranscriptionBackend
from batchvoice.services.errors import NetworkTimeoutError, TranscriptionServiceError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _as_float(value: object) -> float:
    return float(value) if isinstance(value, (int, float)) else 0.0


class HttpTranscriptionClient(TranscriptionBackend):
    def __init__(self, http: httpx.AsyncClient, url: str, temperature: float = 0.0) -> None:
        self._http = http
        self.url = url
        self.temperature = temperature

    async def transcribe(self, media: MediaUpload) -> TranscriptionResult:
        files = {"file": (media.filename, media.content, media.content_type or DEFAULT_CONTENT_TYPE)}
        data = {"temperature": f"{self.temperature:.1f}"}

        logger.info("Transcribing %s (%d bytes)", media.filename, media.size)
        try:
            response = await self._http.post(self.url, files=files, data=data)
            response.raise_for_status()
        except httpx.TimeoutException as error:
            raise NetworkTimeoutError(self.url, self._http.timeout.read) from error
        except httpx.HTTPStatusError as error:
            raise TranscriptionServiceError(
                f"HTTP error! status: {error.response.status_code}"
            ) from error
        except httpx.HTTPError as error:
            raise TranscriptionServiceError(f"Transcription request failed: {error}") from error

        try:
            payload = response.json()
        except ValueError as error:
            raise TranscriptionServiceError("Transcription response was not valid JSON") from error

        if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
            raise TranscriptionServiceError("Transcription response did not include text")

        return TranscriptionResult(
            text=payload["text"],
            duration=_as_float(payload.get("duration")),
            processing_time=_as_float(payload.get("processing_time")),
        )
