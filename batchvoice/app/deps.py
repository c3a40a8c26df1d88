# batchvoice/app/deps.py (process-wide singletons exposed as FastAPI dependencies)

from __future__ import annotations

import logging
from typing import Optional

import httpx

from batchvoice.app.config import settings
from batchvoice.app.infra.settings.base import SettingsRepository
from batchvoice.app.infra.settings.file_repo import JsonFileSettingsRepository
from batchvoice.app.infra.settings.supabase_repo import SupabaseSettingsRepository
from batchvoice.app.infra.stages.rewrite_client import ChatCompletionsRewriteClient
from batchvoice.app.infra.stages.speech_client import HttpSpeechClient
from batchvoice.app.infra.stages.transcription_client import HttpTranscriptionClient
from batchvoice.app.services.file_store import FileRecordStore
from batchvoice.app.services.queue_engine import QueueEngine
from batchvoice.app.services.review_gate import ReviewGate
from batchvoice.app.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

_http: Optional[httpx.AsyncClient] = None
_store: Optional[FileRecordStore] = None
_settings_service: Optional[SettingsService] = None
_speech: Optional[HttpSpeechClient] = None
_engine: Optional[QueueEngine] = None


def get_http_client() -> httpx.AsyncClient:
    global _http
    if _http is None:
        # No client-side timeout. STAGE_TIMEOUT_SECONDS bounds stage calls when set.
        _http = httpx.AsyncClient(timeout=None)
    return _http


def get_store() -> FileRecordStore:
    global _store
    if _store is None:
        _store = FileRecordStore()
    return _store


def build_settings_repository() -> SettingsRepository:
    if settings.SETTINGS_BACKEND == "supabase":
        return SupabaseSettingsRepository(
            profile=settings.SETTINGS_PROFILE,
            url=settings.SUPABASE_URL,
            key=settings.SUPABASE_SERVICE_ROLE_KEY,
        )
    return JsonFileSettingsRepository(settings.SETTINGS_FILE)


def get_settings_service() -> SettingsService:
    global _settings_service
    if _settings_service is None:
        _settings_service = SettingsService(
            repository=build_settings_repository(),
            default_api_key=settings.OPENAI_API_KEY,
            default_model=settings.REWRITE_MODEL,
        )
    return _settings_service


def get_speech_client() -> HttpSpeechClient:
    global _speech
    if _speech is None:
        _speech = HttpSpeechClient(
            get_http_client(),
            speech_url=settings.SPEECH_URL,
            voices_url=settings.VOICES_URL,
            voices_timeout_seconds=settings.VOICES_TIMEOUT_SECONDS,
        )
    return _speech


def get_engine() -> QueueEngine:
    global _engine
    if _engine is None:
        store = get_store()
        http = get_http_client()
        _engine = QueueEngine(
            store=store,
            review_gate=ReviewGate(store),
            transcriber=HttpTranscriptionClient(
                http, settings.TRANSCRIBE_URL, temperature=settings.TRANSCRIBE_TEMPERATURE
            ),
            rewriter=ChatCompletionsRewriteClient(
                http,
                settings.CHAT_COMPLETIONS_URL,
                max_tokens=settings.REWRITE_MAX_TOKENS,
                temperature=settings.REWRITE_TEMPERATURE,
            ),
            speech=get_speech_client(),
            settings_service=get_settings_service(),
            stage_delay_seconds=settings.STAGE_DELAY_SECONDS,
            settle_delay_seconds=settings.SETTLE_DELAY_SECONDS,
            stage_timeout_seconds=settings.STAGE_TIMEOUT_SECONDS,
        )
        logger.info("Queue engine ready (stage_delay=%ss settle=%ss)",
                    settings.STAGE_DELAY_SECONDS, settings.SETTLE_DELAY_SECONDS)
    return _engine


async def close_resources() -> None:
    global _http, _speech, _engine
    if _engine is not None:
        await _engine.stop()
    if _http is not None:
        await _http.aclose()
    _http = None
    _speech = None
    _engine = None
