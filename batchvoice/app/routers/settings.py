# batchvoice/app/routers/settings.py
"""
GlobalSettings, the prompt library and the voice catalog.

Changes apply in memory immediately and are then persisted off the event
loop. The API key is held for the session only.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from starlette.concurrency import run_in_threadpool

from batchvoice.app.deps import get_settings_service, get_speech_client
from batchvoice.app.domain.errors import SettingsRepositoryError
from batchvoice.app.infra.stages.speech_client import HttpSpeechClient
from batchvoice.app.schemas.settings import (
    CustomPromptRequest,
    PromptsResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    VoicesResponse,
)
from batchvoice.app.services.prompts import DEFAULT_PROMPTS
from batchvoice.app.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


def _response(service: SettingsService) -> SettingsResponse:
    snapshot = service.snapshot()
    return SettingsResponse.from_settings(
        snapshot,
        active_prompt=service.active_prompt(snapshot),
        has_api_key=service.has_api_key(),
    )


async def _persist(service: SettingsService) -> None:
    try:
        await run_in_threadpool(service.persist)
    except SettingsRepositoryError as e:
        logger.warning("Settings kept in memory only: %s", e)


@router.get("", response_model=SettingsResponse)
async def get_settings(service: SettingsService = Depends(get_settings_service)):
    return _response(service)


@router.patch("", response_model=SettingsResponse)
async def update_settings(
    request: SettingsUpdateRequest,
    service: SettingsService = Depends(get_settings_service),
):
    try:
        if request.batch_review_mode is not None:
            service.set_batch_review_mode(request.batch_review_mode)
        if request.preserve_manual_edits is not None:
            service.set_preserve_manual_edits(request.preserve_manual_edits)
        if request.ai is not None:
            service.update_ai_settings(**request.ai.model_dump(exclude_none=True))
        if request.voice is not None:
            service.update_voice_settings(**request.voice.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await _persist(service)
    return _response(service)


@router.put("/prompt", response_model=SettingsResponse)
async def set_custom_prompt(
    request: CustomPromptRequest,
    service: SettingsService = Depends(get_settings_service),
):
    service.set_custom_prompt(request.prompt)
    await _persist(service)
    return _response(service)


@router.post("/reset", response_model=SettingsResponse)
async def reset_settings(service: SettingsService = Depends(get_settings_service)):
    service.reset_to_defaults()
    await _persist(service)
    return _response(service)


@router.get("/voices", response_model=VoicesResponse)
async def list_voices(
    refresh: bool = False,
    service: SettingsService = Depends(get_settings_service),
    speech: HttpSpeechClient = Depends(get_speech_client),
):
    if refresh:
        await service.refresh_voices(speech)
    return VoicesResponse(voices=service.available_voices)


@router.get("/prompts", response_model=PromptsResponse)
async def list_prompts(service: SettingsService = Depends(get_settings_service)):
    return PromptsResponse(
        prompts=dict(DEFAULT_PROMPTS),
        selected_prompt_type=service.snapshot().ai.selected_prompt_type,
    )
