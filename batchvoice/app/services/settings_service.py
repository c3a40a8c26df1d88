# batchvoice/app/services/settings_service.py
"""
Owner of the process-wide GlobalSettings.

The queue engine only ever reads a deep copy taken through `snapshot()`,
so edits made while a batch is running affect stages that have not
started yet.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import fields
from typing import Any, Optional

from batchvoice.app.domain.errors import SettingsRepositoryError
from batchvoice.app.domain.models import AISettings, GlobalSettings
from batchvoice.app.infra.settings.base import SettingsRepository
from batchvoice.app.infra.stages.base import SpeechBackend
from batchvoice.app.services.prompts import (
    CUSTOM_PROMPT_TYPE,
    is_known_prompt_type,
    resolve_prompt,
)
from batchvoice.services.errors import ServiceError

logger = logging.getLogger(__name__)

FALLBACK_VOICES = ["af_heart", "af_nova", "am_adam", "am_echo"]


def _apply_changes(target: Any, changes: dict[str, Any]) -> None:
    names = {f.name for f in fields(target)}
    unknown = set(changes) - names
    if unknown:
        raise ValueError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
    for name, value in changes.items():
        if value is not None:
            setattr(target, name, value)


class SettingsService:
    def __init__(
        self,
        repository: Optional[SettingsRepository] = None,
        default_api_key: str = "",
        default_model: str = "gpt-3.5-turbo",
    ) -> None:
        self._repo = repository
        self._default_api_key = default_api_key
        self._default_model = default_model
        self._settings = self._defaults()
        self.available_voices: list[str] = list(FALLBACK_VOICES)

    def _defaults(self) -> GlobalSettings:
        return GlobalSettings(ai=AISettings(model=self._default_model))

    def load(self) -> GlobalSettings:
        """Replace in-memory settings with the persisted ones, keeping the session API key."""
        if self._repo is None:
            return self.snapshot()
        try:
            stored = self._repo.load()
        except SettingsRepositoryError as error:
            logger.warning("Could not load persisted settings, using defaults: %s", error)
            return self.snapshot()
        if stored is not None:
            stored.ai.api_key = self._settings.ai.api_key
            self._settings = stored
            logger.info("Loaded persisted settings")
        return self.snapshot()

    def persist(self) -> None:
        if self._repo is None:
            return
        self._repo.save(self.snapshot())

    def snapshot(self) -> GlobalSettings:
        return copy.deepcopy(self._settings)

    def active_prompt(self, global_settings: Optional[GlobalSettings] = None) -> str:
        ai = (global_settings or self._settings).ai
        return resolve_prompt(ai.selected_prompt_type, ai.custom_prompt)

    def resolve_api_key(self, global_settings: Optional[GlobalSettings] = None) -> str:
        ai = (global_settings or self._settings).ai
        return ai.api_key or self._default_api_key

    def has_api_key(self) -> bool:
        return bool(self.resolve_api_key())

    def set_batch_review_mode(self, enabled: bool) -> GlobalSettings:
        self._settings.batch_review_mode = enabled
        logger.info("Batch review mode %s", "enabled" if enabled else "disabled")
        return self.snapshot()

    def set_preserve_manual_edits(self, enabled: bool) -> GlobalSettings:
        self._settings.preserve_manual_edits = enabled
        return self.snapshot()

    def set_prompt_type(self, prompt_type: str) -> GlobalSettings:
        if not is_known_prompt_type(prompt_type):
            raise ValueError(f"Unknown prompt type: {prompt_type}")
        self._settings.ai.selected_prompt_type = prompt_type
        return self.snapshot()

    def set_custom_prompt(self, prompt: str) -> GlobalSettings:
        self._settings.ai.custom_prompt = prompt
        self._settings.ai.selected_prompt_type = CUSTOM_PROMPT_TYPE
        return self.snapshot()

    def update_ai_settings(self, **changes: Any) -> GlobalSettings:
        prompt_type = changes.get("selected_prompt_type")
        if prompt_type is not None and not is_known_prompt_type(prompt_type):
            raise ValueError(f"Unknown prompt type: {prompt_type}")
        _apply_changes(self._settings.ai, changes)
        return self.snapshot()

    def update_voice_settings(self, **changes: Any) -> GlobalSettings:
        speed = changes.get("speed")
        if speed is not None and speed <= 0:
            raise ValueError("Voice speed must be positive")
        _apply_changes(self._settings.voice, changes)
        return self.snapshot()

    def reset_to_defaults(self) -> GlobalSettings:
        """Reset prompt and voice choices. Review mode, edit policy and the API key are kept."""
        current = self._settings
        self._settings = self._defaults()
        self._settings.ai.api_key = current.ai.api_key
        self._settings.batch_review_mode = current.batch_review_mode
        self._settings.preserve_manual_edits = current.preserve_manual_edits
        logger.info("Settings reset to defaults")
        return self.snapshot()

    async def refresh_voices(self, speech: SpeechBackend) -> list[str]:
        """Load the voice catalog, falling back to a fixed list so startup never blocks."""
        try:
            voices = await speech.list_voices()
        except ServiceError as error:
            logger.warning("Failed to load voices, using fallback list: %s", error)
            voices = list(FALLBACK_VOICES)
        self.available_voices = voices or list(FALLBACK_VOICES)
        return self.available_voices
