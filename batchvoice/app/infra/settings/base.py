# batchvoice/app/infra/settings/base.py
"""
Abstract base class for persisting GlobalSettings across restarts.
Only user settings are persisted; file records and their payloads never are.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, fields
from typing import Any, Optional

from batchvoice.app.domain.models import AISettings, GlobalSettings, VoiceSettings

# Credentials stay in memory or in the environment
NON_PERSISTED_AI_FIELDS = frozenset({"api_key"})


def settings_to_dict(global_settings: GlobalSettings) -> dict[str, Any]:
    data = asdict(global_settings)
    for name in NON_PERSISTED_AI_FIELDS:
        data["ai"].pop(name, None)
    return data


def _pick(cls, raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        return {}
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in raw.items() if key in names}


def settings_from_dict(data: dict[str, Any]) -> GlobalSettings:
    """Rebuild settings, ignoring unknown keys and defaulting missing ones."""
    ai = _pick(AISettings, data.get("ai"))
    for name in NON_PERSISTED_AI_FIELDS:
        ai.pop(name, None)
    return GlobalSettings(
        batch_review_mode=bool(data.get("batch_review_mode", False)),
        preserve_manual_edits=bool(data.get("preserve_manual_edits", False)),
        ai=AISettings(**ai),
        voice=VoiceSettings(**_pick(VoiceSettings, data.get("voice"))),
    )


class SettingsRepository(ABC):
    """
    Abstract interface for settings persistence.

    Implementations:
    - JsonFileSettingsRepository: a JSON document on local disk
    - SupabaseSettingsRepository: one row per profile in Postgres
    """

    @abstractmethod
    def load(self) -> Optional[GlobalSettings]:
        """
        Load persisted settings.

        Returns:
            The stored settings, or None when nothing was saved yet

        Raises:
            SettingsRepositoryError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def save(self, global_settings: GlobalSettings) -> None:
        """
        Persist settings, replacing any previous value.

        Raises:
            SettingsRepositoryError: If the backend cannot be written
        """
        pass
