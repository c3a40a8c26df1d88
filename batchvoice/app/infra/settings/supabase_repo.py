from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import Client, create_client

from batchvoice.app.domain.errors import SettingsRepositoryError
from batchvoice.app.domain.models import GlobalSettings
from batchvoice.app.infra.settings.base import (
    SettingsRepository,
    settings_from_dict,
    settings_to_dict,
)

logger = logging.getLogger(__name__)


class SupabaseSettingsRepository(SettingsRepository):
    """Stores settings as JSON in `pipeline_settings(profile text primary key, settings jsonb, updated_at timestamptz)`."""

    TABLE_NAME = "pipeline_settings"

    def __init__(
        self,
        client: Optional[Client] = None,
        profile: str = "default",
        url: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        if client is None:
            if not url or not key:
                raise SettingsRepositoryError(
                    "init", "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required"
                )
            client = create_client(url, key)
        self._client = client
        self.profile = profile

    def load(self) -> Optional[GlobalSettings]:
        try:
            response = (
                self._client.table(self.TABLE_NAME)
                .select("settings")
                .eq("profile", self.profile)
                .limit(1)
                .execute()
            )
        except (ConnectionError, TimeoutError) as error:
            raise SettingsRepositoryError("load", str(error)) from error

        rows = response.data or []
        if not rows:
            return None
        data = rows[0].get("settings")
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed settings row for profile=%s", self.profile)
            return None
        return settings_from_dict(data)

    def save(self, global_settings: GlobalSettings) -> None:
        row = {
            "profile": self.profile,
            "settings": settings_to_dict(global_settings),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self._client.table(self.TABLE_NAME).upsert(row, on_conflict="profile").execute()
        except (ConnectionError, TimeoutError) as error:
            raise SettingsRepositoryError("save", str(error)) from error
        logger.debug("Settings saved for profile=%s", self.profile)
