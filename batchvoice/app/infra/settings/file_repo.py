from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from batchvoice.app.domain.errors import SettingsRepositoryError
from batchvoice.app.domain.models import GlobalSettings
from batchvoice.app.infra.settings.base import (
    SettingsRepository,
    settings_from_dict,
    settings_to_dict,
)

logger = logging.getLogger(__name__)


class JsonFileSettingsRepository(SettingsRepository):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[GlobalSettings]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as error:
            raise SettingsRepositoryError("load", str(error)) from error
        if not isinstance(data, dict):
            raise SettingsRepositoryError("load", "settings file does not hold an object")
        return settings_from_dict(data)

    def save(self, global_settings: GlobalSettings) -> None:
        payload = json.dumps(settings_to_dict(global_settings), indent=2, ensure_ascii=False)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as error:
            raise SettingsRepositoryError("save", str(error)) from error
        logger.debug("Settings saved to %s", self.path)
