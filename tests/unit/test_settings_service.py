from __future__ import annotations

import json
from typing import Any, Optional

import pytest

from batchvoice.app.domain.errors import SettingsRepositoryError
from batchvoice.app.domain.models import GlobalSettings
from batchvoice.app.infra.settings.base import SettingsRepository, settings_from_dict, settings_to_dict
from batchvoice.app.infra.settings.file_repo import JsonFileSettingsRepository
from batchvoice.app.infra.settings.supabase_repo import SupabaseSettingsRepository
from batchvoice.app.services.prompts import DEFAULT_PROMPTS, resolve_prompt
from batchvoice.app.services.settings_service import FALLBACK_VOICES, SettingsService
from batchvoice.services.errors import VoiceCatalogError


class BrokenRepositoryStub(SettingsRepository):
    def load(self) -> Optional[GlobalSettings]:
        raise SettingsRepositoryError("load", "disk on fire")

    def save(self, global_settings: GlobalSettings) -> None:
        raise SettingsRepositoryError("save", "disk on fire")


class SupabaseResponseStub:
    def __init__(self, data: Any) -> None:
        self.data = data


class SupabaseQueryStub:
    def __init__(self, client: "SupabaseClientStub", table: str) -> None:
        self._client = client
        self._table = table
        self._op: Optional[str] = None
        self._filters: dict[str, Any] = {}

    def select(self, columns: str) -> "SupabaseQueryStub":
        self._op = "select"
        return self

    def eq(self, column: str, value: Any) -> "SupabaseQueryStub":
        self._filters[column] = value
        return self

    def limit(self, n: int) -> "SupabaseQueryStub":
        return self

    def upsert(self, row: dict, on_conflict: str = "") -> "SupabaseQueryStub":
        self._op = "upsert"
        self._row = row
        self._client.upserts.append((self._table, row, on_conflict))
        return self

    def execute(self) -> SupabaseResponseStub:
        if self._client.fail:
            raise ConnectionError("network down")
        if self._op == "upsert":
            self._client.rows[self._row["profile"]] = self._row
            return SupabaseResponseStub([self._row])
        row = self._client.rows.get(self._filters.get("profile"))
        return SupabaseResponseStub([row] if row else [])


class SupabaseClientStub:
    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}
        self.upserts: list[tuple[str, dict, str]] = []
        self.fail = False

    def table(self, name: str) -> SupabaseQueryStub:
        return SupabaseQueryStub(self, name)


class TestPrompts:
    def test_custom_prompt_falls_back_when_blank(self) -> None:
        assert resolve_prompt("custom", "  ") == DEFAULT_PROMPTS["professional"]
        assert resolve_prompt("custom", "Shout it") == "Shout it"

    def test_unknown_preset_falls_back(self) -> None:
        assert resolve_prompt("nonsense") == DEFAULT_PROMPTS["professional"]


class TestSettingsService:
    def test_snapshot_is_a_copy(self) -> None:
        service = SettingsService()

        snapshot = service.snapshot()
        snapshot.ai.selected_prompt_type = "casual"

        assert service.snapshot().ai.selected_prompt_type == "professional"

    def test_session_key_wins_over_server_key(self) -> None:
        service = SettingsService(default_api_key="sk-env")
        assert service.resolve_api_key() == "sk-env"

        service.update_ai_settings(api_key="sk-user")

        assert service.resolve_api_key() == "sk-user"
        assert service.has_api_key()

    def test_unknown_prompt_type_rejected(self) -> None:
        service = SettingsService()

        with pytest.raises(ValueError):
            service.set_prompt_type("haiku")
        with pytest.raises(ValueError):
            service.update_ai_settings(selected_prompt_type="haiku")

    def test_unknown_field_and_bad_speed_rejected(self) -> None:
        service = SettingsService()

        with pytest.raises(ValueError):
            service.update_voice_settings(pitch=3)
        with pytest.raises(ValueError):
            service.update_voice_settings(speed=0)

    def test_custom_prompt_selects_custom_type(self) -> None:
        service = SettingsService()

        service.set_custom_prompt("Translate to pirate")

        assert service.snapshot().ai.selected_prompt_type == "custom"
        assert service.active_prompt() == "Translate to pirate"

    def test_reset_keeps_review_mode_and_key(self) -> None:
        service = SettingsService()
        service.set_batch_review_mode(True)
        service.update_ai_settings(api_key="sk-user", selected_prompt_type="casual")
        service.update_voice_settings(voice="am_echo")

        reset = service.reset_to_defaults()

        assert reset.batch_review_mode is True
        assert reset.ai.api_key == "sk-user"
        assert reset.ai.selected_prompt_type == "professional"
        assert reset.voice.voice == "af_heart"

    def test_load_failure_keeps_defaults(self) -> None:
        service = SettingsService(repository=BrokenRepositoryStub())

        assert service.load() == GlobalSettings()

    @pytest.mark.asyncio
    async def test_refresh_voices_falls_back(self, harness) -> None:
        harness.speech.voices_error = VoiceCatalogError("down")

        assert await harness.settings.refresh_voices(harness.speech) == FALLBACK_VOICES

    @pytest.mark.asyncio
    async def test_refresh_voices_uses_catalog(self, harness) -> None:
        assert await harness.settings.refresh_voices(harness.speech) == ["af_heart", "bf_emma"]
        assert harness.settings.available_voices == ["af_heart", "bf_emma"]


class TestSerialization:
    def test_api_key_is_never_serialized(self) -> None:
        settings = GlobalSettings()
        settings.ai.api_key = "sk-secret"

        data = settings_to_dict(settings)

        assert "api_key" not in data["ai"]
        assert "sk-secret" not in json.dumps(data)

    def test_from_dict_ignores_unknown_and_key(self) -> None:
        settings = settings_from_dict({
            "batch_review_mode": True,
            "ai": {"selected_prompt_type": "summary", "api_key": "sk-leak", "extra": 1},
            "voice": {"voice": "am_adam", "pitch": 2},
            "unrelated": "x",
        })

        assert settings.batch_review_mode is True
        assert settings.ai.selected_prompt_type == "summary"
        assert settings.ai.api_key == ""
        assert settings.voice.voice == "am_adam"


class TestJsonFileRepository:
    def test_round_trip_through_service(self, tmp_path) -> None:
        path = tmp_path / "conf" / "settings.json"
        service = SettingsService(repository=JsonFileSettingsRepository(path))
        service.set_batch_review_mode(True)
        service.update_ai_settings(api_key="sk-secret", selected_prompt_type="email")
        service.persist()

        assert "sk-secret" not in path.read_text(encoding="utf-8")

        reloaded = SettingsService(repository=JsonFileSettingsRepository(path))
        settings = reloaded.load()
        assert settings.batch_review_mode is True
        assert settings.ai.selected_prompt_type == "email"
        assert settings.ai.api_key == ""

    def test_missing_file_loads_none(self, tmp_path) -> None:
        assert JsonFileSettingsRepository(tmp_path / "none.json").load() is None

    def test_corrupt_file_raises(self, tmp_path) -> None:
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(SettingsRepositoryError):
            JsonFileSettingsRepository(path).load()


class TestSupabaseRepository:
    def test_save_then_load(self) -> None:
        client = SupabaseClientStub()
        repo = SupabaseSettingsRepository(client=client, profile="studio")
        settings = GlobalSettings(batch_review_mode=True)
        settings.ai.api_key = "sk-secret"

        repo.save(settings)
        loaded = repo.load()

        table, row, on_conflict = client.upserts[0]
        assert table == "pipeline_settings"
        assert on_conflict == "profile"
        assert "api_key" not in row["settings"]["ai"]
        assert loaded.batch_review_mode is True

    def test_load_without_row(self) -> None:
        assert SupabaseSettingsRepository(client=SupabaseClientStub()).load() is None

    def test_connection_errors_are_wrapped(self) -> None:
        client = SupabaseClientStub()
        client.fail = True
        repo = SupabaseSettingsRepository(client=client)

        with pytest.raises(SettingsRepositoryError):
            repo.load()
        with pytest.raises(SettingsRepositoryError):
            repo.save(GlobalSettings())

    def test_requires_credentials_without_client(self) -> None:
        with pytest.raises(SettingsRepositoryError):
            SupabaseSettingsRepository(url=None, key=None)
