from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    APP_ENV: str = "local"
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"],
    )

    # Remote stages
    TRANSCRIBE_URL: str = "http://0.0.0.0:8080/transcribe"
    TRANSCRIBE_TEMPERATURE: float = 0.0
    CHAT_COMPLETIONS_URL: str = "https://api.openai.com/v1/chat/completions"
    OPENAI_API_KEY: str = ""
    REWRITE_MODEL: str = "gpt-3.5-turbo"
    REWRITE_MAX_TOKENS: int = 2000
    REWRITE_TEMPERATURE: float = 0.7
    SPEECH_URL: str = "http://0.0.0.0:8880/v1/audio/speech"
    VOICES_URL: str = "http://0.0.0.0:8880/v1/audio/voices"
    VOICES_TIMEOUT_SECONDS: float = 10.0

    # Queue pacing. None means remote calls are never cut short.
    STAGE_DELAY_SECONDS: float = 1.0
    SETTLE_DELAY_SECONDS: float = 2.0
    STAGE_TIMEOUT_SECONDS: Optional[float] = None

    # Settings persistence
    SETTINGS_BACKEND: Literal["file", "supabase"] = "file"
    SETTINGS_FILE: str = ".batchvoice/settings.json"
    SETTINGS_PROFILE: str = "default"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None


settings = Settings()
