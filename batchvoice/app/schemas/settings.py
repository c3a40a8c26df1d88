from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from batchvoice.app.domain.models import GlobalSettings


class VoiceSettingsSchema(BaseModel):
    voice: str
    speed: float
    format: str
    model: str


class AISettingsSchema(BaseModel):
    selected_prompt_type: str
    custom_prompt: str
    model: str
    has_api_key: bool = Field(..., description="True when a key is set for this session or the server")


class SettingsResponse(BaseModel):
    batch_review_mode: bool
    preserve_manual_edits: bool
    ai: AISettingsSchema
    voice: VoiceSettingsSchema
    active_prompt: str

    @classmethod
    def from_settings(cls, gs: GlobalSettings, active_prompt: str, has_api_key: bool) -> "SettingsResponse":
        return cls(
            batch_review_mode=gs.batch_review_mode,
            preserve_manual_edits=gs.preserve_manual_edits,
            ai=AISettingsSchema(
                selected_prompt_type=gs.ai.selected_prompt_type,
                custom_prompt=gs.ai.custom_prompt,
                model=gs.ai.model,
                has_api_key=has_api_key,
            ),
            voice=VoiceSettingsSchema(
                voice=gs.voice.voice,
                speed=gs.voice.speed,
                format=gs.voice.format,
                model=gs.voice.model,
            ),
            active_prompt=active_prompt,
        )


class AISettingsUpdate(BaseModel):
    selected_prompt_type: Optional[str] = None
    custom_prompt: Optional[str] = None
    model: Optional[str] = None
    api_key: Optional[str] = Field(None, description="Session credential. Never persisted.")


class VoiceSettingsUpdate(BaseModel):
    voice: Optional[str] = None
    speed: Optional[float] = Field(None, gt=0, le=4)
    format: Optional[str] = None
    model: Optional[str] = None


class SettingsUpdateRequest(BaseModel):
    batch_review_mode: Optional[bool] = None
    preserve_manual_edits: Optional[bool] = None
    ai: Optional[AISettingsUpdate] = None
    voice: Optional[VoiceSettingsUpdate] = None


class CustomPromptRequest(BaseModel):
    prompt: str = Field(..., min_length=1)


class VoicesResponse(BaseModel):
    voices: List[str]


class PromptsResponse(BaseModel):
    prompts: Dict[str, str]
    selected_prompt_type: str
