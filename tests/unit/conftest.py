from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional

import pytest

from batchvoice.app.domain.models import (
    AudioResult,
    MediaUpload,
    RewriteResult,
    TranscriptionResult,
    VoiceSettings,
)
from batchvoice.app.infra.stages.base import RewriteBackend, SpeechBackend, TranscriptionBackend
from batchvoice.app.services.file_store import FileRecordStore
from batchvoice.app.services.queue_engine import QueueEngine
from batchvoice.app.services.review_gate import ReviewGate
from batchvoice.app.services.settings_service import SettingsService


class TranscriberStub(TranscriptionBackend):
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.fail_with: Optional[Exception] = None
        self.probe: Optional[Callable[[], None]] = None
        self.release: Optional[asyncio.Event] = None

    async def transcribe(self, media: MediaUpload) -> TranscriptionResult:
        self.calls.append(media.filename)
        if self.probe:
            self.probe()
        if self.release is not None:
            await self.release.wait()
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        return TranscriptionResult(text=f"transcript of {media.filename}", duration=12.5, processing_time=0.4)


class RewriterStub(RewriteBackend):
    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.fail_with: Optional[Exception] = None
        self.probe: Optional[Callable[[], None]] = None
        self.release: Optional[asyncio.Event] = None
        self.output_prefix = "rewritten"

    async def rewrite(
        self,
        text: str,
        prompt: str,
        api_key: str,
        model: str,
        prompt_type: Optional[str] = None,
    ) -> RewriteResult:
        self.calls.append({"text": text, "prompt": prompt, "api_key": api_key, "model": model})
        if self.probe:
            self.probe()
        if self.release is not None:
            await self.release.wait()
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        return RewriteResult(
            processed_text=f"{self.output_prefix}: {text}",
            original_text=text,
            prompt_used=prompt,
            model=model,
            tokens_used=42,
            prompt_type=prompt_type,
        )


class SpeechStub(SpeechBackend):
    def __init__(self) -> None:
        self.calls: list[tuple[str, VoiceSettings]] = []
        self.fail_with: Optional[Exception] = None
        self.voices_error: Optional[Exception] = None
        self.probe: Optional[Callable[[], None]] = None
        self.voices = ["af_heart", "bf_emma"]

    async def synthesize(self, text: str, voice: VoiceSettings) -> AudioResult:
        self.calls.append((text, voice))
        if self.probe:
            self.probe()
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        return AudioResult(
            data=text.encode("utf-8"),
            format=voice.format,
            media_type="audio/mpeg",
            voice=voice.voice,
            speed=voice.speed,
            model=voice.model,
        )

    async def list_voices(self) -> list[str]:
        if self.voices_error is not None:
            raise self.voices_error
        return list(self.voices)


@dataclass
class EngineHarness:
    store: FileRecordStore
    gate: ReviewGate
    transcriber: TranscriberStub
    rewriter: RewriterStub
    speech: SpeechStub
    settings: SettingsService
    engine: QueueEngine
    ids: list[str] = field(default_factory=list)

    def add(self, *names: str) -> list[str]:
        ids = self.store.add_files(MediaUpload(filename=n, content=b"\x00\x01", content_type="audio/mpeg") for n in names)
        self.ids.extend(ids)
        return ids


@pytest.fixture
def harness_factory() -> Callable[..., EngineHarness]:
    def build(
        store: Optional[FileRecordStore] = None,
        settings: Optional[SettingsService] = None,
        stage_timeout_seconds: Optional[float] = None,
    ) -> EngineHarness:
        return _build_harness(store, settings, stage_timeout_seconds)

    return build


@pytest.fixture
def harness(harness_factory) -> EngineHarness:
    return harness_factory()


def _build_harness(
    store: Optional[FileRecordStore],
    settings: Optional[SettingsService],
    stage_timeout_seconds: Optional[float],
) -> EngineHarness:
    store = store if store is not None else FileRecordStore()
    gate = ReviewGate(store)
    transcriber = TranscriberStub()
    rewriter = RewriterStub()
    speech = SpeechStub()
    settings = settings if settings is not None else SettingsService(default_api_key="sk-test")
    engine = QueueEngine(
        store=store,
        review_gate=gate,
        transcriber=transcriber,
        rewriter=rewriter,
        speech=speech,
        settings_service=settings,
        stage_delay_seconds=0,
        settle_delay_seconds=0,
        stage_timeout_seconds=stage_timeout_seconds,
    )
    return EngineHarness(store, gate, transcriber, rewriter, speech, settings, engine)
