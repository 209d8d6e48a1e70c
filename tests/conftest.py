"""Shared pytest fixtures for Callbridge tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from typing import Any

import pytest

from src.config import Settings
from src.core.context import RelayContext
from src.core.processor import ProcessorConfig
from src.core.registry import SessionRegistry
from src.core.streamer import OutboundStreamer, StreamerConfig
from src.core.transcripts import TranscriptStore
from src.core.voice_analyzer import VoiceAnalyzer, VoiceProfile


def build_settings(**overrides) -> Settings:
    """Create a Settings object with safe test defaults."""
    base = {
        "groq_api_key": "test-groq-key",
        "deepgram_api_key": "test-deepgram-key",
        "tts_provider": "edge",
    }
    base.update(overrides)
    return Settings(**base)


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Return a factory to build Settings with overrides."""
    return build_settings


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Default Settings fixture."""
    return settings_factory()


# =============================================================================
# Fake Collaborators
# =============================================================================


class FakeTranscriber:
    """Returns a fixed transcript; can block until released or raise."""

    def __init__(self, text: str | None = "hello there", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[tuple[int, str]] = []
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()
        self.active = 0
        self.max_active = 0

    async def transcribe(self, pcm_audio: bytes, language: str) -> str | None:
        self.calls.append((len(pcm_audio), language))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.started.set()
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.error is not None:
                raise self.error
            return self.text
        finally:
            self.active -= 1

    async def close(self) -> None:
        pass


class FakeTranslator:
    """Tags the text with the target language."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []

    async def translate(self, text: str, from_language: str, to_language: str) -> str:
        self.calls.append((text, from_language, to_language))
        return f"[{to_language}] {text}"

    async def close(self) -> None:
        pass


class FakeSynthesizer:
    """Returns a fixed amount of µ-law silence."""

    def __init__(self, audio_bytes: int = 480, result: bytes | None = None) -> None:
        self.audio = b"\xff" * audio_bytes if result is None else result
        self.calls: list[tuple[str, str, VoiceProfile]] = []

    async def synthesize(self, text: str, language: str, profile: VoiceProfile) -> bytes | None:
        self.calls.append((text, language, profile))
        return self.audio or None

    async def close(self) -> None:
        pass


class RecordingTransport:
    """Collects every message sent to a call leg."""

    def __init__(self, *, fail_after: int | None = None) -> None:
        self.messages: list[dict[str, Any]] = []
        self.open = True
        self.fail_after = fail_after

    @property
    def is_open(self) -> bool:
        return self.open

    async def send_json(self, message: dict[str, Any]) -> None:
        if self.fail_after is not None and len(self.messages) >= self.fail_after:
            raise ConnectionError("socket closed")
        self.messages.append(message)

    def events(self, name: str) -> list[dict[str, Any]]:
        return [m for m in self.messages if m.get("event") == name]


# =============================================================================
# Relay Fixtures
# =============================================================================


@pytest.fixture
def fast_processor_config() -> ProcessorConfig:
    """Short thresholds so timer-driven tests run quickly."""
    return ProcessorConfig(max_buffer_ms=200, min_buffer_ms=100, silence_gap_ms=50)


@pytest.fixture
def relay_context(fast_processor_config: ProcessorConfig) -> RelayContext:
    """Relay context wired to fake collaborators."""
    return RelayContext(
        transcriber=FakeTranscriber(),
        translator=FakeTranslator(),
        synthesizer=FakeSynthesizer(),
        registry=SessionRegistry(),
        analyzer=VoiceAnalyzer(),
        streamer=OutboundStreamer(StreamerConfig(pace_delay_ms=0.0)),
        processor_config=fast_processor_config,
        observer=TranscriptStore(),
    )


@pytest.fixture
def test_client(settings: Settings) -> Generator:
    """FastAPI TestClient with fake collaborators and default thresholds."""
    from fastapi.testclient import TestClient

    from src.main import create_app

    context = RelayContext(
        transcriber=FakeTranscriber(),
        translator=FakeTranslator(),
        synthesizer=FakeSynthesizer(),
        streamer=OutboundStreamer(StreamerConfig(pace_delay_ms=0.0)),
        processor_config=ProcessorConfig(),
    )
    app = create_app(settings=settings, context=context)

    with TestClient(app) as client:
        yield client
