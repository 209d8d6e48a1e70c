"""ElevenLabs TTS service implementation for high-naturalness speech."""

from __future__ import annotations

import asyncio
import io
import time
from typing import TYPE_CHECKING, Any

from src.config import Settings, get_settings
from src.core.voice_analyzer import Gender, VoiceProfile
from src.logging_config import get_logger, preview_text
from src.services.telephony.codec import TELEPHONY_SAMPLE_RATE
from src.services.tts.exceptions import TTSConnectionError, TTSServiceError, TTSSynthesisError
from src.services.tts.protocol import SynthesisMetadata

if TYPE_CHECKING:
    from elevenlabs import ElevenLabs

logger: Any = get_logger(__name__)

# Telephony-ready output, no decode or resample needed
ELEVENLABS_OUTPUT_FORMAT = "ulaw_8000"

# ElevenLabs accepts speech speed in this range
ELEVENLABS_SPEED_RANGE = (0.7, 1.2)


def elevenlabs_speed(profile: VoiceProfile) -> float:
    low, high = ELEVENLABS_SPEED_RANGE
    return min(max(profile.speed, low), high)


class ElevenLabsSynthesizer:
    """ElevenLabs synthesizer returning 8kHz µ-law directly."""

    def __init__(
        self,
        settings: Settings | None = None,
        model_id: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model_id = model_id or self._settings.elevenlabs_model_id
        self._client: ElevenLabs | None = None
        self.last_metadata: SynthesisMetadata | None = None

    def _get_client(self) -> ElevenLabs:
        if self._client is None:
            if not self._settings.elevenlabs_api_key:
                raise TTSConnectionError("ElevenLabs API key is not configured")
            from elevenlabs import ElevenLabs

            self._client = ElevenLabs(
                api_key=self._settings.elevenlabs_api_key.get_secret_value()
            )
        return self._client

    def voice_id_for(self, gender: Gender) -> str:
        if gender is Gender.FEMALE:
            return self._settings.elevenlabs_female_voice_id
        return self._settings.elevenlabs_male_voice_id

    async def synthesize(
        self,
        text: str,
        language: str,
        profile: VoiceProfile,
    ) -> bytes | None:
        """Synthesize text to 8kHz µ-law, or None on failure."""
        if not text.strip():
            return None

        start_time = time.perf_counter()
        voice_id = self.voice_id_for(profile.gender)
        metadata = SynthesisMetadata(
            model=self._model_id,
            voice=voice_id,
            input_chars=len(text),
            source_sample_rate=TELEPHONY_SAMPLE_RATE,
        )

        try:
            audio = await asyncio.to_thread(self._synthesize_to_ulaw, text, voice_id, profile)
        except TTSServiceError as e:
            logger.error(f"ElevenLabs TTS failed for '{preview_text(text)}': {e}")
            return None
        except Exception as e:
            logger.error(f"ElevenLabs synthesis error ({language}): {e}")
            return None

        metadata.output_bytes = len(audio)
        metadata.output_duration_ms = len(audio) / TELEPHONY_SAMPLE_RATE * 1000
        metadata.total_synthesis_ms = (time.perf_counter() - start_time) * 1000
        self.last_metadata = metadata

        logger.debug(
            f"ElevenLabs synthesis complete ({profile.gender.value} voice, {language}): "
            f"{metadata.input_chars} chars -> {metadata.output_duration_ms:.0f}ms audio "
            f"in {metadata.total_synthesis_ms:.0f}ms"
        )
        return audio

    def _synthesize_to_ulaw(self, text: str, voice_id: str, profile: VoiceProfile) -> bytes:
        from elevenlabs import VoiceSettings

        client = self._get_client()

        audio_chunks = client.text_to_speech.convert(
            text=text,
            voice_id=voice_id,
            model_id=self._model_id,
            output_format=ELEVENLABS_OUTPUT_FORMAT,
            voice_settings=VoiceSettings(
                stability=0.5,
                similarity_boost=0.75,
                speed=elevenlabs_speed(profile),
            ),
        )

        buffer = io.BytesIO()
        for chunk in audio_chunks:
            buffer.write(chunk)

        audio = buffer.getvalue()
        if not audio:
            raise TTSSynthesisError("No audio received from ElevenLabs")
        return audio

    async def close(self) -> None:
        self._client = None
