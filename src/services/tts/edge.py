"""Edge TTS service implementation using Microsoft's unofficial API."""

from __future__ import annotations

import asyncio
import io
import time
from typing import Any

import edge_tts
import miniaudio
import numpy as np

from src.config import Settings, get_settings
from src.core.voice_analyzer import VoiceProfile
from src.logging_config import get_logger, preview_text
from src.services.telephony.codec import TELEPHONY_SAMPLE_RATE, pcm16_to_mulaw
from src.services.tts.exceptions import TTSConnectionError, TTSServiceError, TTSSynthesisError
from src.services.tts.protocol import SynthesisMetadata
from src.services.tts.resampler import AudioResampler
from src.services.tts.voices import edge_prosody, edge_voice

logger: Any = get_logger(__name__)

EDGE_SAMPLE_RATE = 24000  # Edge outputs 24kHz MP3


def _decode_mp3_to_pcm(mp3_data: bytes) -> tuple[bytes, int]:
    """Decode MP3 data to mono 16-bit PCM.

    Returns:
        Tuple of (raw PCM bytes as int16, sample rate)
    """
    try:
        decoded = miniaudio.decode(
            mp3_data,
            output_format=miniaudio.SampleFormat.SIGNED16,
            nchannels=1,
        )
    except miniaudio.DecodeError as e:
        raise TTSSynthesisError(f"MP3 decode failed: {e}") from e

    samples = np.asarray(decoded.samples, dtype=np.int16)
    return samples.tobytes(), decoded.sample_rate


class EdgeSynthesizer:
    """Edge TTS synthesizer producing telephony µ-law.

    WARNING: This uses an unofficial API that may change without notice.

    The speaker's voice profile is mapped onto SSML prosody (rate, pitch,
    volume) and the voice is picked from the target language and gender.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._resamplers: dict[int, AudioResampler] = {}
        self.last_metadata: SynthesisMetadata | None = None

    def _get_resampler(self, source_rate: int) -> AudioResampler:
        """Get or create resampler for a decoded rate."""
        if source_rate not in self._resamplers:
            self._resamplers[source_rate] = AudioResampler(source_rate)
        return self._resamplers[source_rate]

    async def synthesize(
        self,
        text: str,
        language: str,
        profile: VoiceProfile,
    ) -> bytes | None:
        """Synthesize text to 8kHz µ-law, or None on failure."""
        if not text.strip():
            return None

        try:
            return await self._synthesize(text, language, profile)
        except TTSServiceError as e:
            logger.error(f"Edge TTS failed for '{preview_text(text)}': {e}")
            return None

    async def _synthesize(self, text: str, language: str, profile: VoiceProfile) -> bytes:
        start_time = time.perf_counter()
        voice = edge_voice(language, profile.gender)
        prosody = edge_prosody(profile)

        metadata = SynthesisMetadata(
            model="edge-tts",
            voice=voice,
            input_chars=len(text),
            source_sample_rate=EDGE_SAMPLE_RATE,
        )

        try:
            communicate = edge_tts.Communicate(text, voice, **prosody)

            # Accumulate MP3 data (can't decode partial MP3)
            mp3_buffer = io.BytesIO()
            async for message in communicate.stream():
                if message["type"] == "audio":
                    mp3_buffer.write(message["data"])
        except edge_tts.exceptions.NoAudioReceived as e:
            raise TTSSynthesisError("No audio received from Edge TTS") from e
        except Exception as e:
            raise TTSConnectionError(f"Edge TTS connection failed: {e}") from e

        mp3_bytes = mp3_buffer.getvalue()
        if not mp3_bytes:
            raise TTSSynthesisError("No audio received from Edge TTS")

        raw_audio, decoded_rate = await asyncio.to_thread(_decode_mp3_to_pcm, mp3_bytes)
        metadata.source_sample_rate = decoded_rate

        resampler = self._get_resampler(decoded_rate)
        if resampler.needs_resampling:
            raw_audio = await resampler.to_telephony(raw_audio)
            metadata.resampled = True

        mulaw = pcm16_to_mulaw(raw_audio)

        metadata.output_bytes = len(mulaw)
        metadata.output_duration_ms = len(mulaw) / TELEPHONY_SAMPLE_RATE * 1000
        metadata.total_synthesis_ms = (time.perf_counter() - start_time) * 1000
        self.last_metadata = metadata

        logger.debug(
            f"Edge TTS synthesis complete ({voice}, {prosody['rate']}, {prosody['pitch']}): "
            f"{metadata.input_chars} chars -> {metadata.output_duration_ms:.0f}ms audio "
            f"in {metadata.total_synthesis_ms:.0f}ms"
        )
        return mulaw

    async def close(self) -> None:
        self._resamplers.clear()
