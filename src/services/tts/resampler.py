"""Downsampling of decoded TTS speech to the 8kHz telephony rate."""

from __future__ import annotations

import asyncio
from typing import Any

import numpy as np
import soxr

from src.logging_config import get_logger
from src.services.telephony.codec import TELEPHONY_SAMPLE_RATE
from src.services.tts.exceptions import TTSResamplingError

logger: Any = get_logger(__name__)

_INT16_SCALE = 32768.0


def downsample_pcm16(pcm: bytes, source_rate: int, quality: str = "HQ") -> bytes:
    """Convert mono PCM16 at source_rate to PCM16 at 8kHz.

    Blocking; soxr works on float samples in [-1, 1).
    """
    samples = np.frombuffer(pcm, dtype=np.int16).astype(np.float32) / _INT16_SCALE
    telephony = soxr.resample(samples, source_rate, TELEPHONY_SAMPLE_RATE, quality=quality)
    return np.clip(telephony * _INT16_SCALE, -32768, 32767).astype(np.int16).tobytes()


class AudioResampler:
    """Brings one TTS engine's decoded output down to the call leg rate.

    Edge decodes to 24kHz; other rates appear if the MP3 stream changes.
    """

    def __init__(self, source_rate: int, quality: str = "HQ") -> None:
        self._source_rate = source_rate
        self._quality = quality

    @property
    def source_rate(self) -> int:
        return self._source_rate

    @property
    def needs_resampling(self) -> bool:
        return self._source_rate != TELEPHONY_SAMPLE_RATE

    async def to_telephony(self, pcm: bytes) -> bytes:
        """PCM16 at 8kHz, resampled off the event loop."""
        if not pcm or not self.needs_resampling:
            return pcm

        try:
            return await asyncio.to_thread(downsample_pcm16, pcm, self._source_rate, self._quality)
        except Exception as e:
            logger.error(f"Downsampling {self._source_rate}Hz speech failed: {e}")
            raise TTSResamplingError(
                f"Cannot resample {self._source_rate}Hz audio to {TELEPHONY_SAMPLE_RATE}Hz"
            ) from e
