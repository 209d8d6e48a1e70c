"""Telephony services (Plivo).

This module provides integration with Plivo for voice telephony:
- PlivoService: stream/hangup XML generation
- Audio conversion utilities for μ-law/PCM
"""

from src.services.telephony.codec import (
    FRAME_DURATION_MS,
    MULAW_FRAME_BYTES,
    PCM16_SAMPLE_WIDTH,
    TELEPHONY_SAMPLE_RATE,
    mulaw_decode_sample,
    mulaw_duration_ms,
    mulaw_to_pcm16,
    pcm16_to_mulaw,
)
from src.services.telephony.plivo import LegCallInfo, PlivoService

__all__ = [
    # Service
    "PlivoService",
    # Data classes
    "LegCallInfo",
    # Audio conversion
    "mulaw_to_pcm16",
    "pcm16_to_mulaw",
    "mulaw_decode_sample",
    "mulaw_duration_ms",
    # Constants
    "FRAME_DURATION_MS",
    "MULAW_FRAME_BYTES",
    "PCM16_SAMPLE_WIDTH",
    "TELEPHONY_SAMPLE_RATE",
]
