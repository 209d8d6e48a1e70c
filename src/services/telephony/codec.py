"""G.711 µ-law ↔ 16-bit linear PCM conversion.

Telephony legs stream 8kHz µ-law (PCMU). The pipeline works on 16-bit
little-endian PCM. Conversion is one sample at a time, so the sample
count is always preserved (no resampling here).
"""

from __future__ import annotations

import numpy as np

# Audio format constants
MULAW_SAMPLE_WIDTH = 1  # μ-law is 8-bit
PCM16_SAMPLE_WIDTH = 2  # 16-bit PCM
TELEPHONY_SAMPLE_RATE = 8000
FRAME_DURATION_MS = 20
MULAW_FRAME_BYTES = TELEPHONY_SAMPLE_RATE * FRAME_DURATION_MS // 1000  # 160

MULAW_BIAS = 0x84
MULAW_CLIP = 32635
_SIGN_BIT = 0x80
_EXPONENT_MASK = 0x70
_EXPONENT_SHIFT = 4
_MANTISSA_MASK = 0x0F


def _decode_byte(mulaw: int) -> int:
    mulaw = ~mulaw & 0xFF
    sign = mulaw & _SIGN_BIT
    exponent = (mulaw & _EXPONENT_MASK) >> _EXPONENT_SHIFT
    mantissa = mulaw & _MANTISSA_MASK

    magnitude = (((mantissa << 3) + MULAW_BIAS) << exponent) - MULAW_BIAS
    return -magnitude if sign else magnitude


# Decoding is a pure function of one byte, so precompute all 256 values
_DECODE_TABLE = np.array([_decode_byte(value) for value in range(256)], dtype=np.int16)


def mulaw_decode_sample(mulaw: int) -> int:
    """Decode a single µ-law byte to a linear PCM sample."""
    return int(_DECODE_TABLE[mulaw & 0xFF])


def mulaw_to_pcm16(mulaw_bytes: bytes) -> bytes:
    """Convert μ-law encoded audio to 16-bit signed PCM.

    μ-law (PCMU) is the standard encoding for telephony audio.
    This converts it to linear 16-bit PCM for processing.

    Args:
        mulaw_bytes: μ-law encoded audio bytes

    Returns:
        16-bit signed PCM bytes (little-endian), two bytes per input byte
    """
    if not mulaw_bytes:
        return b""
    indices = np.frombuffer(mulaw_bytes, dtype=np.uint8)
    return _DECODE_TABLE[indices].astype("<i2").tobytes()


def pcm16_to_mulaw(pcm_bytes: bytes) -> bytes:
    """Convert 16-bit signed PCM to μ-law encoding.

    Used by synthesizers that produce linear PCM; telephony-native
    synthesizers already return µ-law.

    Args:
        pcm_bytes: 16-bit signed PCM bytes (little-endian)

    Returns:
        μ-law encoded audio bytes, one byte per input sample
    """
    if len(pcm_bytes) % PCM16_SAMPLE_WIDTH:
        pcm_bytes = pcm_bytes[:-1]
    if not pcm_bytes:
        return b""

    samples = np.frombuffer(pcm_bytes, dtype="<i2").astype(np.int32)
    sign = np.where(samples < 0, _SIGN_BIT, 0)
    magnitude = np.minimum(np.abs(samples), MULAW_CLIP) + MULAW_BIAS

    # Exponent is the position of the highest set bit above bit 7
    exponent = np.floor(np.log2(magnitude)).astype(np.int32) - 7
    exponent = np.clip(exponent, 0, 7)
    mantissa = (magnitude >> (exponent + 3)) & _MANTISSA_MASK

    encoded = ~(sign | (exponent << _EXPONENT_SHIFT) | mantissa) & 0xFF
    return encoded.astype(np.uint8).tobytes()


def mulaw_duration_ms(mulaw_bytes: bytes, sample_rate: int = TELEPHONY_SAMPLE_RATE) -> float:
    """Playback duration of a µ-law buffer in milliseconds."""
    return len(mulaw_bytes) / sample_rate * 1000
