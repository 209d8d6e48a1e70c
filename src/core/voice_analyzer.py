"""Voice characteristic analysis for personalized synthesis.

Derives a coarse voice profile (pitch, speaking speed, loudness, gender)
from 8kHz 16-bit PCM and keeps a smoothed profile per speaker, so the
translated voice roughly follows the person actually talking.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Literal, Protocol

import numpy as np

from src.logging_config import get_logger
from src.services.telephony.codec import PCM16_SAMPLE_WIDTH, TELEPHONY_SAMPLE_RATE

logger: Any = get_logger(__name__)

# Output ranges
PITCH_RANGE = (-20, 20)
SPEED_RANGE = (0.75, 1.5)
ENERGY_RANGE = (-10, 10)

# Fundamental frequency search window
MIN_PITCH_HZ = 50
MAX_PITCH_HZ = 500

# Exponential smoothing weights
RETAINED_WEIGHT = 0.7
NEW_WEIGHT = 0.3


class Gender(str, Enum):
    """Coarse speaker gender used for voice selection."""

    MALE = "male"
    FEMALE = "female"
    NEUTRAL = "neutral"


@dataclass(frozen=True, slots=True)
class VoiceProfile:
    """Synthesis adjustments for one speaker.

    pitch: -20..+20 (0 = unchanged)
    speed: 0.75..1.5 multiplier
    energy: -10..+10 volume adjustment
    """

    pitch: int = 0
    speed: float = 1.0
    energy: int = 0
    gender: Gender = Gender.NEUTRAL
    sample_count: int = 0
    updated_at: float = field(default_factory=time.time, compare=False)

    @classmethod
    def neutral(cls) -> VoiceProfile:
        """Identity profile used when nothing is known about a speaker."""
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "pitch": self.pitch,
            "speed": round(self.speed, 3),
            "energy": self.energy,
            "gender": self.gender.value,
            "sample_count": self.sample_count,
        }


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


def _to_samples(pcm_bytes: bytes) -> np.ndarray:
    usable = len(pcm_bytes) - (len(pcm_bytes) % PCM16_SAMPLE_WIDTH)
    return np.frombuffer(pcm_bytes[:usable], dtype="<i2").astype(np.float64)


def detect_pitch(samples: np.ndarray, sample_rate: int = TELEPHONY_SAMPLE_RATE) -> int:
    """Map the dominant fundamental frequency to a pitch adjustment.

    Autocorrelation over lags covering 50-500Hz; the first lag with the
    highest correlation wins (the shortest lag if nothing correlates).
    """
    min_lag = sample_rate // MAX_PITCH_HZ
    max_lag = sample_rate // MIN_PITCH_HZ

    best_lag = min_lag
    best_correlation = 0.0
    for lag in range(min_lag, max_lag + 1):
        if lag >= samples.size:
            break
        correlation = float(np.dot(samples[:-lag], samples[lag:]))
        if correlation > best_correlation:
            best_correlation = correlation
            best_lag = lag

    frequency = sample_rate / best_lag

    # Male roughly 85-180Hz, female roughly 165-255Hz
    if frequency < 120:
        adjustment = -10 + ((frequency - 85) / 35) * 10  # very low
    elif frequency < 165:
        adjustment = -5 + ((frequency - 120) / 45) * 5  # low
    elif frequency < 210:
        adjustment = ((frequency - 165) / 45) * 10  # mid
    else:
        adjustment = 10 + ((frequency - 210) / 45) * 10  # high

    return int(_clamp(_round_half_up(adjustment), PITCH_RANGE))


def detect_speed(samples: np.ndarray, sample_rate: int = TELEPHONY_SAMPLE_RATE) -> float:
    """Map the zero-crossing rate to a speaking speed multiplier."""
    negative = samples < 0
    previous = np.concatenate(([False], negative[:-1]))
    crossings = int(np.count_nonzero(negative != previous))

    duration_seconds = samples.size / sample_rate
    crossing_rate = crossings / duration_seconds

    # Typical speech is 100-300 crossings per second
    if crossing_rate < 150:
        multiplier = 0.8 + (crossing_rate / 150) * 0.2
    elif crossing_rate < 250:
        multiplier = 1.0
    else:
        multiplier = 1.0 + ((crossing_rate - 250) / 250) * 0.3

    return float(_clamp(multiplier, SPEED_RANGE))


def detect_energy(samples: np.ndarray) -> int:
    """Map RMS loudness to a volume adjustment (quiet boosted, loud attenuated)."""
    rms = float(np.sqrt(np.mean(samples * samples)))

    if rms < 1000:
        adjustment = 10 - (rms / 1000) * 5
    elif rms < 3000:
        adjustment = 0.0
    else:
        adjustment = -5 - ((rms - 3000) / 3000) * 5

    return int(_clamp(_round_half_up(adjustment), ENERGY_RANGE))


def detect_gender(pitch: int) -> Gender:
    """Placeholder heuristic: below-neutral pitch reads as male."""
    return Gender.MALE if pitch < 0 else Gender.FEMALE


class VoiceAnalyzer:
    """Analyzes PCM segments and caches a smoothed profile per speaker."""

    def __init__(self, sample_rate: int = TELEPHONY_SAMPLE_RATE) -> None:
        self._sample_rate = sample_rate
        self._profiles: dict[str, VoiceProfile] = {}

    def analyze(self, pcm_bytes: bytes, speaker_id: str) -> VoiceProfile:
        """Analyze a segment and fold it into the speaker's profile.

        Returns the smoothed profile. Unusable audio yields the neutral
        profile and leaves the cache untouched.
        """
        try:
            measured = self.measure(pcm_bytes)
        except (ValueError, FloatingPointError, ZeroDivisionError) as e:
            logger.warning(f"Voice analysis failed for {speaker_id}: {e}")
            return VoiceProfile.neutral()

        return self._update(speaker_id, measured)

    def measure(self, pcm_bytes: bytes) -> VoiceProfile:
        """Measure a single segment without touching the cache."""
        samples = _to_samples(pcm_bytes)
        if samples.size < 2:
            raise ValueError("not enough samples to analyze")

        pitch = detect_pitch(samples, self._sample_rate)
        return VoiceProfile(
            pitch=pitch,
            speed=detect_speed(samples, self._sample_rate),
            energy=detect_energy(samples),
            gender=detect_gender(pitch),
            sample_count=1,
        )

    def _update(self, speaker_id: str, measured: VoiceProfile) -> VoiceProfile:
        existing = self._profiles.get(speaker_id)
        if existing is None:
            profile = measured
        else:
            profile = VoiceProfile(
                pitch=_round_half_up(existing.pitch * RETAINED_WEIGHT + measured.pitch * NEW_WEIGHT),
                speed=existing.speed * RETAINED_WEIGHT + measured.speed * NEW_WEIGHT,
                energy=_round_half_up(
                    existing.energy * RETAINED_WEIGHT + measured.energy * NEW_WEIGHT
                ),
                gender=measured.gender,
                sample_count=existing.sample_count + 1,
            )

        self._profiles[speaker_id] = profile
        logger.debug(f"Voice profile for {speaker_id}: {profile.to_dict()}")
        return profile

    def get_profile(self, speaker_id: str) -> VoiceProfile:
        """Cached profile, or the neutral profile for unknown speakers."""
        return self._profiles.get(speaker_id) or VoiceProfile.neutral()

    def evict(self, speaker_id: str) -> None:
        """Forget a speaker (called when their leg ends)."""
        self._profiles.pop(speaker_id, None)

    def profiles(self) -> dict[str, VoiceProfile]:
        """Snapshot of all cached profiles."""
        return dict(self._profiles)


# =============================================================================
# Voice selection
# =============================================================================


class VoiceSelectionStrategy(Protocol):
    """Chooses the profile handed to speech synthesis."""

    def select(self, analyzed: VoiceProfile) -> VoiceProfile:
        ...


class AdaptiveVoiceStrategy:
    """Synthesize with the speaker's analyzed profile."""

    def select(self, analyzed: VoiceProfile) -> VoiceProfile:
        return analyzed


class StableVoiceStrategy:
    """Always synthesize with one neutral voice.

    Switching profiles between segments can sound like several different
    people are talking; this keeps one consistent voice per language.
    """

    def __init__(self) -> None:
        self._profile = VoiceProfile.neutral()

    def select(self, analyzed: VoiceProfile) -> VoiceProfile:
        return replace(self._profile, sample_count=analyzed.sample_count)


def build_voice_strategy(name: Literal["adaptive", "stable"]) -> VoiceSelectionStrategy:
    """Voice selection strategy by configuration name."""
    if name == "stable":
        return StableVoiceStrategy()
    return AdaptiveVoiceStrategy()
