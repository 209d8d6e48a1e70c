"""TTS (Text-to-Speech) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from src.core.voice_analyzer import VoiceProfile


@dataclass
class SynthesisMetadata:
    """Metadata collected after synthesis."""

    model: str = ""
    voice: str = ""
    input_chars: int = 0
    output_bytes: int = 0
    output_duration_ms: float = 0.0
    total_synthesis_ms: float | None = None
    resampled: bool = False
    source_sample_rate: int = 0


class Synthesizer(Protocol):
    """Protocol for speech synthesis implementations."""

    async def synthesize(
        self,
        text: str,
        language: str,
        profile: VoiceProfile,
    ) -> bytes | None:
        """Synthesize text to telephony audio.

        Args:
            text: Text to speak
            language: Target language tag
            profile: Voice adjustments for the speaker being translated

        Returns:
            8kHz µ-law audio, or None if synthesis failed
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...
