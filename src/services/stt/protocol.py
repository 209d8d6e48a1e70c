"""STT (Speech-to-Text) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class SegmentTranscript:
    """Transcription result for one buffered segment."""

    text: str
    language: str
    confidence: float = 0.0
    duration_seconds: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class Transcriber(Protocol):
    """Protocol for segment transcription implementations."""

    async def transcribe(self, pcm_audio: bytes, language: str) -> str | None:
        """Transcribe one segment of 8kHz 16-bit PCM.

        Args:
            pcm_audio: Linear PCM, little-endian, mono, 8kHz
            language: Speaker's language tag (e.g. "en", "es-ES")

        Returns:
            Transcript text, or None when nothing was recognized

        Raises:
            TranscriptionError: When the service fails
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...
