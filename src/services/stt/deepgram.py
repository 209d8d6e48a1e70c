"""Deepgram STT service for buffered call segments."""

from __future__ import annotations

import io
import time
import wave
from typing import TYPE_CHECKING, Any

from src.config import Settings, get_settings
from src.core.exceptions import TranscriptionError
from src.logging_config import get_logger, preview_text
from src.services.stt.protocol import SegmentTranscript
from src.services.telephony.codec import PCM16_SAMPLE_WIDTH, TELEPHONY_SAMPLE_RATE

if TYPE_CHECKING:
    from deepgram import DeepgramClient

logger: Any = get_logger(__name__)

# Short tags the web client sends -> Deepgram language codes
LANGUAGE_MAP = {
    "en": "en-US",
    "hi": "hi",
    "es": "es",
    "fr": "fr",
    "de": "de",
    "pt": "pt-BR",
    "it": "it",
    "ja": "ja",
}


def deepgram_language(tag: str) -> str:
    """Deepgram language code for a client language tag."""
    return LANGUAGE_MAP.get(tag, tag)


def pcm16_to_wav(pcm_audio: bytes, sample_rate: int = TELEPHONY_SAMPLE_RATE) -> bytes:
    """Wrap raw mono PCM in a WAV container for pre-recorded transcription."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(PCM16_SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm_audio)
    return buffer.getvalue()


class DeepgramTranscriber:
    """Transcribes complete segments with Deepgram's pre-recorded API.

    Segments are already cut at natural pauses, so one request per
    segment is enough; no streaming connection is held per leg.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.deepgram_model
        self._client: DeepgramClient | None = None

    @property
    def client(self) -> DeepgramClient:
        """Lazy initialization of Deepgram client."""
        if self._client is None:
            from deepgram import DeepgramClient

            self._client = DeepgramClient(
                api_key=self._settings.deepgram_api_key.get_secret_value(),
            )
        return self._client

    async def transcribe(self, pcm_audio: bytes, language: str) -> str | None:
        """Transcribe one 8kHz PCM segment.

        Raises:
            TranscriptionError: When the Deepgram request fails
        """
        if not pcm_audio:
            return None

        result = await self._recognize(pcm_audio, language)
        if result is None:
            return None

        logger.debug(
            f"Transcribed {result.duration_seconds:.2f}s ({language}, "
            f"confidence {result.confidence:.2f}): {preview_text(result.text)}"
        )
        return result.text

    async def _recognize(self, pcm_audio: bytes, language: str) -> SegmentTranscript | None:
        from deepgram import PrerecordedOptions

        options = PrerecordedOptions(
            model=self._model,
            language=deepgram_language(language),
            smart_format=True,
            punctuate=True,
        )
        payload = {"buffer": pcm16_to_wav(pcm_audio)}

        start_time = time.perf_counter()
        try:
            response = await self.client.listen.asyncrest.v("1").transcribe_file(payload, options)
        except Exception as e:
            logger.error(f"Deepgram transcription failed: {e}")
            raise TranscriptionError(f"Deepgram request failed: {e}") from e

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Deepgram responded in {elapsed_ms:.0f}ms")

        return self._parse_response(response, language)

    def _parse_response(self, response: Any, language: str) -> SegmentTranscript | None:
        """Join the best alternative of every channel."""
        results = getattr(response, "results", None)
        channels = getattr(results, "channels", None) or []

        texts: list[str] = []
        confidences: list[float] = []
        for channel in channels:
            alternatives = getattr(channel, "alternatives", None) or []
            if not alternatives:
                continue
            transcript = (alternatives[0].transcript or "").strip()
            if transcript:
                texts.append(transcript)
                confidences.append(getattr(alternatives[0], "confidence", 0.0) or 0.0)

        if not texts:
            return None

        metadata = getattr(response, "metadata", None)
        return SegmentTranscript(
            text=" ".join(texts),
            language=language,
            confidence=sum(confidences) / len(confidences),
            duration_seconds=float(getattr(metadata, "duration", 0.0) or 0.0),
        )

    async def close(self) -> None:
        """Drop the client; the pre-recorded API holds no open connections."""
        self._client = None
