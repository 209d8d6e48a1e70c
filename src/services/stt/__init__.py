"""Speech-to-Text services (Deepgram)."""

from src.services.stt.deepgram import DeepgramTranscriber, deepgram_language, pcm16_to_wav
from src.services.stt.protocol import SegmentTranscript, Transcriber

__all__ = [
    "DeepgramTranscriber",
    "SegmentTranscript",
    "Transcriber",
    "deepgram_language",
    "pcm16_to_wav",
]
