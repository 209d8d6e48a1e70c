"""Text-to-Speech services (ElevenLabs, Edge TTS).

Both synthesizers return 8kHz µ-law ready for the call leg:
- ElevenLabsSynthesizer: ulaw_8000 output straight from the API
- EdgeSynthesizer: MP3 decoded, resampled and µ-law encoded locally
"""

from src.config import Settings, get_settings
from src.logging_config import get_logger
from src.services.tts.edge import EdgeSynthesizer
from src.services.tts.elevenlabs import ElevenLabsSynthesizer
from src.services.tts.exceptions import (
    TTSConnectionError,
    TTSResamplingError,
    TTSServiceError,
    TTSSynthesisError,
)
from src.services.tts.protocol import SynthesisMetadata, Synthesizer
from src.services.tts.resampler import AudioResampler

logger = get_logger(__name__)


def build_synthesizer(settings: Settings | None = None) -> Synthesizer:
    """Create the synthesizer selected by TTS_PROVIDER."""
    settings = settings or get_settings()
    provider = settings.resolved_tts_provider
    logger.info(f"Using {provider} TTS provider")
    if provider == "elevenlabs":
        return ElevenLabsSynthesizer(settings)
    return EdgeSynthesizer(settings)


__all__ = [
    # Services
    "EdgeSynthesizer",
    "ElevenLabsSynthesizer",
    "build_synthesizer",
    # Protocol
    "Synthesizer",
    # Data types
    "SynthesisMetadata",
    # Utilities
    "AudioResampler",
    # Exceptions
    "TTSServiceError",
    "TTSSynthesisError",
    "TTSConnectionError",
    "TTSResamplingError",
]
