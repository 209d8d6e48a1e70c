"""Custom exceptions for TTS services."""

from src.core.exceptions import SynthesisError


class TTSServiceError(SynthesisError):
    """Base exception for TTS service errors."""

    pass


class TTSSynthesisError(TTSServiceError):
    """Raised when synthesis fails."""

    pass


class TTSConnectionError(TTSServiceError):
    """Raised when unable to connect to the TTS service."""

    pass


class TTSResamplingError(TTSServiceError):
    """Raised when audio resampling fails."""

    pass
