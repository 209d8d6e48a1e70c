"""Voice selection per target language and speaker gender."""

from __future__ import annotations

from src.core.voice_analyzer import Gender, VoiceProfile
from src.services.translation.protocol import base_language

# (male, female) Edge neural voices; neutral speakers get the male voice
EDGE_VOICES: dict[str, tuple[str, str]] = {
    "en": ("en-US-GuyNeural", "en-US-JennyNeural"),
    "es": ("es-ES-AlvaroNeural", "es-ES-ElviraNeural"),
    "fr": ("fr-FR-HenriNeural", "fr-FR-DeniseNeural"),
    "de": ("de-DE-ConradNeural", "de-DE-KatjaNeural"),
    "hi": ("hi-IN-MadhurNeural", "hi-IN-SwaraNeural"),
    "te": ("te-IN-MohanNeural", "te-IN-ShrutiNeural"),
    "pt": ("pt-BR-AntonioNeural", "pt-BR-FranciscaNeural"),
    "it": ("it-IT-DiegoNeural", "it-IT-ElsaNeural"),
}
DEFAULT_EDGE_LANGUAGE = "en"


def edge_voice(language: str, gender: Gender) -> str:
    """Edge voice name for a language and gender."""
    male, female = EDGE_VOICES.get(base_language(language), EDGE_VOICES[DEFAULT_EDGE_LANGUAGE])
    return female if gender is Gender.FEMALE else male


def edge_prosody(profile: VoiceProfile) -> dict[str, str]:
    """Edge TTS rate/pitch/volume strings for a voice profile."""
    rate = round((profile.speed - 1.0) * 100)
    return {
        "rate": f"{rate:+d}%",
        "pitch": f"{profile.pitch * 2:+d}Hz",
        "volume": f"{profile.energy * 5:+d}%",
    }
