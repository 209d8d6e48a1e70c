"""Translation services (Groq)."""

from src.services.translation.groq import GroqTranslator, language_name
from src.services.translation.protocol import Translator, base_language

__all__ = [
    "GroqTranslator",
    "Translator",
    "base_language",
    "language_name",
]
