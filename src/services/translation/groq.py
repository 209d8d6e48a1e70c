"""Groq LLM translation service."""

from __future__ import annotations

import time
from typing import Any

import groq
from groq import AsyncGroq

from src.config import Settings, get_settings
from src.core.exceptions import TranslationError
from src.logging_config import get_logger, preview_text
from src.services.translation.protocol import base_language

logger: Any = get_logger(__name__)

# Display names help the model more than bare tags
LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "hi": "Hindi",
    "te": "Telugu",
    "ta": "Tamil",
    "pt": "Portuguese",
    "it": "Italian",
    "ja": "Japanese",
    "zh": "Chinese",
}

SYSTEM_PROMPT = (
    "You are a real-time phone call interpreter. Translate the user's message "
    "from {source} to {target}. Keep the speaker's tone and register. "
    "Reply with the translation only: no quotes, notes, or explanations."
)


def language_name(tag: str) -> str:
    """Human-readable language name for a tag, falling back to the tag."""
    return LANGUAGE_NAMES.get(base_language(tag), tag)


class GroqTranslator:
    """Translates utterances with a low-temperature Groq chat completion."""

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.groq_translation_model
        self._client: AsyncGroq | None = None

    @property
    def client(self) -> AsyncGroq:
        """Lazy initialization of AsyncGroq client."""
        if self._client is None:
            self._client = AsyncGroq(
                api_key=self._settings.groq_api_key.get_secret_value(),
                timeout=10.0,
                max_retries=1,
            )
        return self._client

    async def translate(self, text: str, from_language: str, to_language: str) -> str:
        """Translate text, passing it through unchanged on failure."""
        if not text.strip() or base_language(from_language) == base_language(to_language):
            return text

        try:
            return await self._complete(text, from_language, to_language)
        except TranslationError as e:
            logger.warning(f"Translation {from_language}->{to_language} failed, passing through: {e}")
            return text

    async def _complete(self, text: str, from_language: str, to_language: str) -> str:
        start_time = time.perf_counter()
        system_prompt = SYSTEM_PROMPT.format(
            source=language_name(from_language),
            target=language_name(to_language),
        )

        try:
            response = await self.client.chat.completions.create(
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": text},
                ],
                model=self._model,
                temperature=0.1,
                max_tokens=max(64, len(text) * 2),
            )
        except groq.RateLimitError as e:
            raise TranslationError("Groq rate limit exceeded") from e
        except groq.APIConnectionError as e:
            raise TranslationError(f"Failed to connect to Groq API: {e.__cause__}") from e
        except groq.AuthenticationError as e:
            raise TranslationError("Invalid Groq API key") from e
        except groq.APIStatusError as e:
            raise TranslationError(f"Groq API error: {e.status_code}") from e
        except groq.APIError as e:
            raise TranslationError(f"Groq API error: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        translated = (content or "").strip().strip('"').strip()
        if not translated:
            raise TranslationError("Empty response from Groq translation")

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Translated {from_language}->{to_language} in {elapsed_ms:.0f}ms: "
            f"{preview_text(translated)}"
        )
        return translated

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
