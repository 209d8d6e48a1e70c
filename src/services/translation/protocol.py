"""Translation service protocol."""

from __future__ import annotations

from typing import Protocol


def base_language(tag: str) -> str:
    """Primary subtag of a language tag: 'es-ES' -> 'es'."""
    return tag.split("-")[0].split("_")[0].lower()


class Translator(Protocol):
    """Protocol for text translation implementations.

    Translation failures are not fatal: implementations return the
    original text so the peer still hears something.
    """

    async def translate(self, text: str, from_language: str, to_language: str) -> str:
        """Translate text between two language tags.

        Same-language input is returned unchanged.
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...
