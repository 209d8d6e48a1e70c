"""Shared relay dependencies handed to every call leg."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.core.processor import ProcessorConfig
from src.core.registry import SessionRegistry
from src.core.streamer import OutboundStreamer
from src.core.voice_analyzer import VoiceAnalyzer
from src.logging_config import get_logger

if TYPE_CHECKING:
    from src.core.transcripts import TranscriptObserver
    from src.services.stt.protocol import Transcriber
    from src.services.translation.protocol import Translator
    from src.services.tts.protocol import Synthesizer

logger: Any = get_logger(__name__)


@dataclass
class RelayContext:
    """Everything a ConnectionProcessor needs besides its own transport.

    Built once per application (see main.create_app) so tests can swap in
    fake collaborators without touching module state.
    """

    transcriber: Transcriber
    translator: Translator
    synthesizer: Synthesizer
    registry: SessionRegistry = field(default_factory=SessionRegistry)
    analyzer: VoiceAnalyzer = field(default_factory=VoiceAnalyzer)
    streamer: OutboundStreamer = field(default_factory=OutboundStreamer)
    processor_config: ProcessorConfig = field(default_factory=ProcessorConfig)
    observer: TranscriptObserver | None = None

    async def close(self) -> None:
        """Close collaborator clients."""
        for name, collaborator in (
            ("transcriber", self.transcriber),
            ("translator", self.translator),
            ("synthesizer", self.synthesizer),
        ):
            try:
                await collaborator.close()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")
