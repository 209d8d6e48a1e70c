"""Core call relay components.

This module provides the per-call machinery of the translation relay:
- SessionRegistry: Two-party rooms and their call legs
- ConnectionProcessor: Per-leg buffering and translation pipeline
- OutboundStreamer: Paced audio delivery to the other leg
- VoiceAnalyzer: Smoothed voice profiles per speaker
"""

from src.core.context import RelayContext
from src.core.processor import (
    ConnectionProcessor,
    LegState,
    ProcessorConfig,
    ProcessorStats,
)
from src.core.registry import LegType, RoomInfo, Session, SessionRegistry
from src.core.streamer import MediaTransport, OutboundStreamer, StreamerConfig
from src.core.transcripts import TranscriptEvent, TranscriptObserver, TranscriptStore
from src.core.voice_analyzer import Gender, VoiceAnalyzer, VoiceProfile

__all__ = [
    # Rooms
    "SessionRegistry",
    "Session",
    "RoomInfo",
    "LegType",
    # Legs
    "ConnectionProcessor",
    "ProcessorConfig",
    "ProcessorStats",
    "LegState",
    "RelayContext",
    # Outbound
    "OutboundStreamer",
    "StreamerConfig",
    "MediaTransport",
    # Voice
    "VoiceAnalyzer",
    "VoiceProfile",
    "Gender",
    # Transcripts
    "TranscriptEvent",
    "TranscriptObserver",
    "TranscriptStore",
]
