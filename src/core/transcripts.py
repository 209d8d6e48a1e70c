"""Recent transcript history for the polling UI.

The pipeline reports every transcription and translation through the
TranscriptObserver protocol; TranscriptStore keeps a short rolling window
per room and leg.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from src.config import Settings, get_settings
from src.logging_config import get_logger

logger: Any = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class TranscriptEvent:
    """One line of the conversation as shown to one leg."""

    room_id: str
    leg_type: str  # Leg that should display this event
    original_text: str
    translated_text: str
    from_language: str
    to_language: str
    is_incoming: bool
    timestamp_ms: int = field(default_factory=_now_ms)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase shape the web client reads."""
        data = asdict(self)
        return {
            "originalText": data["original_text"],
            "translatedText": data["translated_text"],
            "fromLanguage": data["from_language"],
            "toLanguage": data["to_language"],
            "isIncoming": data["is_incoming"],
            "timestamp": data["timestamp_ms"],
        }


class TranscriptObserver(Protocol):
    """Receives transcript events from the pipeline (called synchronously)."""

    def on_transcript(self, event: TranscriptEvent) -> None:
        ...


class TranscriptStore:
    """In-memory rolling window of transcript events per room and leg."""

    def __init__(self, max_events: int = 50) -> None:
        self._max_events = max_events
        self._events: dict[str, deque[TranscriptEvent]] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TranscriptStore:
        s = settings or get_settings()
        return cls(max_events=s.transcript_history_size)

    @staticmethod
    def _key(room_id: str, leg_type: str) -> str:
        return f"{room_id}:{leg_type}"

    def on_transcript(self, event: TranscriptEvent) -> None:
        key = self._key(event.room_id, event.leg_type)
        events = self._events.get(key)
        if events is None:
            events = self._events[key] = deque(maxlen=self._max_events)
        events.append(event)

    def since(self, room_id: str, leg_type: str, since_ms: int = 0) -> list[TranscriptEvent]:
        """Events for a leg strictly newer than since_ms."""
        events = self._events.get(self._key(room_id, leg_type), ())
        return [event for event in events if event.timestamp_ms > since_ms]

    def prune(self, max_age_ms: int) -> int:
        """Drop events older than max_age_ms; returns how many were dropped."""
        cutoff = _now_ms() - max_age_ms
        dropped = 0

        for key in list(self._events):
            kept = [event for event in self._events[key] if event.timestamp_ms >= cutoff]
            dropped += len(self._events[key]) - len(kept)
            if kept:
                self._events[key] = deque(kept, maxlen=self._max_events)
            else:
                del self._events[key]

        if dropped:
            logger.debug(f"Pruned {dropped} old transcript events")
        return dropped

    def __len__(self) -> int:
        return sum(len(events) for events in self._events.values())
