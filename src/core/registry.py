"""Two-party room registry.

Maps a room id to a session with one slot per call leg. HTTP handlers
create and tear down rooms; media streams attach and detach legs.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from src.core.exceptions import PeerNotReadyError, RoomFullError, RoomNotFoundError
from src.logging_config import get_logger

if TYPE_CHECKING:
    from src.core.processor import ConnectionProcessor

logger: Any = get_logger(__name__)


class LegType(str, Enum):
    """Which slot of a room a call leg occupies."""

    CALLER = "caller"  # Created the room
    RECEIVER = "receiver"  # Joined the room

    @classmethod
    def parse(cls, value: str | LegType | None) -> LegType:
        """Anything other than the room creator is the receiver."""
        if isinstance(value, LegType):
            return value
        return cls.CALLER if (value or "").strip().lower() == cls.CALLER.value else cls.RECEIVER

    @property
    def other(self) -> LegType:
        return LegType.RECEIVER if self is LegType.CALLER else LegType.CALLER


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class Session:
    """One call room with a slot for each party."""

    room_id: str
    caller_language: str | None = None
    receiver_language: str | None = None
    caller: ConnectionProcessor | None = field(default=None, repr=False)
    receiver: ConnectionProcessor | None = field(default=None, repr=False)
    created_at_ms: float = field(default_factory=_now_ms)

    def slot(self, leg_type: LegType) -> ConnectionProcessor | None:
        return self.caller if leg_type is LegType.CALLER else self.receiver

    def set_slot(self, leg_type: LegType, processor: ConnectionProcessor | None) -> None:
        if leg_type is LegType.CALLER:
            self.caller = processor
        else:
            self.receiver = processor

    def language(self, leg_type: LegType) -> str | None:
        return self.caller_language if leg_type is LegType.CALLER else self.receiver_language

    def set_language(self, leg_type: LegType, language: str | None) -> None:
        if leg_type is LegType.CALLER:
            self.caller_language = language
        else:
            self.receiver_language = language


@dataclass(frozen=True, slots=True)
class RoomInfo:
    """Read-only view of a session for HTTP handlers."""

    room_id: str
    caller_language: str | None
    receiver_language: str | None
    caller_connected: bool
    receiver_connected: bool
    created_at_ms: float


def _is_reachable(processor: ConnectionProcessor | None) -> bool:
    return processor is not None and processor.is_reachable


class SessionRegistry:
    """Registry of active rooms, safe for concurrent use by both legs.

    Every operation holds one lock, so attach/detach/lookup from the two
    legs of a room never interleave.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def create(self, room_id: str, initial_language: str | None) -> Session:
        """Create a room with the creator's language and no legs.

        An existing room with the same id is returned unchanged.
        """
        async with self._lock:
            existing = self._sessions.get(room_id)
            if existing is not None:
                logger.warning(f"Room {room_id} already exists, keeping it")
                return existing

            session = Session(room_id=room_id, caller_language=initial_language)
            self._sessions[room_id] = session
            logger.info(
                f"Created room {room_id} (language: {initial_language}, "
                f"active: {len(self._sessions)})"
            )
            return session

    async def join(self, room_id: str, language: str) -> Session:
        """Record the second participant's language.

        Raises:
            RoomNotFoundError: Unknown room.
            RoomFullError: A participant already joined.
        """
        async with self._lock:
            session = self._sessions.get(room_id)
            if session is None:
                raise RoomNotFoundError(room_id)
            if session.receiver_language:
                raise RoomFullError(room_id)

            session.receiver_language = language
            logger.info(f"Participant joined room {room_id} (language: {language})")
            return session

    async def attach(
        self,
        room_id: str,
        leg_type: LegType,
        processor: ConnectionProcessor,
    ) -> None:
        """Put a leg's processor into its slot (last writer wins).

        Raises:
            RoomNotFoundError: Unknown room.
        """
        async with self._lock:
            session = self._sessions.get(room_id)
            if session is None:
                raise RoomNotFoundError(room_id)

            previous = session.slot(leg_type)
            if previous is not None and previous is not processor:
                logger.info(f"Replacing {leg_type.value} leg in room {room_id}")

            session.set_slot(leg_type, processor)
            if processor.language:
                session.set_language(leg_type, processor.language)

            logger.info(f"Registered {leg_type.value} in room {room_id}")

    async def lookup_peer(self, room_id: str, leg_type: LegType) -> ConnectionProcessor:
        """Processor in the opposite slot.

        Raises:
            PeerNotReadyError: Room unknown or the other leg not attached.
        """
        async with self._lock:
            session = self._sessions.get(room_id)
            if session is None:
                raise PeerNotReadyError(f"Room {room_id} is gone")

            peer = session.slot(leg_type.other)
            if peer is None:
                raise PeerNotReadyError(f"{leg_type.other.value} has not connected to {room_id}")
            return peer

    async def detach(
        self,
        room_id: str,
        leg_type: LegType,
        processor: ConnectionProcessor | None = None,
    ) -> None:
        """Clear a leg's slot; the room itself stays.

        When processor is given, the slot is only cleared if it still
        holds that processor.
        """
        async with self._lock:
            session = self._sessions.get(room_id)
            if session is None:
                return

            current = session.slot(leg_type)
            if processor is not None and current is not processor:
                return

            session.set_slot(leg_type, None)
            logger.debug(f"Detached {leg_type.value} from room {room_id}")

    async def remove(self, room_id: str) -> Session | None:
        """Delete a room entirely.

        Returns the removed session so callers can notify its legs.
        """
        async with self._lock:
            session = self._sessions.pop(room_id, None)
            if session is not None:
                logger.info(f"Removed room {room_id} (active: {len(self._sessions)})")
            return session

    async def remove_if_owner(
        self,
        room_id: str,
        leg_type: LegType,
        processor: ConnectionProcessor,
    ) -> Session | None:
        """Delete a room only while processor still holds its leg's slot.

        A leg replaced by a reconnect gets None and the room stays.
        """
        async with self._lock:
            session = self._sessions.get(room_id)
            if session is None:
                return None
            if session.slot(leg_type) is not processor:
                logger.info(
                    f"Stale {leg_type.value} leg closed in room {room_id}, keeping room"
                )
                return None

            del self._sessions[room_id]
            logger.info(f"Removed room {room_id} (active: {len(self._sessions)})")
            return session

    async def sweep_expired(self, max_age_ms: float) -> list[Session]:
        """Remove rooms created more than max_age_ms ago.

        Returns the removed sessions; their legs may still be connected.
        """
        cutoff = _now_ms() - max_age_ms
        async with self._lock:
            expired = [
                session
                for session in self._sessions.values()
                if session.created_at_ms < cutoff
            ]
            for session in expired:
                del self._sessions[session.room_id]

        for session in expired:
            logger.info(f"Cleaned up expired room {session.room_id}")
        return expired

    async def get(self, room_id: str) -> Session | None:
        """Get the live session record."""
        async with self._lock:
            return self._sessions.get(room_id)

    async def info(self, room_id: str) -> RoomInfo:
        """Languages and leg reachability for a room.

        Raises:
            RoomNotFoundError: Unknown room.
        """
        async with self._lock:
            session = self._sessions.get(room_id)
            if session is None:
                raise RoomNotFoundError(room_id)

            return RoomInfo(
                room_id=session.room_id,
                caller_language=session.caller_language,
                receiver_language=session.receiver_language,
                caller_connected=_is_reachable(session.caller),
                receiver_connected=_is_reachable(session.receiver),
                created_at_ms=session.created_at_ms,
            )

    async def close_all(self) -> list[Session]:
        """Drop every room (for shutdown) and return them."""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            return sessions

    @property
    def active_count(self) -> int:
        """Number of active rooms."""
        return len(self._sessions)
