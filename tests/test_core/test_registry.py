"""Tests for the two-party session registry."""

from __future__ import annotations

import pytest

from src.core.exceptions import PeerNotReadyError, RoomFullError, RoomNotFoundError
from src.core.registry import LegType, SessionRegistry


class StubLeg:
    """Minimal stand-in for a ConnectionProcessor."""

    def __init__(self, language: str | None = None, reachable: bool = True) -> None:
        self.language = language
        self.is_reachable = reachable


class TestLegType:
    """Tests for leg type parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("caller", LegType.CALLER),
            ("CALLER", LegType.CALLER),
            ("receiver", LegType.RECEIVER),
            ("participant", LegType.RECEIVER),
            ("", LegType.RECEIVER),
            (None, LegType.RECEIVER),
        ],
    )
    def test_parse(self, value: str | None, expected: LegType) -> None:
        """Test anything other than caller maps to the receiver slot."""
        assert LegType.parse(value) is expected

    def test_other(self) -> None:
        """Test each leg type's opposite."""
        assert LegType.CALLER.other is LegType.RECEIVER
        assert LegType.RECEIVER.other is LegType.CALLER


class TestSessionRegistry:
    """Tests for SessionRegistry operations."""

    @pytest.mark.asyncio
    async def test_create_sets_caller_language(self) -> None:
        """Test a new room has the creator's language and no legs."""
        registry = SessionRegistry()
        session = await registry.create("r1", "en")

        assert session.caller_language == "en"
        assert session.caller is None and session.receiver is None
        assert registry.active_count == 1

    @pytest.mark.asyncio
    async def test_create_existing_is_noop(self) -> None:
        """Test creating an existing room returns it unchanged."""
        registry = SessionRegistry()
        first = await registry.create("r1", "en")
        second = await registry.create("r1", "fr")

        assert second is first
        assert second.caller_language == "en"

    @pytest.mark.asyncio
    async def test_join(self) -> None:
        """Test joining records the receiver language once."""
        registry = SessionRegistry()
        await registry.create("r1", "en")
        session = await registry.join("r1", "es")
        assert session.receiver_language == "es"

        with pytest.raises(RoomFullError):
            await registry.join("r1", "de")

        with pytest.raises(RoomNotFoundError):
            await registry.join("missing", "de")

    @pytest.mark.asyncio
    async def test_attach_unknown_room(self) -> None:
        """Test attaching to a missing room fails."""
        registry = SessionRegistry()
        with pytest.raises(RoomNotFoundError):
            await registry.attach("missing", LegType.CALLER, StubLeg("en"))  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_slots_are_exclusive(self) -> None:
        """Test each leg type fills only its own slot."""
        registry = SessionRegistry()
        await registry.create("r1", "en")
        caller, receiver = StubLeg("en"), StubLeg("es")

        await registry.attach("r1", LegType.CALLER, caller)  # type: ignore[arg-type]
        await registry.attach("r1", LegType.RECEIVER, receiver)  # type: ignore[arg-type]

        assert await registry.lookup_peer("r1", LegType.CALLER) is receiver
        assert await registry.lookup_peer("r1", LegType.RECEIVER) is caller

        session = await registry.get("r1")
        assert session is not None
        assert session.receiver_language == "es"

    @pytest.mark.asyncio
    async def test_attach_last_writer_wins(self) -> None:
        """Test re-attaching a leg replaces the previous processor."""
        registry = SessionRegistry()
        await registry.create("r1", "en")
        old, new, peer = StubLeg("en"), StubLeg("en"), StubLeg("es")
        await registry.attach("r1", LegType.CALLER, old)  # type: ignore[arg-type]
        await registry.attach("r1", LegType.CALLER, new)  # type: ignore[arg-type]
        await registry.attach("r1", LegType.RECEIVER, peer)  # type: ignore[arg-type]

        assert await registry.lookup_peer("r1", LegType.RECEIVER) is new

    @pytest.mark.asyncio
    async def test_lookup_peer_not_ready(self) -> None:
        """Test lookup fails while the other leg is missing."""
        registry = SessionRegistry()
        await registry.create("r1", "en")
        await registry.attach("r1", LegType.CALLER, StubLeg("en"))  # type: ignore[arg-type]

        with pytest.raises(PeerNotReadyError):
            await registry.lookup_peer("r1", LegType.CALLER)

        with pytest.raises(PeerNotReadyError):
            await registry.lookup_peer("missing", LegType.CALLER)

    @pytest.mark.asyncio
    async def test_detach_keeps_session(self) -> None:
        """Test detaching a leg nulls only its slot."""
        registry = SessionRegistry()
        await registry.create("r1", "en")
        caller, receiver = StubLeg("en"), StubLeg("es")
        await registry.attach("r1", LegType.CALLER, caller)  # type: ignore[arg-type]
        await registry.attach("r1", LegType.RECEIVER, receiver)  # type: ignore[arg-type]

        await registry.detach("r1", LegType.CALLER)

        session = await registry.get("r1")
        assert session is not None
        assert session.caller is None
        assert session.receiver is receiver

    @pytest.mark.asyncio
    async def test_detach_ignores_stale_processor(self) -> None:
        """Test a replaced processor cannot clear its successor's slot."""
        registry = SessionRegistry()
        await registry.create("r1", "en")
        old, new = StubLeg("en"), StubLeg("en")
        await registry.attach("r1", LegType.CALLER, old)  # type: ignore[arg-type]
        await registry.attach("r1", LegType.CALLER, new)  # type: ignore[arg-type]

        await registry.detach("r1", LegType.CALLER, old)  # type: ignore[arg-type]

        session = await registry.get("r1")
        assert session is not None
        assert session.caller is new

    @pytest.mark.asyncio
    async def test_remove(self) -> None:
        """Test removing a room returns it and forgets it."""
        registry = SessionRegistry()
        await registry.create("r1", "en")

        removed = await registry.remove("r1")
        assert removed is not None and removed.room_id == "r1"
        assert await registry.get("r1") is None
        assert await registry.remove("r1") is None

    @pytest.mark.asyncio
    async def test_sweep_expired(self) -> None:
        """Test only rooms older than the max age are swept, legs included."""
        registry = SessionRegistry()
        old = await registry.create("old", "en")
        await registry.create("fresh", "en")
        caller = StubLeg("en")
        await registry.attach("old", LegType.CALLER, caller)  # type: ignore[arg-type]
        old.created_at_ms -= 2 * 60 * 60 * 1000

        expired = await registry.sweep_expired(60 * 60 * 1000)

        assert [session.room_id for session in expired] == ["old"]
        assert expired[0].caller is caller
        assert await registry.get("old") is None
        assert await registry.get("fresh") is not None

    @pytest.mark.asyncio
    async def test_remove_if_owner(self) -> None:
        """Test only the leg currently in the slot can remove the room."""
        registry = SessionRegistry()
        await registry.create("r1", "en")
        old, new = StubLeg("en"), StubLeg("en")
        await registry.attach("r1", LegType.CALLER, old)  # type: ignore[arg-type]
        await registry.attach("r1", LegType.CALLER, new)  # type: ignore[arg-type]

        assert await registry.remove_if_owner("r1", LegType.CALLER, old) is None  # type: ignore[arg-type]
        assert await registry.get("r1") is not None

        removed = await registry.remove_if_owner("r1", LegType.CALLER, new)  # type: ignore[arg-type]
        assert removed is not None and removed.caller is new
        assert await registry.get("r1") is None
        assert await registry.remove_if_owner("r1", LegType.CALLER, new) is None  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_info(self) -> None:
        """Test the room snapshot reports languages and reachability."""
        registry = SessionRegistry()
        await registry.create("r1", "en")
        await registry.join("r1", "hi")
        await registry.attach("r1", LegType.CALLER, StubLeg("en"))  # type: ignore[arg-type]
        await registry.attach("r1", LegType.RECEIVER, StubLeg("hi", reachable=False))  # type: ignore[arg-type]

        info = await registry.info("r1")
        assert info.caller_language == "en"
        assert info.receiver_language == "hi"
        assert info.caller_connected is True
        assert info.receiver_connected is False

        with pytest.raises(RoomNotFoundError):
            await registry.info("missing")

    @pytest.mark.asyncio
    async def test_close_all(self) -> None:
        """Test shutdown drains every room."""
        registry = SessionRegistry()
        await registry.create("r1", "en")
        await registry.create("r2", "fr")

        sessions = await registry.close_all()
        assert {s.room_id for s in sessions} == {"r1", "r2"}
        assert registry.active_count == 0
