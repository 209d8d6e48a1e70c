"""Tests for application wiring and background housekeeping."""

from __future__ import annotations

import asyncio
import contextlib

import pytest

from src.core.context import RelayContext
from src.core.processor import ConnectionProcessor
from src.core.transcripts import TranscriptEvent, TranscriptStore
from src.main import ROOM_EXPIRED_REASON, create_app, prune_transcripts, sweep_expired_rooms
from tests.conftest import RecordingTransport


async def run_briefly(coro) -> None:
    task = asyncio.create_task(coro)
    await asyncio.sleep(0.05)
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


class TestHousekeeping:
    """Tests for the periodic background tasks."""

    @pytest.mark.asyncio
    async def test_sweep_removes_expired_rooms(self, relay_context: RelayContext, settings_factory) -> None:
        """Test rooms past the TTL are swept."""
        settings = settings_factory(room_sweep_interval_seconds=0, room_ttl_seconds=60)
        old = await relay_context.registry.create("old", "en")
        await relay_context.registry.create("fresh", "en")
        old.created_at_ms -= 120_000

        await run_briefly(sweep_expired_rooms(relay_context, settings))

        assert await relay_context.registry.get("old") is None
        assert await relay_context.registry.get("fresh") is not None

    @pytest.mark.asyncio
    async def test_sweep_hangs_up_connected_legs(self, relay_context: RelayContext, settings_factory) -> None:
        """Test legs of an expired room are told to hang up and cleaned up."""
        settings = settings_factory(room_sweep_interval_seconds=0, room_ttl_seconds=60)
        session = await relay_context.registry.create("room1", "en")
        legs = []
        for leg_type, language in (("caller", "en"), ("receiver", "es")):
            transport = RecordingTransport()
            processor = ConnectionProcessor(relay_context, transport)
            assert await processor.handle_start(
                {
                    "event": "start",
                    "start": {
                        "streamId": f"stream-{leg_type}",
                        "customParameters": {
                            "roomId": "room1",
                            "legType": leg_type,
                            "language": language,
                        },
                    },
                }
            )
            legs.append((processor, transport))
        session.created_at_ms -= 120_000

        await run_briefly(sweep_expired_rooms(relay_context, settings))

        assert await relay_context.registry.get("room1") is None
        for processor, transport in legs:
            assert processor.is_closed
            assert transport.events("force-disconnect") == [
                {"event": "force-disconnect", "reason": ROOM_EXPIRED_REASON}
            ]

    @pytest.mark.asyncio
    async def test_prune_drops_old_transcripts(self, settings_factory) -> None:
        """Test transcript events past the max age are pruned."""
        settings = settings_factory(transcript_prune_interval_seconds=0, transcript_max_age_seconds=60)
        store = TranscriptStore()
        store.on_transcript(
            TranscriptEvent(
                room_id="r1",
                leg_type="caller",
                original_text="hi",
                translated_text="hi",
                from_language="en",
                to_language="en",
                is_incoming=False,
                timestamp_ms=1,
            )
        )

        await run_briefly(prune_transcripts(store, settings))

        assert len(store) == 0


class TestCreateApp:
    """Tests for create_app wiring."""

    def test_transcript_store_becomes_observer(self, settings, relay_context: RelayContext) -> None:
        """Test the polling store and the pipeline observer are the same object."""
        relay_context.observer = None
        app = create_app(settings=settings, context=relay_context)

        assert app.state.relay is relay_context
        assert relay_context.observer is app.state.transcripts

    def test_existing_store_is_reused(self, settings, relay_context: RelayContext) -> None:
        """Test a context that already has a store keeps it for polling."""
        store = relay_context.observer
        app = create_app(settings=settings, context=relay_context)

        assert app.state.transcripts is store

    def test_routes_registered(self, settings, relay_context: RelayContext) -> None:
        """Test every public route is mounted."""
        paths = {route.path for route in create_app(settings=settings, context=relay_context).routes}

        assert {
            "/health",
            "/health/detailed",
            "/metrics",
            "/api/rooms",
            "/api/rooms/{room_id}/join",
            "/api/rooms/{room_id}/leave",
            "/api/rooms/{room_id}",
            "/api/rooms/{room_id}/translations",
            "/api/plivo/webhook/answer",
            "/ws/media-stream",
        } <= paths
