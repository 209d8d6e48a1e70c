"""FastAPI application entry point.

Callbridge - live two-party call translation relay.

Run with:
    uvicorn src.main:create_app --factory
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from src.api.routes import health, metrics, plivo_webhook, rooms
from src.api.websocket.media_stream import media_stream_endpoint
from src.config import Settings, get_settings
from src.core.context import RelayContext
from src.core.processor import ProcessorConfig
from src.core.registry import Session, SessionRegistry
from src.core.streamer import OutboundStreamer, StreamerConfig
from src.core.transcripts import TranscriptStore
from src.core.voice_analyzer import VoiceAnalyzer
from src.logging_config import get_logger, setup_logging
from src.observability.metrics import ACTIVE_ROOMS, ROOMS_EXPIRED
from src.services.stt import DeepgramTranscriber
from src.services.translation import GroqTranslator
from src.services.tts import build_synthesizer

logger: Any = get_logger(__name__)

ROOM_EXPIRED_REASON = "Call time limit reached"


def build_relay_context(
    settings: Settings,
    observer: TranscriptStore | None = None,
) -> RelayContext:
    """Wire the production collaborators into a relay context."""
    return RelayContext(
        transcriber=DeepgramTranscriber(settings),
        translator=GroqTranslator(settings),
        synthesizer=build_synthesizer(settings),
        registry=SessionRegistry(),
        analyzer=VoiceAnalyzer(),
        streamer=OutboundStreamer(StreamerConfig.from_settings(settings)),
        processor_config=ProcessorConfig.from_settings(settings),
        observer=observer,
    )


async def end_session(context: RelayContext, session: Session, reason: str) -> None:
    """Hang up every leg still attached to a removed room."""
    for processor in (session.caller, session.receiver):
        if processor is None:
            continue
        await context.streamer.force_disconnect(processor, reason)
        await processor.cleanup()


async def sweep_expired_rooms(context: RelayContext, settings: Settings) -> None:
    """Periodically remove rooms older than the room TTL."""
    while True:
        await asyncio.sleep(settings.room_sweep_interval_seconds)
        expired = await context.registry.sweep_expired(settings.room_ttl_seconds * 1000)
        for session in expired:
            await end_session(context, session, ROOM_EXPIRED_REASON)
        if expired:
            ROOMS_EXPIRED.inc(len(expired))
        ACTIVE_ROOMS.set(context.registry.active_count)


async def prune_transcripts(store: TranscriptStore, settings: Settings) -> None:
    """Periodically drop transcript events past their display window."""
    while True:
        await asyncio.sleep(settings.transcript_prune_interval_seconds)
        store.prune(settings.transcript_max_age_seconds * 1000)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup:
    - Initialize logging
    - Start room expiry and transcript pruning tasks

    Shutdown:
    - Stop background tasks
    - Clean up every connected call leg
    - Close collaborator clients
    """
    settings: Settings = app.state.settings
    context: RelayContext = app.state.relay

    # Startup
    setup_logging(
        level=settings.log_level,
        enable_file=settings.is_production,
    )

    logger.info(
        f"Relay starting (tts: {settings.resolved_tts_provider}, "
        f"voice strategy: {settings.voice_strategy}, environment: {settings.environment})"
    )

    tasks = [
        asyncio.create_task(sweep_expired_rooms(context, settings), name="room-sweep"),
        asyncio.create_task(
            prune_transcripts(app.state.transcripts, settings), name="transcript-prune"
        ),
    ]

    yield

    # Shutdown
    for task in tasks:
        task.cancel()
    for task in tasks:
        with contextlib.suppress(asyncio.CancelledError):
            await task

    for session in await context.registry.close_all():
        for processor in (session.caller, session.receiver):
            if processor is not None:
                await processor.cleanup()

    await context.close()


def create_app(
    settings: Settings | None = None,
    context: RelayContext | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    transcripts = TranscriptStore.from_settings(settings)
    if context is None:
        context = build_relay_context(settings, observer=transcripts)
    elif context.observer is None:
        context.observer = transcripts
    elif isinstance(context.observer, TranscriptStore):
        transcripts = context.observer

    app = FastAPI(
        title="Callbridge API",
        description="Live two-party call translation relay",
        version=health.VERSION,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.relay = context
    app.state.transcripts = transcripts

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # Room management routes
    app.include_router(rooms.router, prefix="/api", tags=["Rooms"])

    # Plivo webhook routes
    app.include_router(plivo_webhook.router, prefix="/api", tags=["Plivo"])

    # Metrics endpoint for Prometheus scraping
    app.include_router(metrics.router, tags=["Observability"])

    # WebSocket endpoint for call leg media streams
    @app.websocket("/ws/media-stream")
    async def media_stream_ws(websocket: WebSocket):
        """WebSocket endpoint for Plivo media streaming."""
        await media_stream_endpoint(websocket, app.state.relay)

    return app
