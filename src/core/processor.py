"""Per-leg connection processor.

Buffers a call leg's inbound µ-law frames, cuts them into segments at
natural pauses (or at a maximum duration), and runs each segment through
decode → voice analysis → transcription → translation → synthesis, then
streams the result to the other leg of the room.

Only one segment per leg is in the pipeline at a time. Frames that arrive
meanwhile keep buffering and are picked up when the pipeline finishes.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import contextlib
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

from src.config import Settings, get_settings
from src.core.exceptions import (
    BufferTooShortError,
    LegValidationError,
    PeerNotReadyError,
    RoomNotFoundError,
)
from src.core.registry import LegType
from src.core.transcripts import TranscriptEvent
from src.core.voice_analyzer import VoiceSelectionStrategy, build_voice_strategy
from src.logging_config import get_logger, preview_text
from src.observability.metrics import PIPELINE_LATENCY, record_segment, record_stage
from src.services.telephony.codec import FRAME_DURATION_MS, mulaw_to_pcm16

if TYPE_CHECKING:
    from src.core.context import RelayContext
    from src.core.streamer import MediaTransport

logger: Any = get_logger(__name__)


class LegState(Enum):
    """Buffering state of a call leg."""

    IDLE = auto()  # Nothing buffered
    BUFFERING = auto()  # Frames buffered, waiting for a flush trigger
    FLUSHING = auto()  # A segment is in the pipeline
    CLOSED = auto()  # Cleaned up, ignores further events


@dataclass
class ProcessorConfig:
    """Segmenting thresholds and voice selection for a call leg."""

    max_buffer_ms: int = 2000
    min_buffer_ms: int = 400
    silence_gap_ms: int = 600
    frame_duration_ms: int = FRAME_DURATION_MS
    min_transcript_chars: int = 2
    voice_strategy: VoiceSelectionStrategy = field(
        default_factory=lambda: build_voice_strategy("adaptive")
    )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ProcessorConfig:
        """Create config from application settings."""
        s = settings or get_settings()
        return cls(
            max_buffer_ms=s.max_buffer_ms,
            min_buffer_ms=s.min_buffer_ms,
            silence_gap_ms=s.silence_gap_ms,
            min_transcript_chars=s.min_transcript_chars,
            voice_strategy=build_voice_strategy(s.voice_strategy),
        )


@dataclass
class ProcessorStats:
    """Counters for one call leg; they only ever increase."""

    frames_received: int = 0
    segments_flushed: int = 0
    transcriptions: int = 0
    translations: int = 0
    audios_sent: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary for logging."""
        return {
            "frames_received": self.frames_received,
            "segments_flushed": self.segments_flushed,
            "transcriptions": self.transcriptions,
            "translations": self.translations,
            "audios_sent": self.audios_sent,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class StartParams:
    """Leg identity carried by a stream start event."""

    room_id: str
    leg_type: LegType
    language: str
    stream_id: str | None


def parse_start(message: Mapping[str, Any], defaults: Mapping[str, str] | None = None) -> StartParams:
    """Read room, leg and language from a start event.

    Custom parameters on the start event win over connection defaults
    (the media stream URL's query string).

    Raises:
        LegValidationError: Room id or language missing.
    """
    start = message.get("start") or {}
    params: dict[str, Any] = dict(defaults or {})
    params.update(start.get("customParameters") or {})

    room_id = params.get("roomId")
    language = params.get("language") or params.get("myLanguage")
    if not room_id:
        raise LegValidationError("start event has no roomId")
    if not language:
        raise LegValidationError(f"start event for room {room_id} has no language")

    stream_id = (
        start.get("streamId")
        or start.get("streamSid")
        or message.get("streamId")
        or message.get("streamSid")
    )
    return StartParams(
        room_id=str(room_id),
        leg_type=LegType.parse(params.get("legType") or params.get("userType")),
        language=str(language),
        stream_id=stream_id,
    )


class ConnectionProcessor:
    """Handles one call leg's media stream.

    Buffering is synchronous: frame append, duration update and the
    flush decision happen without an await in between, so the receive
    loop and the silence timer never see a half-updated buffer.
    """

    def __init__(
        self,
        context: RelayContext,
        transport: MediaTransport | None = None,
        *,
        config: ProcessorConfig | None = None,
        connection_params: Mapping[str, str] | None = None,
    ) -> None:
        self._ctx = context
        self._config = config or context.processor_config
        self._transport = transport
        self._connection_params = dict(connection_params or {})

        # Identity, set by the start event
        self.room_id: str | None = None
        self.leg_type: LegType | None = None
        self._language: str | None = None
        self._stream_id: str | None = None

        # Segment buffer
        self._buffer: list[bytes] = []
        self._accumulated_ms = 0
        self._busy = False
        self._state = LegState.IDLE

        # Background tasks
        self._flush_timer: asyncio.Task[None] | None = None
        self._pipeline_task: asyncio.Task[None] | None = None

        self.stats = ProcessorStats()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def transport(self) -> MediaTransport | None:
        return self._transport

    @property
    def stream_id(self) -> str | None:
        return self._stream_id

    @property
    def language(self) -> str | None:
        return self._language

    @property
    def state(self) -> LegState:
        return self._state

    @property
    def busy(self) -> bool:
        """Whether a segment is in the pipeline."""
        return self._busy

    @property
    def accumulated_ms(self) -> int:
        """Audio currently buffered, in milliseconds."""
        return self._accumulated_ms

    @property
    def buffered_frames(self) -> int:
        return len(self._buffer)

    @property
    def is_registered(self) -> bool:
        """Whether a start event attached this leg to a room."""
        return self.room_id is not None and self.leg_type is not None

    @property
    def is_closed(self) -> bool:
        return self._state is LegState.CLOSED

    @property
    def is_reachable(self) -> bool:
        """Whether audio can still be delivered to this leg."""
        return (
            not self.is_closed
            and self._transport is not None
            and self._transport.is_open
        )

    @property
    def speaker_id(self) -> str | None:
        """Voice profile cache key for this leg."""
        if not self.is_registered:
            return None
        return f"{self.room_id}_{self.leg_type.value}"  # type: ignore[union-attr]

    @property
    def leg_type_label(self) -> str:
        """Human-readable leg name for logs."""
        if not self.is_registered:
            return "unregistered leg"
        return f"{self.leg_type.value} in room {self.room_id}"  # type: ignore[union-attr]

    # =========================================================================
    # Event dispatch
    # =========================================================================

    async def handle_event(self, message: Mapping[str, Any]) -> None:
        """Dispatch one inbound stream event."""
        event = message.get("event")

        if event == "start":
            await self.handle_start(message)
        elif event == "media":
            self.handle_media(message)
        elif event == "stop":
            logger.info(f"Stream stopped for {self.leg_type_label}")
            await self.cleanup()
        elif event == "mark":
            logger.debug(f"Playback mark for {self.leg_type_label}: {message.get('mark')}")
        else:
            logger.debug(f"Ignoring unknown event: {event}")

    async def handle_start(self, message: Mapping[str, Any]) -> bool:
        """Register this leg in its room.

        Returns True when the leg was attached. Invalid or unknown rooms
        are logged and leave the leg unregistered.
        """
        if self.is_closed:
            return False
        if self.is_registered:
            logger.warning(f"Duplicate start event for {self.leg_type_label}, ignoring")
            return False

        try:
            params = parse_start(message, self._connection_params)
        except LegValidationError as e:
            logger.error(f"Invalid stream start: {e}")
            return False

        self.room_id = params.room_id
        self.leg_type = params.leg_type
        self._language = params.language
        self._stream_id = params.stream_id

        try:
            await self._ctx.registry.attach(params.room_id, params.leg_type, self)
        except RoomNotFoundError as e:
            logger.error(f"Cannot register {params.leg_type.value}: {e}")
            self.room_id = None
            self.leg_type = None
            return False

        logger.info(
            f"Stream started for {self.leg_type_label} "
            f"(language: {self._language}, stream: {self._stream_id})"
        )
        return True

    def handle_media(self, message: Mapping[str, Any]) -> None:
        """Decode a media event's payload and buffer it."""
        if not self.is_registered or self.is_closed:
            return

        payload = (message.get("media") or {}).get("payload")
        if not payload:
            return

        try:
            frame = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Invalid media payload from {self.leg_type_label}: {e}")
            return

        self.add_frame(frame)

    # =========================================================================
    # Buffering
    # =========================================================================

    def add_frame(self, frame: bytes) -> None:
        """Buffer one inbound frame and decide whether to flush."""
        if self.is_closed or not frame:
            return

        self._buffer.append(frame)
        self._accumulated_ms += self._config.frame_duration_ms
        self.stats.frames_received += 1
        self._cancel_timer()

        if self._state is LegState.IDLE:
            self._state = LegState.BUFFERING

        if self._accumulated_ms >= self._config.max_buffer_ms and not self._busy:
            self.flush()
        else:
            self._arm_timer()

    def flush(self) -> asyncio.Task[None] | None:
        """Hand the buffered segment to the pipeline.

        Returns the pipeline task, or None when nothing was started
        (busy, empty, or too short to be speech).
        """
        self._cancel_timer()
        if self._busy or not self._buffer or self.is_closed:
            return None

        self._busy = True
        try:
            segment, duration_ms = self._take_segment()
        except BufferTooShortError as e:
            self._busy = False
            self._state = LegState.IDLE
            record_segment("too_short")
            logger.debug(f"Discarding segment for {self.leg_type_label}: {e}")
            return None

        self._state = LegState.FLUSHING
        self._pipeline_task = asyncio.create_task(
            self._process_segment(segment, duration_ms),
            name=f"pipeline-{self.speaker_id}",
        )
        return self._pipeline_task

    async def process_buffer(self) -> bool:
        """Flush now and wait for the pipeline to finish.

        Returns False when no segment was started.
        """
        task = self.flush()
        if task is None:
            return False
        await task
        return True

    async def wait_idle(self) -> None:
        """Wait until no segment is in the pipeline."""
        while self._pipeline_task is not None and not self._pipeline_task.done():
            await asyncio.wait({self._pipeline_task})

    def _take_segment(self) -> tuple[bytes, int]:
        """Swap out the buffer and reset the duration."""
        frames, self._buffer = self._buffer, []
        duration_ms, self._accumulated_ms = self._accumulated_ms, 0

        if duration_ms < self._config.min_buffer_ms:
            raise BufferTooShortError(
                f"{duration_ms}ms is below the {self._config.min_buffer_ms}ms minimum"
            )
        return b"".join(frames), duration_ms

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._flush_timer = asyncio.create_task(
            self._silence_timer(),
            name=f"silence-{self.speaker_id}",
        )

    def _cancel_timer(self) -> None:
        timer, self._flush_timer = self._flush_timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    async def _silence_timer(self) -> None:
        await asyncio.sleep(self._config.silence_gap_ms / 1000)
        self._flush_timer = None

        if self._accumulated_ms >= self._config.min_buffer_ms and not self._busy:
            logger.debug(f"Silence detected for {self.leg_type_label}, flushing")
            self.flush()

    def _after_pipeline(self) -> None:
        """Pick up frames that arrived while the pipeline was busy."""
        if not self._buffer or self.is_closed:
            return

        if self._accumulated_ms >= self._config.max_buffer_ms:
            self.flush()
        elif self._flush_timer is None:
            self._arm_timer()

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _process_segment(self, segment: bytes, duration_ms: int) -> None:
        start_time = time.perf_counter()
        outcome = "cancelled"
        try:
            outcome = await self._run_pipeline(segment)
        finally:
            self._busy = False
            if self._pipeline_task is asyncio.current_task():
                self._pipeline_task = None
            if not self.is_closed:
                self._state = LegState.BUFFERING if self._buffer else LegState.IDLE

            self.stats.segments_flushed += 1
            record_segment(outcome, duration_ms)
            if outcome == "translated":
                PIPELINE_LATENCY.observe(time.perf_counter() - start_time)

        self._after_pipeline()

    async def _run_pipeline(self, segment: bytes) -> str:
        """Run one segment through every stage; returns the outcome label."""
        assert self.room_id is not None and self.leg_type is not None
        language = self._language or ""

        pcm = mulaw_to_pcm16(segment)

        stage_start = time.perf_counter()
        analyzed = await asyncio.to_thread(self._ctx.analyzer.analyze, pcm, self.speaker_id)
        record_stage("analyze", _elapsed_ms(stage_start))
        profile = self._config.voice_strategy.select(analyzed)

        # Transcribe
        stage_start = time.perf_counter()
        try:
            transcript = await self._ctx.transcriber.transcribe(pcm, language)
        except Exception as e:
            return self._stage_failed("transcribe", stage_start, e)
        record_stage("transcribe", _elapsed_ms(stage_start))

        transcript = (transcript or "").strip()
        if len(transcript) < self._config.min_transcript_chars:
            logger.debug(f"No speech in segment from {self.leg_type_label}")
            return "no_speech"

        self.stats.transcriptions += 1
        logger.debug(f"[{self.leg_type.value}] Spoke: {preview_text(transcript)}")
        self._notify(
            TranscriptEvent(
                room_id=self.room_id,
                leg_type=self.leg_type.value,
                original_text=transcript,
                translated_text=transcript,
                from_language=language,
                to_language=language,
                is_incoming=False,
            )
        )

        # Peer
        try:
            peer = await self._ctx.registry.lookup_peer(self.room_id, self.leg_type)
        except PeerNotReadyError as e:
            logger.info(f"Other leg not ready, dropping segment: {e}")
            return "no_peer"
        if not peer.language:
            logger.info(f"Other leg of room {self.room_id} has no language yet")
            return "no_peer"
        peer_language = peer.language

        # Translate
        stage_start = time.perf_counter()
        try:
            translated = await self._ctx.translator.translate(transcript, language, peer_language)
        except Exception as e:
            return self._stage_failed("translate", stage_start, e)
        record_stage("translate", _elapsed_ms(stage_start))

        self.stats.translations += 1
        logger.debug(f"Translated {language} → {peer_language}: {preview_text(translated)}")
        self._notify(
            TranscriptEvent(
                room_id=self.room_id,
                leg_type=self.leg_type.other.value,
                original_text=transcript,
                translated_text=translated,
                from_language=language,
                to_language=peer_language,
                is_incoming=True,
            )
        )

        # Synthesize
        stage_start = time.perf_counter()
        try:
            audio = await self._ctx.synthesizer.synthesize(translated, peer_language, profile)
        except Exception as e:
            return self._stage_failed("synthesize", stage_start, e)
        if not audio:
            return self._stage_failed("synthesize", stage_start, "no audio returned")
        record_stage("synthesize", _elapsed_ms(stage_start))

        # Send
        stage_start = time.perf_counter()
        sent = await self._ctx.streamer.send(audio, peer)
        if not sent:
            if peer.is_reachable:
                return self._stage_failed("send", stage_start, "outbound stream failed")
            logger.info(f"Other leg of room {self.room_id} went away before playback")
            return "no_peer"
        record_stage("send", _elapsed_ms(stage_start))

        self.stats.audios_sent += 1
        return "translated"

    def _stage_failed(self, stage: str, stage_start: float, error: Exception | str) -> str:
        record_stage(stage, _elapsed_ms(stage_start), failed=True)
        self.stats.errors += 1
        logger.error(f"{stage.capitalize()} failed for {self.leg_type_label}: {error}")
        return "failed"

    def _notify(self, event: TranscriptEvent) -> None:
        observer = self._ctx.observer
        if observer is None:
            return
        try:
            observer.on_transcript(event)
        except Exception as e:
            logger.warning(f"Transcript observer failed: {e}")

    # =========================================================================
    # Teardown
    # =========================================================================

    async def handle_disconnect(self, reason: str = "Other user disconnected") -> None:
        """Transport closed: drop the room, tell the other leg, clean up.

        Only the first leg to go finds the room, so the other leg is
        told exactly once. A leg already replaced by a reconnect only
        cleans itself up.
        """
        if self.is_registered:
            session = await self._ctx.registry.remove_if_owner(
                self.room_id,  # type: ignore[arg-type]
                self.leg_type,  # type: ignore[arg-type]
                self,
            )
            if session is not None:
                peer = session.slot(self.leg_type.other)  # type: ignore[union-attr]
                if peer is not None and peer is not self:
                    await self._ctx.streamer.force_disconnect(peer, reason)

        await self.cleanup()

    async def cleanup(self) -> None:
        """Stop timers and the pipeline, leave the room slot.

        Safe to call more than once. The room itself is kept.
        """
        if self.is_closed:
            return
        self._state = LegState.CLOSED

        self._cancel_timer()
        task, self._pipeline_task = self._pipeline_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._buffer.clear()
        self._accumulated_ms = 0
        self._busy = False

        if self.is_registered:
            await self._ctx.registry.detach(self.room_id, self.leg_type, self)  # type: ignore[arg-type]
            self._ctx.analyzer.evict(self.speaker_id)  # type: ignore[arg-type]

        logger.info(f"Cleaned up {self.leg_type_label}: {self.stats.to_dict()}")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
