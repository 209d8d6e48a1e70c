"""Outbound audio streaming to a call leg.

Synthesized µ-law audio is cut into telephony-sized frames and written to
the destination leg's transport, with short pauses so the media socket
is not flooded, followed by a completion mark.
"""

from __future__ import annotations

import asyncio
import base64
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from src.config import Settings, get_settings
from src.core.exceptions import TransportUnavailableError
from src.logging_config import get_logger
from src.observability.metrics import AUDIO_FRAMES_SENT, FORCE_DISCONNECTS
from src.services.telephony.codec import MULAW_FRAME_BYTES

if TYPE_CHECKING:
    from src.core.processor import ConnectionProcessor

logger: Any = get_logger(__name__)


class MediaTransport(Protocol):
    """Protocol for the socket a call leg's media flows over.

    send_json may be called from another leg's pipeline, so it must not
    depend on the owning leg's receive loop.
    """

    @property
    def is_open(self) -> bool:
        """Whether messages can still be sent."""
        ...

    async def send_json(self, message: dict[str, Any]) -> None:
        """Send one JSON message."""
        ...


@dataclass
class StreamerConfig:
    """Outbound framing and pacing."""

    frame_bytes: int = MULAW_FRAME_BYTES
    pace_every: int = 10
    pace_delay_ms: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> StreamerConfig:
        """Create config from application settings."""
        s = settings or get_settings()
        return cls(
            frame_bytes=s.outbound_frame_bytes,
            pace_every=s.outbound_pace_every,
            pace_delay_ms=s.outbound_pace_delay_ms,
        )


def open_transport(destination: ConnectionProcessor | None) -> MediaTransport:
    """The destination leg's transport, if messages can still reach it.

    Raises:
        TransportUnavailableError: No destination or transport, or the leg
            is no longer reachable (stopped, cleaned up or socket closed)
    """
    if destination is None or destination.transport is None:
        raise TransportUnavailableError("destination leg has no transport")
    if not destination.is_reachable:
        raise TransportUnavailableError(f"{destination.leg_type_label} is not reachable")
    return destination.transport


def new_mark_name() -> str:
    """Unique completion marker for one utterance."""
    return f"audio_complete_{uuid.uuid4().hex[:12]}"


class OutboundStreamer:
    """Paces synthesized audio onto a destination leg's transport."""

    def __init__(self, config: StreamerConfig | None = None) -> None:
        self._config = config or StreamerConfig()

    @property
    def config(self) -> StreamerConfig:
        return self._config

    def frame_count(self, payload_size: int) -> int:
        """Number of media frames a payload is split into."""
        return -(-payload_size // self._config.frame_bytes)

    async def send(self, audio: bytes, destination: ConnectionProcessor | None) -> bool:
        """Stream a complete utterance to the destination leg.

        Returns True when every frame and the completion mark were sent.
        A missing or closed destination is a silent no-op.
        """
        if not audio:
            return False

        try:
            transport = open_transport(destination)
        except TransportUnavailableError as e:
            logger.debug(f"Dropping synthesized audio: {e}")
            return False

        frame_bytes = self._config.frame_bytes
        stream_id = destination.stream_id  # type: ignore[union-attr]
        frames_sent = 0

        try:
            for offset in range(0, len(audio), frame_bytes):
                frame = audio[offset : offset + frame_bytes]
                await transport.send_json(
                    {
                        "event": "media",
                        "streamId": stream_id,
                        "media": {"payload": base64.b64encode(frame).decode("ascii")},
                    }
                )
                frames_sent += 1

                # The media socket has no flow control; pause between runs
                if self._config.pace_every and frames_sent % self._config.pace_every == 0:
                    await asyncio.sleep(self._config.pace_delay_ms / 1000)

            await transport.send_json(
                {
                    "event": "mark",
                    "streamId": stream_id,
                    "mark": {"name": new_mark_name()},
                }
            )
        except Exception as e:
            logger.error(f"Failed to send audio after {frames_sent} frames: {e}")
            return False
        finally:
            AUDIO_FRAMES_SENT.inc(frames_sent)

        logger.debug(f"Sent {frames_sent} audio frames to {destination.leg_type_label}")  # type: ignore[union-attr]
        return True

    async def force_disconnect(self, destination: ConnectionProcessor | None, reason: str) -> bool:
        """Tell a leg its room is gone so the client hangs up."""
        try:
            transport = open_transport(destination)
        except TransportUnavailableError:
            return False

        try:
            await transport.send_json({"event": "force-disconnect", "reason": reason})
        except Exception as e:
            logger.warning(f"Could not send force-disconnect: {e}")
            return False

        FORCE_DISCONNECTS.inc()
        logger.info(f"Sent force-disconnect to {destination.leg_type_label}: {reason}")  # type: ignore[union-attr]
        return True
