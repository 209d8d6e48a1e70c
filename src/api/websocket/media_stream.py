"""WebSocket handler for Plivo bidirectional media streams.

Handles the Plivo WebSocket protocol for one call leg:
- Receives start/media/stop/mark events and feeds the leg's processor
- Sends translated audio from the other leg back to this caller
- Propagates a dropped connection to the other leg of the room
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from src.core.context import RelayContext
from src.core.processor import ConnectionProcessor
from src.logging_config import get_logger
from src.observability.metrics import ACTIVE_LEGS

logger: Any = get_logger(__name__)

PEER_DISCONNECTED_REASON = "Other user disconnected"


class WebSocketTransport:
    """Sends JSON messages to one call leg's WebSocket.

    The other leg's pipeline writes here too, so sends are serialized
    with a lock to keep media frames from interleaving.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._send_lock = asyncio.Lock()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send_json(self, message: dict[str, Any]) -> None:
        async with self._send_lock:
            await self._websocket.send_json(message)

    def mark_closed(self) -> None:
        self._closed = True


async def media_stream_endpoint(websocket: WebSocket, context: RelayContext) -> None:
    """Handle one call leg's media stream WebSocket connection.

    Protocol:
    - Receives JSON messages with events: start, media, stop, mark
    - Sends JSON messages with events: media, mark, force-disconnect

    Room, leg type and language may arrive on the start event's custom
    parameters or in the connection's query string.
    """
    await websocket.accept()

    transport = WebSocketTransport(websocket)
    processor = ConnectionProcessor(
        context,
        transport,
        connection_params=dict(websocket.query_params),
    )
    ACTIVE_LEGS.inc()
    logger.info(f"Media stream connected (query: {dict(websocket.query_params)})")

    try:
        while True:
            try:
                data = await websocket.receive_text()
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from {processor.leg_type_label}")
                continue

            if not isinstance(message, dict):
                logger.warning(f"Ignoring non-object message from {processor.leg_type_label}")
                continue

            await processor.handle_event(message)

    except WebSocketDisconnect:
        logger.info(f"Media stream disconnected for {processor.leg_type_label}")

    except Exception as e:
        logger.error(f"Media stream error for {processor.leg_type_label}: {e}")

    finally:
        transport.mark_closed()
        ACTIVE_LEGS.dec()
        await processor.handle_disconnect(PEER_DISCONNECTED_REASON)
