"""WebSocket handlers for real-time audio streaming.

This module provides the WebSocket endpoint for Plivo media streams:
- media_stream_endpoint: One handler per call leg
- WebSocketTransport: Serialized sends to a leg's socket
"""

from src.api.websocket.media_stream import (
    PEER_DISCONNECTED_REASON,
    WebSocketTransport,
    media_stream_endpoint,
)

__all__ = [
    "media_stream_endpoint",
    "WebSocketTransport",
    "PEER_DISCONNECTED_REASON",
]
