"""Plivo telephony helpers.

Handles:
- XML response generation that connects a call leg to the media stream
- Parsing of the answer webhook parameters

Audio conversion lives in src.services.telephony.codec.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal
from urllib.parse import urlencode
from xml.etree.ElementTree import Element, SubElement, tostring

from src.logging_config import get_logger

logger: Any = get_logger(__name__)

MULAW_CONTENT_TYPE = "audio/x-mulaw;rate=8000"


@dataclass(frozen=True, slots=True)
class LegCallInfo:
    """Call leg parameters received on the answer webhook."""

    call_uuid: str
    room_id: str
    leg_type: str
    language: str | None = None
    direction: Literal["inbound", "outbound"] = "inbound"

    @classmethod
    def from_webhook(cls, params: dict[str, str]) -> LegCallInfo:
        """Create from Plivo webhook form data merged with query parameters."""
        return cls(
            call_uuid=params.get("CallUUID", ""),
            room_id=params.get("roomId", ""),
            leg_type=params.get("legType") or params.get("userType", ""),
            language=params.get("language") or params.get("myLanguage") or None,
            direction=params.get("Direction", "inbound"),  # type: ignore[arg-type]
        )


def _render(response: Element) -> str:
    xml_str = tostring(response, encoding="unicode")
    return f'<?xml version="1.0" encoding="UTF-8"?>{xml_str}'


class PlivoService:
    """Generates Plivo XML documents for call routing."""

    def build_stream_url(
        self,
        base_ws_url: str,
        *,
        room_id: str,
        leg_type: str,
        language: str,
    ) -> str:
        """Media stream URL carrying the leg parameters in its query string."""
        query = urlencode({"roomId": room_id, "legType": leg_type, "language": language})
        return f"{base_ws_url}?{query}"

    def generate_stream_xml(
        self,
        websocket_url: str,
        *,
        bidirectional: bool = True,
        audio_track: str = "inbound",
        content_type: str = MULAW_CONTENT_TYPE,
        stream_timeout: int = 3600,
    ) -> str:
        """Generate Plivo XML for WebSocket audio streaming.

        Args:
            websocket_url: WebSocket URL for audio stream
            bidirectional: Enable bidirectional audio
            audio_track: Which audio track to stream (inbound/outbound/both)
            content_type: Audio content type
            stream_timeout: Stream timeout in seconds

        Returns:
            XML string for Plivo response
        """
        response = Element("Response")

        stream = SubElement(response, "Stream")
        stream.set("bidirectional", str(bidirectional).lower())
        stream.set("keepCallAlive", "true")
        stream.set("audioTrack", audio_track)
        stream.set("contentType", content_type)
        stream.set("streamTimeout", str(stream_timeout))
        stream.text = websocket_url

        return _render(response)

    def generate_hangup_xml(self, reason: str = "") -> str:
        """Generate Plivo XML to hangup call."""
        response = Element("Response")

        if reason:
            speak = SubElement(response, "Speak")
            speak.text = reason

        SubElement(response, "Hangup")

        return _render(response)
