"""Plivo webhook handlers for call legs.

Handles:
- Answer webhook: Returns XML that connects the leg to the media stream
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from src.api.dependencies import get_app_settings, get_registry
from src.config import Settings
from src.core.registry import LegType, SessionRegistry
from src.logging_config import get_logger
from src.services.telephony.plivo import LegCallInfo, PlivoService

router = APIRouter(prefix="/plivo", tags=["Plivo"])
logger: Any = get_logger(__name__)

MEDIA_STREAM_PATH = "/ws/media-stream"


def get_plivo_service() -> PlivoService:
    """Dependency injection for PlivoService."""
    return PlivoService()


def _websocket_base_url(request: Request, settings: Settings) -> str:
    """Public ws(s) URL of the media stream endpoint."""
    if settings.public_base_url:
        base = settings.public_base_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://") :]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://") :]
        return f"{base}{MEDIA_STREAM_PATH}"

    # Use forwarded headers if behind proxy
    host = request.headers.get("x-forwarded-host") or request.headers.get("host", "localhost:8000")
    proto = request.headers.get("x-forwarded-proto", request.url.scheme)
    scheme = "wss" if proto == "https" else "ws"
    return f"{scheme}://{host}{MEDIA_STREAM_PATH}"


@router.post("/webhook/answer")
async def plivo_answer_webhook(
    request: Request,
    plivo: PlivoService = Depends(get_plivo_service),
    registry: SessionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """Handle a call leg being answered.

    Room, leg type and language come from the answer URL's query string
    or the form body (roomId, legType/userType, language/myLanguage).

    Returns XML that starts a bidirectional µ-law stream to the media
    stream endpoint, or hangs up when the leg cannot be placed.
    """
    form_data = await request.form()
    params = {k: str(v) for k, v in request.query_params.items()}
    params.update({k: str(v) for k, v in form_data.items()})

    call_info = LegCallInfo.from_webhook(params)
    logger.info(
        f"Call answered: {call_info.call_uuid} "
        f"(room: {call_info.room_id}, leg: {call_info.leg_type}, language: {call_info.language})"
    )

    if not call_info.language:
        logger.error(f"Call {call_info.call_uuid} rejected: no language given")
        xml_response = plivo.generate_hangup_xml(reason="Missing call language. Please try again.")
        return Response(content=xml_response, media_type="application/xml")

    if not call_info.room_id or await registry.get(call_info.room_id) is None:
        logger.error(f"Call {call_info.call_uuid} rejected: unknown room {call_info.room_id!r}")
        xml_response = plivo.generate_hangup_xml(reason="This room no longer exists.")
        return Response(content=xml_response, media_type="application/xml")

    websocket_url = plivo.build_stream_url(
        _websocket_base_url(request, settings),
        room_id=call_info.room_id,
        leg_type=LegType.parse(call_info.leg_type).value,
        language=call_info.language,
    )

    xml_response = plivo.generate_stream_xml(websocket_url=websocket_url, bidirectional=True)

    logger.debug(f"Returning stream XML for {call_info.call_uuid}")
    return Response(content=xml_response, media_type="application/xml")
