"""Room management endpoints.

Handles:
- Room creation by the first participant
- Joining by the second participant
- Leaving (tears the room down and hangs up the other leg)
- Room status and recent transcript polling for the call UI
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.api.dependencies import (
    get_app_settings,
    get_registry,
    get_relay_context,
    get_transcript_store,
)
from src.config import Settings
from src.core.context import RelayContext
from src.core.exceptions import RoomFullError, RoomNotFoundError
from src.core.registry import LegType, SessionRegistry
from src.core.transcripts import TranscriptStore
from src.logging_config import get_logger
from src.observability.metrics import ACTIVE_ROOMS

router = APIRouter(prefix="/rooms", tags=["Rooms"])
logger: Any = get_logger(__name__)

LEFT_ROOM_REASON = "Other participant left the room"


class CamelModel(BaseModel):
    """Request/response model using camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateRoomRequest(CamelModel):
    creator_language: str = Field(min_length=1)


class CreateRoomResponse(CamelModel):
    room_id: str
    join_url: str


class JoinRoomRequest(CamelModel):
    participant_language: str = Field(min_length=1)


class JoinRoomResponse(CamelModel):
    success: bool
    creator_language: str | None


class LeaveRoomRequest(CamelModel):
    leg_type: str = LegType.CALLER.value


class LeaveRoomResponse(CamelModel):
    success: bool


class RoomInfoResponse(CamelModel):
    room_id: str
    creator_language: str | None
    participant_language: str | None
    caller_connected: bool
    receiver_connected: bool


class TranscriptResponse(CamelModel):
    translations: list[dict[str, Any]]
    count: int


def new_room_id() -> str:
    """Short opaque room id."""
    return uuid.uuid4().hex[:8]


def _base_url(request: Request, settings: Settings) -> str:
    """Public URL of this server, honoring proxy headers."""
    if settings.public_base_url:
        return settings.public_base_url.rstrip("/")
    host = request.headers.get("x-forwarded-host") or request.headers.get("host", "localhost:8000")
    proto = request.headers.get("x-forwarded-proto", request.url.scheme)
    return f"{proto}://{host}"


@router.post("", response_model=CreateRoomResponse)
async def create_room(
    body: CreateRoomRequest,
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_app_settings),
) -> CreateRoomResponse:
    """Create a room for the calling participant."""
    room_id = new_room_id()
    await registry.create(room_id, body.creator_language)
    ACTIVE_ROOMS.set(registry.active_count)

    join_url = f"{_base_url(request, settings)}/join?room={room_id}"
    logger.info(f"Room created: {room_id} ({body.creator_language})")
    return CreateRoomResponse(room_id=room_id, join_url=join_url)


@router.post("/{room_id}/join", response_model=JoinRoomResponse)
async def join_room(
    room_id: str,
    body: JoinRoomRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> JoinRoomResponse:
    """Join an existing room as the second participant."""
    try:
        session = await registry.join(room_id, body.participant_language)
    except RoomNotFoundError as e:
        raise HTTPException(status_code=404, detail="Room not found") from e
    except RoomFullError as e:
        raise HTTPException(status_code=409, detail="Room is full (2 participants max)") from e

    return JoinRoomResponse(success=True, creator_language=session.caller_language)


@router.post("/{room_id}/leave", response_model=LeaveRoomResponse)
async def leave_room(
    room_id: str,
    body: LeaveRoomRequest,
    context: RelayContext = Depends(get_relay_context),
) -> LeaveRoomResponse:
    """Leave a room; the other participant is disconnected.

    Leaving an unknown room succeeds so clients can retry freely.
    """
    session = await context.registry.remove(room_id)
    ACTIVE_ROOMS.set(context.registry.active_count)
    if session is None:
        return LeaveRoomResponse(success=True)

    leg_type = LegType.parse(body.leg_type)
    logger.info(f"{leg_type.value} leaving room {room_id}")

    other = session.slot(leg_type.other)
    await context.streamer.force_disconnect(other, LEFT_ROOM_REASON)
    return LeaveRoomResponse(success=True)


@router.get("/{room_id}", response_model=RoomInfoResponse)
async def room_info(
    room_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> RoomInfoResponse:
    """Languages and connection status of a room."""
    try:
        info = await registry.info(room_id)
    except RoomNotFoundError as e:
        raise HTTPException(status_code=404, detail="Room not found") from e

    return RoomInfoResponse(
        room_id=info.room_id,
        creator_language=info.caller_language,
        participant_language=info.receiver_language,
        caller_connected=info.caller_connected,
        receiver_connected=info.receiver_connected,
    )


@router.get("/{room_id}/translations", response_model=TranscriptResponse)
async def recent_translations(
    room_id: str,
    leg_type: str = Query(alias="legType"),
    since: int = Query(default=0, ge=0),
    store: TranscriptStore = Depends(get_transcript_store),
) -> TranscriptResponse:
    """Transcript events for a leg newer than `since` (epoch milliseconds)."""
    events = store.since(room_id, LegType.parse(leg_type).value, since)
    if events:
        logger.debug(f"Sending {len(events)} transcript events to {leg_type} in {room_id}")

    return TranscriptResponse(
        translations=[event.to_dict() for event in events],
        count=len(events),
    )
