"""Prometheus metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from src.api.dependencies import get_registry
from src.core.registry import SessionRegistry
from src.observability.metrics import ACTIVE_ROOMS, get_content_type, get_metrics

router = APIRouter()


@router.get("/metrics")
async def metrics(registry: SessionRegistry = Depends(get_registry)) -> Response:
    """Prometheus metrics endpoint.

    The active room gauge is refreshed from the registry on every scrape.

    Returns:
        Response with metrics in Prometheus exposition format.
    """
    ACTIVE_ROOMS.set(registry.active_count)
    return Response(
        content=get_metrics(),
        media_type=get_content_type(),
    )
