"""Health check endpoints.

Provides:
- Basic health check (GET /health)
- Detailed health check with relay status (GET /health/detailed)
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.api.dependencies import get_app_settings, get_relay_context
from src.config import Settings
from src.core.context import RelayContext

router = APIRouter()

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response."""

    status: str
    checks: dict[str, str]
    active_rooms: int
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Simple status indicating the API is running.
    """
    return HealthResponse(status="healthy")


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(
    context: RelayContext = Depends(get_relay_context),
    settings: Settings = Depends(get_app_settings),
) -> DetailedHealthResponse:
    """Detailed health check including collaborator configuration.

    Checks (configuration only, no API calls):
    - Deepgram and Groq keys
    - Selected TTS provider

    Returns:
        Status with individual component checks.
    """
    checks: dict[str, str] = {}

    checks["deepgram"] = (
        "configured" if settings.deepgram_api_key.get_secret_value() else "missing"
    )
    checks["groq"] = "configured" if settings.groq_api_key.get_secret_value() else "missing"
    checks["tts"] = settings.resolved_tts_provider
    checks["voice_strategy"] = settings.voice_strategy

    missing = [name for name, value in checks.items() if value == "missing"]
    status = "degraded" if missing else "healthy"

    return DetailedHealthResponse(
        status=status,
        checks=checks,
        active_rooms=context.registry.active_count,
        version=VERSION,
    )
