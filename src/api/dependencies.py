"""FastAPI dependencies for the relay state built in create_app."""

from __future__ import annotations

from fastapi import Request

from src.config import Settings
from src.core.context import RelayContext
from src.core.registry import SessionRegistry
from src.core.transcripts import TranscriptStore


def get_relay_context(request: Request) -> RelayContext:
    """Relay context stored on the application."""
    return request.app.state.relay


def get_registry(request: Request) -> SessionRegistry:
    return get_relay_context(request).registry


def get_transcript_store(request: Request) -> TranscriptStore:
    return request.app.state.transcripts


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings
