"""Observability module for metrics."""

from src.observability.metrics import (
    ACTIVE_LEGS,
    ACTIVE_ROOMS,
    AUDIO_FRAMES_SENT,
    PIPELINE_LATENCY,
    SEGMENTS_TOTAL,
    STAGE_ERRORS,
    STAGE_LATENCY,
    record_segment,
    record_stage,
)

__all__ = [
    "SEGMENTS_TOTAL",
    "STAGE_ERRORS",
    "STAGE_LATENCY",
    "PIPELINE_LATENCY",
    "AUDIO_FRAMES_SENT",
    "ACTIVE_LEGS",
    "ACTIVE_ROOMS",
    "record_segment",
    "record_stage",
]
