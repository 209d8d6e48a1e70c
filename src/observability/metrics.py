"""Prometheus metrics for the call translation relay.

Provides metrics for monitoring segment flow, pipeline latency, and
system health.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

# =============================================================================
# Counters
# =============================================================================

SEGMENTS_TOTAL = Counter(
    "relay_segments_total",
    "Buffered audio segments by outcome",
    ["outcome"],  # translated, too_short, no_speech, no_peer, failed, cancelled
)

STAGE_ERRORS = Counter(
    "relay_stage_errors_total",
    "Pipeline stage failures",
    ["stage"],  # decode, analyze, transcribe, translate, synthesize, send
)

AUDIO_FRAMES_SENT = Counter(
    "relay_audio_frames_sent_total",
    "Outbound media frames written to call legs",
)

FORCE_DISCONNECTS = Counter(
    "relay_force_disconnects_total",
    "force-disconnect messages sent after a room was torn down",
)

ROOMS_EXPIRED = Counter(
    "relay_rooms_expired_total",
    "Rooms removed by the expiry sweep",
)

# =============================================================================
# Gauges
# =============================================================================

ACTIVE_LEGS = Gauge(
    "relay_active_legs",
    "Currently connected media streams",
)

ACTIVE_ROOMS = Gauge(
    "relay_active_rooms",
    "Rooms currently in the registry",
)

# =============================================================================
# Histograms
# =============================================================================

SEGMENT_DURATION = Histogram(
    "relay_segment_duration_seconds",
    "Duration of flushed audio segments",
    buckets=[0.2, 0.4, 0.6, 0.8, 1.0, 1.5, 2.0, 3.0],
)

STAGE_LATENCY = Histogram(
    "relay_stage_latency_seconds",
    "Latency of each pipeline stage",
    ["stage"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0],
)

PIPELINE_LATENCY = Histogram(
    "relay_pipeline_latency_seconds",
    "Flush to last outbound frame",
    buckets=[0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0, 8.0],
)

# =============================================================================
# Helper Functions
# =============================================================================


def record_segment(outcome: str, duration_ms: float | None = None) -> None:
    """Record a flushed segment.

    Args:
        outcome: What happened to the segment
        duration_ms: Segment audio duration in milliseconds
    """
    SEGMENTS_TOTAL.labels(outcome=outcome).inc()

    if duration_ms is not None and duration_ms > 0:
        SEGMENT_DURATION.observe(duration_ms / 1000)


def record_stage(stage: str, latency_ms: float, *, failed: bool = False) -> None:
    """Record one pipeline stage.

    Args:
        stage: Stage name
        latency_ms: Time spent in the stage in milliseconds
        failed: Whether the stage failed
    """
    STAGE_LATENCY.labels(stage=stage).observe(latency_ms / 1000)

    if failed:
        STAGE_ERRORS.labels(stage=stage).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output.

    Returns:
        Metrics in Prometheus text exposition format.
    """
    return generate_latest()


def get_content_type() -> str:
    """Get the content type for Prometheus metrics.

    Returns:
        Content-Type header value for Prometheus metrics.
    """
    return CONTENT_TYPE_LATEST
