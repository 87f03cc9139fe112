"""Prometheus metrics for the moderation pipeline.

Exposes chat scanning, spam detection, moderation action and upstream API
counters through a private registry.
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Create a custom registry for our metrics
REGISTRY = CollectorRegistry()


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "bot_defend_app",
    "Application information",
    registry=REGISTRY,
)


# ============================================
# Moderation Pipeline Metrics
# ============================================
ACTIVE_SESSIONS = Gauge(
    "moderation_active_sessions",
    "Number of live chats currently being monitored",
    registry=REGISTRY,
)

CHAT_MESSAGES_SCANNED_TOTAL = Counter(
    "chat_messages_scanned_total",
    "Total live chat messages classified",
    registry=REGISTRY,
)

SPAM_DETECTED_TOTAL = Counter(
    "spam_detected_total",
    "Total messages classified as spam",
    ["source"],
    registry=REGISTRY,
)

MODERATION_ACTIONS_TOTAL = Counter(
    "moderation_actions_total",
    "Total moderation actions attempted",
    ["action", "outcome"],
    registry=REGISTRY,
)

POLL_CYCLE_DURATION_SECONDS = Histogram(
    "poll_cycle_duration_seconds",
    "Duration of one poll cycle including classification and actions",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)


# ============================================
# External API Metrics
# ============================================
YOUTUBE_API_REQUESTS_TOTAL = Counter(
    "youtube_api_requests_total",
    "Total YouTube API requests",
    ["endpoint", "status"],
    registry=REGISTRY,
)

YOUTUBE_API_QUOTA_USED = Gauge(
    "youtube_api_quota_used",
    "Estimated YouTube API quota used per project key",
    ["project"],
    registry=REGISTRY,
)

TOKEN_REFRESH_TOTAL = Counter(
    "bot_token_refresh_total",
    "Total bot access token refresh attempts",
    ["status"],
    registry=REGISTRY,
)

AI_REQUESTS_TOTAL = Counter(
    "ai_requests_total",
    "Total AI spam classification requests",
    ["status"],
    registry=REGISTRY,
)

AI_REQUEST_DURATION_SECONDS = Histogram(
    "ai_request_duration_seconds",
    "AI request duration in seconds",
    buckets=[0.5, 1.0, 2.0, 3.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format.

    Returns:
        bytes: Prometheus-formatted metrics
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metrics.

    Args:
        version: Application version
        environment: Deployment environment
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
