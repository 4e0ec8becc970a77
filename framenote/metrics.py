from __future__ import annotations

import os

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram, multiprocess

from .config import parse_bool

METRICS_ENABLED = parse_bool(os.environ.get("FRAMENOTE_METRICS_ENABLED", "true"))
PROMETHEUS_MULTIPROC_DIR = (os.environ.get("PROMETHEUS_MULTIPROC_DIR") or "").strip()

if METRICS_ENABLED:
    REQUEST_LATENCY = Histogram(
        "framenote_http_request_duration_seconds",
        "HTTP request latency",
        ["method", "endpoint"],
    )
    REQUEST_COUNT = Counter(
        "framenote_http_requests_total",
        "Total HTTP requests",
        ["method", "endpoint", "status"],
    )
    REQUEST_ERRORS = Counter(
        "framenote_http_request_errors_total",
        "HTTP error responses",
        ["method", "endpoint", "status"],
    )
    REQUEST_IN_FLIGHT = Gauge(
        "framenote_http_requests_in_flight",
        "In-flight HTTP requests",
    )
    COMMENTS_CREATED = Counter(
        "framenote_comments_created_total",
        "Comments created",
        ["kind"],
    )
    COMMENTS_DELETED = Counter(
        "framenote_comments_deleted_total",
        "Comments soft-deleted",
    )
    REACTION_TOGGLES = Counter(
        "framenote_reaction_toggles_total",
        "Reaction toggles by outcome",
        ["action"],
    )
    GUEST_SESSIONS_CREATED = Counter(
        "framenote_guest_sessions_created_total",
        "Guest sessions created",
    )
    REALTIME_PUBLISH = Counter(
        "framenote_realtime_publish_total",
        "Realtime change events published",
        ["table", "status"],
    )
else:
    REQUEST_LATENCY = None
    REQUEST_COUNT = None
    REQUEST_ERRORS = None
    REQUEST_IN_FLIGHT = None
    COMMENTS_CREATED = None
    COMMENTS_DELETED = None
    REACTION_TOGGLES = None
    GUEST_SESSIONS_CREATED = None
    REALTIME_PUBLISH = None


def metrics_registry() -> CollectorRegistry:
    """Per-scrape registry aggregating worker files under gunicorn, else the global one."""
    if PROMETHEUS_MULTIPROC_DIR:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return registry
    return REGISTRY
