from __future__ import annotations

import logging
import os

logger = logging.getLogger("framenote.config")

RECOMMENDED_VARS = [
    "FRAMENOTE_DB_PATH",
    "FRAMENOTE_REDIS_URL",
]


def validate_config() -> list[str]:
    warnings = []
    missing = [var for var in RECOMMENDED_VARS if not os.environ.get(var)]
    if missing:
        warnings.append(f"Unset environment variables (defaults in use): {', '.join(missing)}")
    if not os.environ.get("FRAMENOTE_REDIS_URL"):
        warnings.append("FRAMENOTE_REDIS_URL is empty; realtime events will not be published")

    storage = os.environ.get("FRAMENOTE_RATE_LIMIT_STORAGE_URI", "memory://")
    if storage.startswith("memory://"):
        warnings.append("Rate limits use in-memory storage; limits are per worker process")

    try:
        dedup = float(os.environ.get("FRAMENOTE_REALTIME_DEDUP_SECONDS", "5"))
        if dedup <= 0:
            warnings.append("FRAMENOTE_REALTIME_DEDUP_SECONDS should be positive")
    except ValueError:
        warnings.append("FRAMENOTE_REALTIME_DEDUP_SECONDS is not a number; using default")

    for message in warnings:
        logger.warning(message)
    return warnings
