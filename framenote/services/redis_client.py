from __future__ import annotations

import logging
import os
import threading

import redis

logger = logging.getLogger("framenote.redis")

REDIS_URL = (os.environ.get("FRAMENOTE_REDIS_URL") or "").strip()
REDIS_CONNECT_TIMEOUT_SECONDS = float(os.environ.get("FRAMENOTE_REDIS_CONNECT_TIMEOUT_SECONDS", "2"))
REDIS_ENABLED = bool(REDIS_URL)

_redis_client: redis.Redis | None = None
_redis_lock = threading.Lock()


def _get_redis_client() -> redis.Redis | None:
    if not REDIS_ENABLED:
        return None
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    with _redis_lock:
        if _redis_client is not None:
            return _redis_client
        try:
            client = redis.Redis.from_url(
                REDIS_URL,
                socket_connect_timeout=REDIS_CONNECT_TIMEOUT_SECONDS,
                socket_timeout=REDIS_CONNECT_TIMEOUT_SECONDS,
                decode_responses=True,
            )
            client.ping()
            _redis_client = client
        except Exception as exc:
            logger.warning("Redis unavailable: %s", exc)
            _redis_client = None
    return _redis_client
