from __future__ import annotations

import os

from flask import request

from ..config import parse_bool
from .validation import _normalize_ip

TRUST_PROXY_HEADERS = parse_bool(os.environ.get("FRAMENOTE_TRUST_PROXY_HEADERS", "true"))
PROXY_IP_HEADERS = ("CF-Connecting-IP", "X-Forwarded-For", "X-Real-IP")


def _get_request_ip() -> str | None:
    candidates = [request.headers.get(name) for name in PROXY_IP_HEADERS] if TRUST_PROXY_HEADERS else []
    candidates.append(request.remote_addr)
    for candidate in candidates:
        ip = _normalize_ip(candidate)
        if ip:
            return ip
    return None


def _get_rate_limit_key() -> str:
    """Limiter key: client IP, or "unknown" outside a request."""
    try:
        ip = _get_request_ip()
    except RuntimeError:
        ip = None
    return ip or "unknown"


def _get_json_payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}
