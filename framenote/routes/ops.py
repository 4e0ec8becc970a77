from __future__ import annotations

import os

from flask import Blueprint, Response, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..metrics import METRICS_ENABLED, metrics_registry
from ..middleware.rate_limit import limiter
from ..services.database import _check_review_db
from ..services.redis_client import REDIS_ENABLED, _get_redis_client

ops_bp = Blueprint("ops", __name__)

VERSION = os.environ.get("FRAMENOTE_VERSION", "0.1.0-dev")


def _check_database() -> str:
    _check_review_db()
    return "ok"


def _check_redis() -> str:
    # Redis only carries realtime fan-out; when configured it must answer.
    if not REDIS_ENABLED:
        return "disabled"
    client = _get_redis_client()
    if client is None or not client.ping():
        return "disconnected"
    return "ok"


HEALTH_CHECKS = (("database", _check_database), ("redis", _check_redis))


@ops_bp.route("/health")
@limiter.exempt
def health_check():
    services = {}
    for name, check in HEALTH_CHECKS:
        try:
            services[name] = check()
        except Exception as exc:
            services[name] = f"error: {exc}"

    healthy = all(state in {"ok", "disabled"} for state in services.values())
    body = {"status": "healthy" if healthy else "unhealthy", "services": services}
    return jsonify(body), 200 if healthy else 503


@ops_bp.route("/version")
def version():
    return jsonify(
        {
            "version": VERSION,
            "release": os.environ.get("FRAMENOTE_RELEASE", "none"),
            "environment": os.environ.get("FRAMENOTE_ENV", "production"),
        }
    )


@ops_bp.route("/metrics")
@limiter.exempt
def metrics():
    if not METRICS_ENABLED:
        return jsonify({"error": "Metrics disabled"}), 404
    return Response(generate_latest(metrics_registry()), mimetype=CONTENT_TYPE_LATEST)
