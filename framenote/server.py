from __future__ import annotations

import logging
import os
import secrets
import time

import sentry_sdk
from flask import Flask, g, has_request_context, jsonify, request
from sentry_sdk.integrations.flask import FlaskIntegration

from .config import load_flask_config
from .logging_config import REQUEST_ID_HEADER, REQUEST_ID_RE, configure_logging
from .metrics import METRICS_ENABLED, REQUEST_COUNT, REQUEST_ERRORS, REQUEST_IN_FLIGHT, REQUEST_LATENCY
from .middleware.rate_limit import (
    RATE_LIMIT_COMMENTS,
    RATE_LIMIT_GUEST_SESSIONS,
    RATE_LIMIT_REACTIONS,
    RATE_LIMIT_TEMP_PROJECTS,
    init_rate_limiter,
)
from .routes.comments import create_comments_blueprint
from .routes.guest import create_guest_blueprint
from .routes.ops import ops_bp
from .routes.projects import create_projects_blueprint
from .services.container import ServiceContainer, init_services
from .tracing import configure_tracing
from .utils.config_validation import validate_config

logger = logging.getLogger("framenote.server")

SENTRY_DSN = (os.environ.get("FRAMENOTE_SENTRY_DSN") or "").strip()
SENTRY_ENV = (
    os.environ.get("FRAMENOTE_SENTRY_ENV") or os.environ.get("SENTRY_ENVIRONMENT") or "production"
).strip()
SENTRY_RELEASE = (os.environ.get("FRAMENOTE_RELEASE") or "").strip() or None
try:
    SENTRY_TRACES_SAMPLE_RATE = float(os.environ.get("FRAMENOTE_SENTRY_TRACES_SAMPLE_RATE", "0"))
except (TypeError, ValueError):
    SENTRY_TRACES_SAMPLE_RATE = 0.0

_sentry_ready = False


def _generate_request_id(raw: str | None) -> str:
    candidate = (raw or "").strip()
    if candidate and REQUEST_ID_RE.fullmatch(candidate):
        return candidate
    return secrets.token_urlsafe(12)


def _sentry_before_send(event, _hint):
    if has_request_context():
        request_id = getattr(g, "request_id", None)
        if request_id:
            event.setdefault("tags", {})["request_id"] = request_id
    return event


def _init_sentry() -> None:
    global _sentry_ready
    if not SENTRY_DSN or _sentry_ready:
        return
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENV,
        release=SENTRY_RELEASE,
        integrations=[FlaskIntegration()],
        traces_sample_rate=max(0.0, SENTRY_TRACES_SAMPLE_RATE),
        send_default_pii=False,
        before_send=_sentry_before_send,
    )
    _sentry_ready = True


def _record_request_metrics(response) -> None:
    if not METRICS_ENABLED or REQUEST_COUNT is None:
        return
    if getattr(g, "_metrics_done", False):
        return
    g._metrics_done = True
    if getattr(g, "_metrics_inflight", False):
        if REQUEST_IN_FLIGHT is not None:
            REQUEST_IN_FLIGHT.dec()
        g._metrics_inflight = False

    endpoint = request.endpoint or "unknown"
    method = request.method
    status = str(response.status_code)
    REQUEST_COUNT.labels(method, endpoint, status).inc()
    if REQUEST_LATENCY is not None and hasattr(g, "_request_started_at"):
        REQUEST_LATENCY.labels(method, endpoint).observe(time.perf_counter() - g._request_started_at)
    if REQUEST_ERRORS is not None and response.status_code >= 400:
        REQUEST_ERRORS.labels(method, endpoint, status).inc()


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def _init_request_context():
        g.request_id = _generate_request_id(request.headers.get(REQUEST_ID_HEADER))
        g._request_started_at = time.perf_counter()
        if METRICS_ENABLED and REQUEST_IN_FLIGHT is not None:
            REQUEST_IN_FLIGHT.inc()
            g._metrics_inflight = True

    @app.after_request
    def _finalize_request(response):
        if hasattr(g, "request_id"):
            response.headers[REQUEST_ID_HEADER] = g.request_id
        _record_request_metrics(response)
        return response

    @app.teardown_request
    def _teardown_request(_exc):
        if METRICS_ENABLED and getattr(g, "_metrics_inflight", False) and REQUEST_IN_FLIGHT is not None:
            REQUEST_IN_FLIGHT.dec()
            g._metrics_inflight = False

    @app.errorhandler(429)
    def _rate_limited(exc):
        return jsonify({"error": "Too many requests"}), 429

    @app.errorhandler(404)
    def _not_found(exc):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def _method_not_allowed(exc):
        return jsonify({"error": "Method not allowed"}), 405


def create_app(services: ServiceContainer | None = None) -> Flask:
    validate_config()
    _init_sentry()

    app = Flask(__name__)
    for key, value in load_flask_config().items():
        app.config.setdefault(key, value)

    configure_logging(app)
    configure_tracing(app)
    init_services(app, services)
    init_rate_limiter(app)
    _register_request_hooks(app)

    deps = {
        "rate_limit_comments": RATE_LIMIT_COMMENTS,
        "rate_limit_reactions": RATE_LIMIT_REACTIONS,
        "rate_limit_guest_sessions": RATE_LIMIT_GUEST_SESSIONS,
        "rate_limit_temp_projects": RATE_LIMIT_TEMP_PROJECTS,
    }
    app.register_blueprint(ops_bp)
    app.register_blueprint(create_comments_blueprint(deps))
    app.register_blueprint(create_guest_blueprint(deps))
    app.register_blueprint(create_projects_blueprint(deps))
    return app
