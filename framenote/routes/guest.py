from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from ..middleware.rate_limit import limiter
from ..services.guest_sessions import _create_guest_session, _get_guest_session, _update_guest_name
from ..utils.request import _get_json_payload
from ..utils.validation import ReviewValidationError, _require_id, is_valid_session_token

logger = logging.getLogger("framenote.guest_sessions")


def create_guest_blueprint(deps: dict):
    rate_limit_guest_sessions = deps["rate_limit_guest_sessions"]

    bp = Blueprint("guest", __name__)

    @bp.route("/api/guest/sessions", methods=["POST"])
    @limiter.limit(rate_limit_guest_sessions)
    def create_session():
        payload = _get_json_payload()
        try:
            session = _create_guest_session(
                project_id=_require_id(payload, "project_id"),
                name=payload.get("name"),
            )
        except ReviewValidationError as exc:
            return jsonify({"error": str(exc)}), exc.status_code
        except LookupError:
            return jsonify({"error": "Project not found"}), 404
        except Exception as exc:
            logger.error("Failed to create guest session: %s", exc)
            return jsonify({"error": "Internal server error"}), 500
        return jsonify(session), 201

    @bp.route("/api/guest/session")
    def get_session():
        token = (request.args.get("token") or "").strip()
        if not token:
            return jsonify({"error": "Missing token"}), 400
        if not is_valid_session_token(token):
            return jsonify({"session": None})
        try:
            session = _get_guest_session(token)
        except Exception as exc:
            logger.error("Failed to look up guest session: %s", exc)
            return jsonify({"error": "Internal server error"}), 500
        return jsonify({"session": session})

    @bp.route("/api/guest/session", methods=["PATCH"])
    def update_name():
        payload = _get_json_payload()
        token = str(payload.get("token") or "").strip()
        if not token or not payload.get("name"):
            return jsonify({"error": "Missing required fields"}), 400
        if not is_valid_session_token(token):
            return jsonify({"error": "Session not found"}), 404
        try:
            session = _update_guest_name(token, payload.get("name"))
        except ReviewValidationError as exc:
            return jsonify({"error": str(exc)}), exc.status_code
        except Exception as exc:
            logger.error("Failed to update guest name: %s", exc)
            return jsonify({"error": "Internal server error"}), 500
        if session is None:
            return jsonify({"error": "Session not found"}), 404
        return jsonify({"success": True, "name": session["name"]})

    return bp
