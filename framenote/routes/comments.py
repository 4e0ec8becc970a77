from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from ..middleware.rate_limit import limiter
from ..services.comments import (
    _add_comment,
    _get_comment_reactions,
    _get_video_comments,
    _get_video_reactions,
    _soft_delete_comment,
    _toggle_reaction,
)
from ..services.container import get_services
from ..utils.request import _get_json_payload
from ..utils.validation import ReviewValidationError, _optional_id, _require_id, is_valid_id

logger = logging.getLogger("framenote.comments")


def create_comments_blueprint(deps: dict):
    rate_limit_comments = deps["rate_limit_comments"]
    rate_limit_reactions = deps["rate_limit_reactions"]

    bp = Blueprint("comments", __name__)

    @bp.route("/api/videos/<video_id>/comments")
    def get_video_comments(video_id: str):
        if not is_valid_id(video_id):
            return jsonify({"error": "Invalid video id"}), 400
        try:
            comments = _get_video_comments(video_id)
            reactions = _get_video_reactions(video_id)
        except Exception as exc:
            logger.error("Failed to get comments: %s", exc)
            return jsonify({"error": "Internal server error"}), 500
        return jsonify({"comments": comments, "reactions": reactions})

    @bp.route("/api/comments", methods=["POST"])
    @limiter.limit(rate_limit_comments)
    def post_comment():
        payload = _get_json_payload()
        try:
            comment = _add_comment(
                project_id=_require_id(payload, "project_id"),
                video_id=_require_id(payload, "video_id"),
                content=payload.get("content"),
                timestamp_seconds=payload.get("timestamp_seconds", 0),
                author_name=payload.get("author_name"),
                user_id=_optional_id(payload, "user_id"),
                guest_session_id=_optional_id(payload, "guest_session_id"),
                parent_comment_id=_optional_id(payload, "parent_comment_id"),
            )
        except ReviewValidationError as exc:
            return jsonify({"error": str(exc)}), exc.status_code
        except LookupError as exc:
            return jsonify({"error": str(exc)}), 404
        except Exception as exc:
            logger.error("Failed to add comment: %s", exc)
            return jsonify({"error": "Internal server error"}), 500

        get_services().realtime.comment_inserted(comment)
        return jsonify({"comment": comment}), 201

    @bp.route("/api/comments/<comment_id>", methods=["DELETE"])
    def delete_comment(comment_id: str):
        if not is_valid_id(comment_id):
            return jsonify({"error": "Invalid comment id"}), 400
        payload = _get_json_payload()
        try:
            comment = _soft_delete_comment(
                comment_id,
                user_id=_optional_id(payload, "user_id"),
                guest_session_id=_optional_id(payload, "guest_session_id"),
            )
        except ReviewValidationError as exc:
            return jsonify({"error": str(exc)}), exc.status_code
        except LookupError:
            return jsonify({"error": "Comment not found"}), 404
        except PermissionError:
            return jsonify({"error": "Unauthorized"}), 403
        except Exception as exc:
            logger.error("Failed to delete comment %s: %s", comment_id, exc)
            return jsonify({"error": "Internal server error"}), 500

        get_services().realtime.comment_updated(comment)
        return jsonify({"success": True, "comment": comment})

    @bp.route("/api/comments/<comment_id>/reactions", methods=["POST"])
    @limiter.limit(rate_limit_reactions)
    def toggle_reaction(comment_id: str):
        if not is_valid_id(comment_id):
            return jsonify({"error": "Invalid comment id"}), 400
        payload = _get_json_payload()
        try:
            result = _toggle_reaction(
                comment_id,
                payload.get("reaction_type"),
                user_id=_optional_id(payload, "user_id"),
                guest_session_id=_optional_id(payload, "guest_session_id"),
            )
        except ReviewValidationError as exc:
            return jsonify({"error": str(exc)}), exc.status_code
        except LookupError:
            return jsonify({"error": "Comment not found"}), 404
        except Exception as exc:
            logger.error("Failed to toggle reaction on %s: %s", comment_id, exc)
            return jsonify({"error": "Internal server error"}), 500

        get_services().realtime.reaction_changed(
            result["action"], new=result["reaction"], old=result["previous"]
        )
        return jsonify({"success": True, "action": result["action"]})

    @bp.route("/api/comments/<comment_id>/reactions")
    def get_reactions(comment_id: str):
        if not is_valid_id(comment_id):
            return jsonify({"error": "Invalid comment id"}), 400
        try:
            reactions = _get_comment_reactions(comment_id)
        except Exception as exc:
            logger.error("Failed to get reactions for %s: %s", comment_id, exc)
            return jsonify({"error": "Internal server error"}), 500
        return jsonify({"reactions": reactions})

    return bp
