from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from ..middleware.rate_limit import limiter
from ..services.projects import _create_temp_project, _get_project_by_slug
from ..utils.request import _get_json_payload
from ..utils.validation import MAX_TITLE_LENGTH, ReviewValidationError, _clean_video_url, is_valid_slug

logger = logging.getLogger("framenote.projects")


def create_projects_blueprint(deps: dict):
    rate_limit_temp_projects = deps["rate_limit_temp_projects"]

    bp = Blueprint("projects", __name__)

    @bp.route("/api/projects/temp", methods=["POST"])
    @limiter.limit(rate_limit_temp_projects)
    def create_temp_project():
        payload = _get_json_payload()
        metadata = payload.get("video_metadata")
        if not payload.get("video_url") or not isinstance(metadata, dict):
            return jsonify({"error": "Video URL and metadata are required"}), 400
        title = str(payload.get("title") or "").strip()[:MAX_TITLE_LENGTH] or None
        try:
            project = _create_temp_project(
                video_url=_clean_video_url(payload.get("video_url")),
                video_metadata=metadata,
                title=title,
            )
        except ReviewValidationError as exc:
            return jsonify({"error": str(exc)}), exc.status_code
        except Exception as exc:
            logger.error("Failed to create temp project: %s", exc)
            return jsonify({"error": "Failed to create project"}), 500
        return jsonify({"success": True, "data": project}), 201

    @bp.route("/api/projects/<slug>")
    def get_project(slug: str):
        if not is_valid_slug(slug):
            return jsonify({"error": "Project not found"}), 404
        try:
            project = _get_project_by_slug(slug)
        except Exception as exc:
            logger.error("Failed to load project %s: %s", slug, exc)
            return jsonify({"error": "Internal server error"}), 500
        if project is None:
            return jsonify({"error": "Project not found"}), 404
        if project["is_expired"]:
            return jsonify({"error": "Project has expired"}), 410
        return jsonify({"project": project})

    return bp
