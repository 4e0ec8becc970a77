from __future__ import annotations

from datetime import timedelta

from framenote.services.database import _utcnow
from framenote.services.projects import (
    _create_temp_project,
    _get_project,
    _get_project_by_slug,
    _get_video,
)
from framenote.utils.validation import is_valid_slug


def test_create_project(project):
    assert is_valid_slug(project["slug"])
    assert project["share_url"] == f"https://review.test/r/{project['slug']}"
    assert project["expires_at"] is None

    stored = _get_project(project["project_id"])
    assert stored["title"] == "Cut 3"
    assert stored["is_temp"] is False

    video = _get_video(project["video_id"])
    assert video["project_id"] == project["project_id"]
    assert video["provider"] == "youtube"
    assert video["duration_seconds"] == 95.0


def test_temp_project_defaults(temp_project):
    stored = _get_project(temp_project["project_id"])

    assert stored["is_temp"] is True
    assert stored["title"] == "Rough cut"
    assert stored["expires_at"] == temp_project["expires_at"]
    assert stored["description"].startswith("Temporary project")
    assert _get_video(temp_project["video_id"])["source_note"] == "Added via guest flow"


def test_temp_project_title_fallback():
    created = _create_temp_project(video_url="https://vimeo.com/9", video_metadata={"provider": "vimeo"})
    assert _get_project(created["project_id"])["title"] == "Untitled Project"


def test_get_project_by_slug(project):
    found = _get_project_by_slug(project["slug"])

    assert found["id"] == project["project_id"]
    assert found["is_expired"] is False
    assert [video["id"] for video in found["videos"]] == [project["video_id"]]


def test_temp_project_expires(temp_project):
    later = _utcnow() + timedelta(days=2)
    assert _get_project_by_slug(temp_project["slug"], now=later)["is_expired"] is True


def test_unknown_lookups():
    assert _get_project("missing") is None
    assert _get_project_by_slug("zzzzzzzz") is None
    assert _get_video("missing") is None
