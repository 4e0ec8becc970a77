from __future__ import annotations

import logging
import os
import uuid
from datetime import datetime, timedelta

from ..utils.slug import generate_unique_slug
from .database import _is_expired, _iso, _review_conn, _utcnow

logger = logging.getLogger("framenote.projects")

TEMP_PROJECT_TTL_HOURS = int(os.environ.get("FRAMENOTE_TEMP_PROJECT_TTL_HOURS", "24"))
PUBLIC_BASE_URL = (os.environ.get("FRAMENOTE_PUBLIC_BASE_URL") or "").rstrip("/")


def _share_url(slug: str) -> str:
    return f"{PUBLIC_BASE_URL}/r/{slug}"


def _create_project(
    *,
    title: str,
    video_url: str,
    video_metadata: dict | None = None,
    owner_id: str | None = None,
    is_temp: bool = False,
    description: str | None = None,
    source_note: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Project and its first video in one transaction; nothing is left behind on failure."""
    now = now or _utcnow()
    meta = video_metadata or {}
    expires_at = _iso(now + timedelta(hours=TEMP_PROJECT_TTL_HOURS)) if is_temp else None
    project_id = str(uuid.uuid4())
    video_id = str(uuid.uuid4())

    with _review_conn() as conn:

        def _slug_taken(slug: str) -> bool:
            return conn.execute("SELECT 1 FROM projects WHERE share_slug = ?", (slug,)).fetchone() is not None

        slug = generate_unique_slug(_slug_taken)
        conn.execute(
            """
            INSERT INTO projects (id, title, description, owner_id, share_slug, privacy, is_temp, expires_at, created_at)
            VALUES (?, ?, ?, ?, ?, 'public', ?, ?, ?)
            """,
            (project_id, title, description, owner_id, slug, 1 if is_temp else 0, expires_at, _iso(now)),
        )
        duration = meta.get("duration")
        conn.execute(
            """
            INSERT INTO videos (id, project_id, video_url, provider, title, thumbnail_url, duration_seconds, source_note, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                video_id,
                project_id,
                video_url,
                meta.get("provider") or "youtube",
                meta.get("title"),
                meta.get("thumbnail"),
                float(duration) if duration is not None else None,
                source_note,
                _iso(now),
            ),
        )

    logger.info("Created project %s", project_id, extra={"project_id": project_id})
    return {
        "project_id": project_id,
        "video_id": video_id,
        "slug": slug,
        "share_url": _share_url(slug),
        "expires_at": expires_at,
    }


def _create_temp_project(
    *, video_url: str, video_metadata: dict, title: str | None = None, now: datetime | None = None
) -> dict:
    return _create_project(
        title=title or video_metadata.get("title") or "Untitled Project",
        description=f"Temporary project - expires in {TEMP_PROJECT_TTL_HOURS} hours",
        video_url=video_url,
        video_metadata=video_metadata,
        is_temp=True,
        source_note="Added via guest flow",
        now=now,
    )


def _project_dict(row) -> dict:
    data = dict(row)
    data["is_temp"] = bool(data.get("is_temp"))
    return data


def _get_project(project_id: str) -> dict | None:
    with _review_conn() as conn:
        row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return _project_dict(row) if row else None


def _get_project_by_slug(slug: str, *, now: datetime | None = None) -> dict | None:
    now = now or _utcnow()
    with _review_conn() as conn:
        row = conn.execute("SELECT * FROM projects WHERE share_slug = ?", (slug,)).fetchone()
        if not row:
            return None
        project = _project_dict(row)
        videos = conn.execute(
            """
            SELECT id, video_url, provider, title, thumbnail_url, duration_seconds, created_at
            FROM videos
            WHERE project_id = ?
            ORDER BY created_at ASC
            """,
            (project["id"],),
        ).fetchall()
    project["videos"] = [dict(video) for video in videos]
    project["is_expired"] = _is_expired(project.get("expires_at"), now)
    return project


def _get_video(video_id: str) -> dict | None:
    with _review_conn() as conn:
        row = conn.execute("SELECT * FROM videos WHERE id = ?", (video_id,)).fetchone()
        return dict(row) if row else None
