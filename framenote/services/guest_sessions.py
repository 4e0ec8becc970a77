from __future__ import annotations

import logging
import os
import secrets
import uuid
from datetime import datetime, timedelta

from ..metrics import GUEST_SESSIONS_CREATED
from ..utils.validation import _clean_guest_name
from .database import _is_expired, _iso, _review_conn, _utcnow

logger = logging.getLogger("framenote.guest_sessions")

GUEST_SESSION_TTL_DAYS = int(os.environ.get("FRAMENOTE_GUEST_SESSION_TTL_DAYS", "365"))


def _create_guest_session(*, project_id: str, name: str, now: datetime | None = None) -> dict:
    """
    Temp projects hand out sessions that die with the project; everything
    else gets a long-lived session.
    """
    name = _clean_guest_name(name)
    now = now or _utcnow()
    with _review_conn() as conn:
        project = conn.execute(
            "SELECT id, is_temp, expires_at FROM projects WHERE id = ?", (project_id,)
        ).fetchone()
        if not project or _is_expired(project["expires_at"], now):
            raise LookupError("Project not found")

        if project["is_temp"] and project["expires_at"]:
            expires_at = project["expires_at"]
        else:
            expires_at = _iso(now + timedelta(days=GUEST_SESSION_TTL_DAYS))

        session_id = str(uuid.uuid4())
        token = secrets.token_urlsafe(32)
        conn.execute(
            """
            INSERT INTO guest_sessions (id, project_id, guest_name, cookie_token, expires_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (session_id, project_id, name, token, expires_at, _iso(now)),
        )

    if GUEST_SESSIONS_CREATED is not None:
        GUEST_SESSIONS_CREATED.inc()
    return {
        "guest_session_id": session_id,
        "session_token": token,
        "name": name,
        "project_id": project_id,
        "expires_at": expires_at,
    }


def _get_guest_session(token: str, *, now: datetime | None = None) -> dict | None:
    now = now or _utcnow()
    with _review_conn() as conn:
        row = conn.execute(
            "SELECT id, guest_name, project_id, expires_at FROM guest_sessions WHERE cookie_token = ?",
            (token,),
        ).fetchone()
    if not row or _is_expired(row["expires_at"], now):
        return None
    return {
        "id": row["id"],
        "name": row["guest_name"],
        "project_id": row["project_id"],
        "expires_at": row["expires_at"],
    }


def _update_guest_name(token: str, name: str, *, now: datetime | None = None) -> dict | None:
    name = _clean_guest_name(name)
    if _get_guest_session(token, now=now) is None:
        return None
    with _review_conn() as conn:
        conn.execute("UPDATE guest_sessions SET guest_name = ? WHERE cookie_token = ?", (name, token))
    return _get_guest_session(token, now=now)


def _guest_session_in_project(conn, guest_session_id: str, project_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM guest_sessions WHERE id = ? AND project_id = ?",
        (guest_session_id, project_id),
    ).fetchone()
    return row is not None
