from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..metrics import COMMENTS_CREATED, COMMENTS_DELETED, REACTION_TOGGLES
from ..review.identity import ActorIdentity, owns_comment
from ..review.models import DELETED_MARKER
from ..review.reactions import ACTION_ADDED, ACTION_REMOVED, ACTION_UPDATED
from ..utils.validation import (
    ReviewValidationError,
    _clean_author_name,
    _clean_content,
    _clean_reaction_type,
    _parse_timestamp_seconds,
)
from .database import _is_expired, _iso, _review_conn, _utcnow
from .guest_sessions import _guest_session_in_project

logger = logging.getLogger("framenote.comments")

COMMENT_COLUMNS = (
    "id, project_id, video_id, parent_comment_id, author_name, author_id, "
    "guest_session_id, content, timestamp_seconds, is_deleted, created_at"
)
REACTION_COLUMNS = "id, comment_id, reaction_type, user_id, guest_session_id, created_at"


def _comment_dict(row) -> dict:
    data = dict(row)
    data["is_deleted"] = bool(data.get("is_deleted"))
    return data


def _add_comment(
    *,
    project_id: str,
    video_id: str,
    content: str,
    timestamp_seconds,
    author_name: str | None = None,
    user_id: str | None = None,
    guest_session_id: str | None = None,
    parent_comment_id: str | None = None,
    now: datetime | None = None,
) -> dict:
    content = _clean_content(content)
    timestamp_seconds = _parse_timestamp_seconds(timestamp_seconds)
    author_name = _clean_author_name(author_name)
    now = now or _utcnow()
    if user_id:
        guest_session_id = None

    with _review_conn() as conn:
        video = conn.execute(
            """
            SELECT v.project_id, p.expires_at
            FROM videos v JOIN projects p ON p.id = v.project_id
            WHERE v.id = ?
            """,
            (video_id,),
        ).fetchone()
        if not video or video["project_id"] != project_id or _is_expired(video["expires_at"], now):
            raise LookupError("Video not found")
        if guest_session_id and not _guest_session_in_project(conn, guest_session_id, project_id):
            raise ReviewValidationError("Invalid guest session")
        if parent_comment_id:
            parent = conn.execute(
                "SELECT video_id FROM comments WHERE id = ?", (parent_comment_id,)
            ).fetchone()
            if not parent or parent["video_id"] != video_id:
                raise ReviewValidationError("Parent comment not found")

        row = conn.execute(
            f"""
            INSERT INTO comments (id, project_id, video_id, parent_comment_id, author_name, author_id,
                                  guest_session_id, content, timestamp_seconds, is_deleted, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
            RETURNING {COMMENT_COLUMNS}
            """,
            (
                str(uuid.uuid4()),
                project_id,
                video_id,
                parent_comment_id,
                author_name,
                user_id,
                guest_session_id,
                content,
                timestamp_seconds,
                _iso(now),
            ),
        ).fetchone()
        comment = _comment_dict(row)

    if COMMENTS_CREATED is not None:
        COMMENTS_CREATED.labels("reply" if parent_comment_id else "root").inc()
    return comment


def _get_comment(comment_id: str) -> dict | None:
    with _review_conn() as conn:
        row = conn.execute(
            f"SELECT {COMMENT_COLUMNS} FROM comments WHERE id = ?", (comment_id,)
        ).fetchone()
        return _comment_dict(row) if row else None


def _get_video_comments(video_id: str) -> list[dict]:
    with _review_conn() as conn:
        rows = conn.execute(
            f"""
            SELECT {COMMENT_COLUMNS}
            FROM comments
            WHERE video_id = ?
            ORDER BY timestamp_seconds ASC, created_at ASC
            """,
            (video_id,),
        ).fetchall()
        return [_comment_dict(row) for row in rows]


def _get_video_reactions(video_id: str) -> list[dict]:
    with _review_conn() as conn:
        rows = conn.execute(
            """
            SELECT r.id, r.comment_id, r.reaction_type, r.user_id, r.guest_session_id, r.created_at
            FROM comment_reactions r
            JOIN comments c ON c.id = r.comment_id
            WHERE c.video_id = ?
            ORDER BY r.created_at ASC
            """,
            (video_id,),
        ).fetchall()
        return [dict(row) for row in rows]


def _get_comment_reactions(comment_id: str) -> list[dict]:
    with _review_conn() as conn:
        rows = conn.execute(
            f"SELECT {REACTION_COLUMNS} FROM comment_reactions WHERE comment_id = ? ORDER BY created_at ASC",
            (comment_id,),
        ).fetchall()
        return [dict(row) for row in rows]


def _soft_delete_comment(
    comment_id: str,
    *,
    user_id: str | None = None,
    guest_session_id: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Replaces the content with the deletion marker; the row, its position and
    its replies stay. Deleting an already deleted comment is a no-op.
    """
    comment = _get_comment(comment_id)
    if comment is None:
        raise LookupError("Comment not found")
    requester = ActorIdentity(user_id=user_id, guest_session_id=guest_session_id)
    if not owns_comment(comment.get("author_id"), comment.get("guest_session_id"), requester):
        raise PermissionError("Unauthorized")
    if comment["is_deleted"]:
        return comment

    now = now or _utcnow()
    with _review_conn() as conn:
        row = conn.execute(
            f"""
            UPDATE comments SET is_deleted = 1, deleted_at = ?, content = ?
            WHERE id = ?
            RETURNING {COMMENT_COLUMNS}
            """,
            (_iso(now), DELETED_MARKER, comment_id),
        ).fetchone()
    if COMMENTS_DELETED is not None:
        COMMENTS_DELETED.inc()
    logger.info("Soft-deleted comment %s", comment_id, extra={"comment_id": comment_id})
    return _comment_dict(row)


def _toggle_reaction_once(
    comment_id: str,
    reaction_type: str,
    *,
    user_id: str | None,
    guest_session_id: str | None,
    now: datetime,
) -> dict:
    key_column = "user_id" if user_id else "guest_session_id"
    reactor_key = user_id or guest_session_id
    with _review_conn() as conn:
        comment = conn.execute(
            "SELECT project_id FROM comments WHERE id = ?", (comment_id,)
        ).fetchone()
        if not comment:
            raise LookupError("Comment not found")
        if not user_id and not _guest_session_in_project(conn, guest_session_id, comment["project_id"]):
            raise ReviewValidationError("Invalid guest session")

        existing = conn.execute(
            f"SELECT {REACTION_COLUMNS} FROM comment_reactions WHERE comment_id = ? AND {key_column} = ?",
            (comment_id, reactor_key),
        ).fetchone()

        if existing and existing["reaction_type"] == reaction_type:
            conn.execute("DELETE FROM comment_reactions WHERE id = ?", (existing["id"],))
            return {"action": ACTION_REMOVED, "reaction": None, "previous": dict(existing)}

        if existing:
            row = conn.execute(
                f"UPDATE comment_reactions SET reaction_type = ? WHERE id = ? RETURNING {REACTION_COLUMNS}",
                (reaction_type, existing["id"]),
            ).fetchone()
            return {"action": ACTION_UPDATED, "reaction": dict(row), "previous": dict(existing)}

        row = conn.execute(
            f"""
            INSERT INTO comment_reactions (id, comment_id, reaction_type, user_id, guest_session_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING {REACTION_COLUMNS}
            """,
            (
                str(uuid.uuid4()),
                comment_id,
                reaction_type,
                user_id,
                None if user_id else guest_session_id,
                _iso(now),
            ),
        ).fetchone()
        return {"action": ACTION_ADDED, "reaction": dict(row), "previous": None}


def _toggle_reaction(
    comment_id: str,
    reaction_type: str,
    *,
    user_id: str | None = None,
    guest_session_id: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    One reaction per (comment, reactor): the same type again removes it, a
    different type replaces it. Returns the action plus the new and previous
    row images.
    """
    reaction_type = _clean_reaction_type(reaction_type)
    if not user_id and not guest_session_id:
        raise ReviewValidationError("A user or guest session is required")
    now = now or _utcnow()

    for attempt in range(2):
        try:
            result = _toggle_reaction_once(
                comment_id,
                reaction_type,
                user_id=user_id,
                guest_session_id=guest_session_id,
                now=now,
            )
            break
        except IntegrityError:
            # Lost an insert race against the same reactor; re-read and toggle again.
            if attempt:
                raise
            logger.info("Reaction insert raced on comment %s; retrying", comment_id)

    if REACTION_TOGGLES is not None:
        REACTION_TOGGLES.labels(result["action"]).inc()
    return result
