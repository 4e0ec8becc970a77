"""
Wire types shared by the review core and the HTTP API client.

All of them are frozen dataclasses: the organizer, aggregator and composer
return new instances instead of mutating what they were given.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime

DELETED_MARKER = "[deleted]"
PROVISIONAL_PREFIX = "temp-"

REACTION_TYPES = ("like", "love", "laugh", "celebrate", "insightful", "fire")
REACTION_LABELS = {
    "like": "Like",
    "love": "Love",
    "laugh": "Laugh",
    "celebrate": "Celebrate",
    "insightful": "Insightful",
    "fire": "Fire",
}


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(float(value), UTC)
    else:
        raw = str(value or "").strip()
        if not raw:
            raise ValueError("Missing timestamp")
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _optional_str(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class ReactionSummary:
    type: str
    count: int
    has_reacted: bool = False

    def to_dict(self) -> dict:
        return {"type": self.type, "count": self.count, "has_reacted": self.has_reacted}


@dataclass(frozen=True)
class Reaction:
    id: str
    comment_id: str
    reaction_type: str
    user_id: str | None = None
    guest_session_id: str | None = None

    @property
    def reactor_key(self) -> str | None:
        return self.user_id or self.guest_session_id

    @classmethod
    def from_dict(cls, data: dict) -> Reaction:
        return cls(
            id=str(data["id"]),
            comment_id=str(data["comment_id"]),
            reaction_type=str(data["reaction_type"]),
            user_id=_optional_str(data.get("user_id")),
            guest_session_id=_optional_str(data.get("guest_session_id")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "comment_id": self.comment_id,
            "reaction_type": self.reaction_type,
            "user_id": self.user_id,
            "guest_session_id": self.guest_session_id,
        }


@dataclass(frozen=True)
class Comment:
    id: str
    content: str
    timestamp_seconds: float
    author_name: str
    created_at: datetime
    project_id: str | None = None
    video_id: str | None = None
    author_id: str | None = None
    guest_session_id: str | None = None
    parent_comment_id: str | None = None
    is_deleted: bool = False
    client_key: str | None = None
    replies: tuple[Comment, ...] = ()
    reactions: tuple[ReactionSummary, ...] = ()

    @property
    def is_provisional(self) -> bool:
        return self.id.startswith(PROVISIONAL_PREFIX)

    @property
    def is_root(self) -> bool:
        return self.parent_comment_id is None

    @classmethod
    def from_dict(cls, data: dict) -> Comment:
        timestamp_seconds = float(data.get("timestamp_seconds") or 0)
        if not math.isfinite(timestamp_seconds):
            raise ValueError(f"Non-finite comment timestamp: {timestamp_seconds!r}")
        return cls(
            id=str(data["id"]),
            content=str(data.get("content") or ""),
            timestamp_seconds=timestamp_seconds,
            author_name=str(data.get("author_name") or "Guest"),
            created_at=parse_timestamp(data.get("created_at")),
            project_id=_optional_str(data.get("project_id")),
            video_id=_optional_str(data.get("video_id")),
            author_id=_optional_str(data.get("author_id")),
            guest_session_id=_optional_str(data.get("guest_session_id")),
            parent_comment_id=_optional_str(data.get("parent_comment_id")),
            is_deleted=bool(data.get("is_deleted") or False),
        )

    def to_dict(self, *, include_thread: bool = False) -> dict:
        payload = {
            "id": self.id,
            "project_id": self.project_id,
            "video_id": self.video_id,
            "content": self.content,
            "timestamp_seconds": self.timestamp_seconds,
            "author_name": self.author_name,
            "author_id": self.author_id,
            "guest_session_id": self.guest_session_id,
            "parent_comment_id": self.parent_comment_id,
            "is_deleted": self.is_deleted,
            "created_at": format_timestamp(self.created_at),
        }
        if include_thread:
            payload["reactions"] = [r.to_dict() for r in self.reactions]
            payload["replies"] = [r.to_dict(include_thread=True) for r in self.replies]
        return payload


@dataclass(frozen=True)
class GuestSession:
    id: str
    name: str
    project_id: str | None = None
    session_token: str | None = None
