"""
Add-comment state machine.

    COMPOSING -> OPTIMISTIC -> CONFIRMED | ROLLED_BACK

Each transition is a pure function over immutable values; the coordinator
owns the side effects (store mutation, network call, notices).
"""

from __future__ import annotations

import math
from collections.abc import Container
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum

from .errors import IdentityRequiredError, ValidationError
from .identity import ActorIdentity
from .models import PROVISIONAL_PREFIX, Comment

MAX_CONTENT_LENGTH = 2000


class WritePhase(str, Enum):
    COMPOSING = "composing"
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class Draft:
    text: str = ""
    timestamp_seconds: float = 0.0
    replying_to: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class PendingWrite:
    phase: WritePhase
    provisional: Comment
    draft: Draft
    confirmed: Comment | None = None
    error: str | None = None


def edit(draft: Draft, text: str) -> Draft:
    return replace(draft, text=text)


def set_timestamp(draft: Draft, seconds: float) -> Draft:
    return replace(draft, timestamp_seconds=float(seconds))


def start_reply(draft: Draft, comment_id: str) -> Draft:
    return replace(draft, replying_to=comment_id)


def cancel_reply(draft: Draft) -> Draft:
    return replace(draft, replying_to=None)


def validate_draft(draft: Draft, identity: ActorIdentity | None) -> str:
    """Return the trimmed content, or raise before anything is mutated."""
    content = draft.text.strip()
    if not content:
        raise ValidationError("Comment content is required")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"Comment content must be {MAX_CONTENT_LENGTH} characters or less")
    if not math.isfinite(draft.timestamp_seconds):
        raise ValidationError("Timestamp must be a finite number")
    if draft.timestamp_seconds < 0:
        raise ValidationError("Timestamp must be non-negative")
    if identity is None or not identity.is_resolved:
        raise IdentityRequiredError("Enter a name before commenting")
    return content


def make_provisional_id(now_ms: int, taken: Container[str] = ()) -> str:
    candidate = f"{PROVISIONAL_PREFIX}{now_ms}"
    suffix = 1
    while candidate in taken:
        candidate = f"{PROVISIONAL_PREFIX}{now_ms}-{suffix}"
        suffix += 1
    return candidate


def begin_submit(
    draft: Draft,
    identity: ActorIdentity | None,
    *,
    provisional_id: str,
    project_id: str | None,
    video_id: str | None,
    now: datetime | None = None,
) -> tuple[PendingWrite, Draft]:
    """
    COMPOSING -> OPTIMISTIC. Returns the pending write carrying the
    provisional comment and the composer state to show next: text cleared,
    reply mode exited, timeline position kept.
    """
    content = validate_draft(draft, identity)
    created_at = now or datetime.now(UTC)
    provisional = Comment(
        id=provisional_id,
        content=content,
        timestamp_seconds=draft.timestamp_seconds,
        author_name=(identity.author_name or "").strip() or "Guest",
        created_at=created_at,
        project_id=project_id,
        video_id=video_id,
        author_id=identity.user_id,
        guest_session_id=identity.guest_session_id,
        parent_comment_id=draft.replying_to,
        client_key=provisional_id,
    )
    pending = PendingWrite(phase=WritePhase.OPTIMISTIC, provisional=provisional, draft=draft)
    return pending, Draft(timestamp_seconds=draft.timestamp_seconds)


def _require_optimistic(pending: PendingWrite) -> None:
    if pending.phase is not WritePhase.OPTIMISTIC:
        raise ValueError(f"write already settled ({pending.phase.value})")


def confirm_write(pending: PendingWrite, saved: Comment) -> PendingWrite:
    """OPTIMISTIC -> CONFIRMED. The saved comment inherits the provisional render key."""
    _require_optimistic(pending)
    confirmed = replace(saved, client_key=pending.provisional.client_key)
    return replace(pending, phase=WritePhase.CONFIRMED, confirmed=confirmed)


def roll_back_write(
    pending: PendingWrite, current: Draft, error: str
) -> tuple[PendingWrite, Draft, str | None]:
    """
    OPTIMISTIC -> ROLLED_BACK.

    Returns ``(pending, draft, unrestored_text)``. The failed draft comes back
    verbatim when the composer is still empty; otherwise whatever the user
    typed since is kept and the failed text is handed back for the notice.
    """
    _require_optimistic(pending)
    rolled_back = replace(pending, phase=WritePhase.ROLLED_BACK, error=error)
    if current.is_empty:
        return rolled_back, pending.draft, None
    return rolled_back, current, pending.draft.text
