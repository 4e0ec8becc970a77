"""
Reaction folding.

Aggregates are always recomputed from the raw reaction rows. The optimistic
toggle is itself a fold over the rows (`toggle_rows`) so local state and the
backend apply one rule: at most one row per (comment, reactor), same type
again removes it, a different type replaces it.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from .models import REACTION_TYPES, Reaction, ReactionSummary

ACTION_ADDED = "added"
ACTION_UPDATED = "updated"
ACTION_REMOVED = "removed"

_TYPE_ORDER = {reaction_type: index for index, reaction_type in enumerate(REACTION_TYPES)}


def _type_sort_key(reaction_type: str):
    return (_TYPE_ORDER.get(reaction_type, len(_TYPE_ORDER)), reaction_type)


def aggregate(rows: Iterable[Reaction], actor_key: str | None) -> list[ReactionSummary]:
    counts: dict[str, int] = {}
    reacted: set[str] = set()
    for row in rows:
        counts[row.reaction_type] = counts.get(row.reaction_type, 0) + 1
        if actor_key is not None and row.reactor_key == actor_key:
            reacted.add(row.reaction_type)
    return [
        ReactionSummary(type=reaction_type, count=counts[reaction_type], has_reacted=reaction_type in reacted)
        for reaction_type in sorted(counts, key=_type_sort_key)
    ]


def toggle_rows(
    rows: Iterable[Reaction],
    comment_id: str,
    reaction_type: str,
    *,
    user_id: str | None = None,
    guest_session_id: str | None = None,
    row_id: str | None = None,
) -> tuple[list[Reaction], str]:
    reactor_key = user_id or guest_session_id
    if not reactor_key:
        raise ValueError("A reactor identity is required")

    result: list[Reaction] = []
    action = None
    for row in rows:
        if row.comment_id != comment_id or row.reactor_key != reactor_key:
            result.append(row)
            continue
        if action is not None:
            # A duplicate row for the same reactor; the toggle collapses it.
            continue
        if row.reaction_type == reaction_type:
            action = ACTION_REMOVED
        else:
            result.append(
                Reaction(
                    id=row.id,
                    comment_id=row.comment_id,
                    reaction_type=reaction_type,
                    user_id=row.user_id,
                    guest_session_id=row.guest_session_id,
                )
            )
            action = ACTION_UPDATED

    if action is None:
        result.append(
            Reaction(
                id=row_id or f"temp-{uuid.uuid4()}",
                comment_id=comment_id,
                reaction_type=reaction_type,
                user_id=user_id,
                guest_session_id=None if user_id else guest_session_id,
            )
        )
        action = ACTION_ADDED
    return result, action


def group_by_comment(rows: Iterable[Reaction]) -> dict[str, list[Reaction]]:
    grouped: dict[str, list[Reaction]] = {}
    for row in rows:
        grouped.setdefault(row.comment_id, []).append(row)
    return grouped
