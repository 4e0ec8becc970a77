"""
Thread organizer: flat comment list -> two-level tree.

Roots sort by the whole second of the video they point at, then by creation
time, so comments left at "the same moment" cluster together. Replies sort by
creation time only. Anything nested deeper than one level is re-parented onto
its nearest root for display; `parent_comment_id` itself is never rewritten.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import replace

from .models import Comment


def _root_sort_key(comment: Comment):
    return (math.floor(comment.timestamp_seconds), comment.created_at, comment.id)


def _reply_sort_key(comment: Comment):
    return (comment.created_at, comment.id)


def _resolve_root_id(comment: Comment, by_id: dict[str, Comment]) -> str:
    current = comment
    seen = {current.id}
    while current.parent_comment_id is not None:
        parent = by_id.get(current.parent_comment_id)
        if parent is None:
            # Missing parent: the last ancestor we could reach is the root.
            return current.id
        if parent.id in seen:
            return comment.id
        seen.add(parent.id)
        current = parent
    return current.id


def organize(comments: Iterable[Comment]) -> list[Comment]:
    flat: list[Comment] = []
    by_id: dict[str, Comment] = {}
    for comment in comments:
        if comment.id in by_id:
            continue
        stripped = replace(comment, replies=())
        by_id[comment.id] = stripped
        flat.append(stripped)

    roots: list[Comment] = []
    replies: dict[str, list[Comment]] = {}
    for comment in flat:
        root_id = _resolve_root_id(comment, by_id)
        if root_id == comment.id:
            roots.append(comment)
        else:
            replies.setdefault(root_id, []).append(comment)

    roots.sort(key=_root_sort_key)
    return [
        replace(root, replies=tuple(sorted(replies.get(root.id, ()), key=_reply_sort_key)))
        for root in roots
    ]


def flatten(tree: Iterable[Comment]) -> list[Comment]:
    flat: list[Comment] = []
    for root in tree:
        flat.append(replace(root, replies=()))
        for reply in root.replies:
            flat.append(replace(reply, replies=()))
    return flat


def iter_thread(tree: Iterable[Comment]):
    for root in tree:
        yield root
        yield from root.replies


def render_key(comment: Comment) -> str:
    return comment.client_key or comment.id
