"""
Client-side comment store for the open video.

Holds the flat comment list and the raw reaction rows per comment. Every
mutation is synchronous and all-or-nothing: the derived tree (organize) and
the reaction aggregates (aggregate) are rebuilt before the new state is
committed, and a mutation that cannot be organized leaves the store as it was.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from dataclasses import replace

from .models import DELETED_MARKER, Comment, Reaction, ReactionSummary
from .reactions import aggregate, group_by_comment
from .threads import organize

logger = logging.getLogger("framenote.review.store")

StoreListener = Callable[[list[Comment]], None]


class CommentStore:
    def __init__(
        self,
        comments: Iterable[Comment] = (),
        reactions: Iterable[Reaction] = (),
        *,
        actor_key: str | None = None,
    ) -> None:
        self._actor_key = actor_key
        self._comments: list[Comment] = []
        self._rows: dict[str, list[Reaction]] = {}
        # Aggregates handed in whole through apply_reaction_update. They stand
        # in for the fold over rows until fresh rows for the comment arrive.
        self._pinned: dict[str, list[ReactionSummary]] = {}
        self._aggregates: dict[str, list[ReactionSummary]] = {}
        self._listeners: list[StoreListener] = []
        self._tree: list[Comment] = []
        self.load(comments, reactions)

    # -- reads ---------------------------------------------------------

    @property
    def actor_key(self) -> str | None:
        return self._actor_key

    def comments(self) -> list[Comment]:
        return list(self._comments)

    def get(self, comment_id: str) -> Comment | None:
        for comment in self._comments:
            if comment.id == comment_id:
                return comment
        return None

    def get_tree(self) -> list[Comment]:
        return list(self._tree)

    def reaction_rows(self, comment_id: str) -> list[Reaction]:
        return list(self._rows.get(comment_id, ()))

    def reactions_for(self, comment_id: str) -> list[ReactionSummary]:
        return list(self._aggregates.get(comment_id, ()))

    def __contains__(self, comment_id: object) -> bool:
        return any(comment.id == comment_id for comment in self._comments)

    def __len__(self) -> int:
        return len(self._comments)

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # -- mutations -----------------------------------------------------

    def load(self, comments: Iterable[Comment], reactions: Iterable[Reaction] = ()) -> None:
        loaded: list[Comment] = []
        seen: set[str] = set()
        for comment in comments:
            if comment.id in seen:
                continue
            seen.add(comment.id)
            loaded.append(replace(comment, replies=(), reactions=()))
        rows = {
            comment_id: comment_rows
            for comment_id, comment_rows in group_by_comment(reactions).items()
            if comment_id in seen
        }
        with self._mutation():
            self._comments = loaded
            self._rows = rows
            self._pinned = {}

    def apply_insert(self, comment: Comment) -> bool:
        if comment.id in self:
            return False
        with self._mutation():
            self._comments.append(replace(comment, replies=(), reactions=()))
        return True

    def apply_replace(self, old_id: str, new_comment: Comment) -> bool:
        index = self._index_of(old_id)
        if index is None:
            return False
        old = self._comments[index]
        new_comment = replace(
            new_comment,
            client_key=old.client_key or new_comment.client_key,
            replies=(),
            reactions=(),
        )
        existing = self._index_of(new_comment.id) if new_comment.id != old_id else None
        with self._mutation():
            if existing is not None:
                # The realtime echo landed before the write returned: keep one copy.
                self._comments[existing] = self._keep_deleted(self._comments[existing], new_comment)
                del self._comments[index]
            else:
                self._comments[index] = self._keep_deleted(old, new_comment)
            if new_comment.id != old_id:
                rows = self._rows.pop(old_id, None)
                if rows is not None:
                    self._rows.setdefault(
                        new_comment.id,
                        [replace(row, comment_id=new_comment.id) for row in rows],
                    )
                pinned = self._pinned.pop(old_id, None)
                if pinned is not None:
                    self._pinned.setdefault(new_comment.id, pinned)
        return True

    def apply_remove(self, comment_id: str) -> bool:
        index = self._index_of(comment_id)
        if index is None:
            return False
        with self._mutation():
            del self._comments[index]
            self._rows.pop(comment_id, None)
            self._pinned.pop(comment_id, None)
        return True

    def apply_soft_delete(self, comment_id: str) -> bool:
        index = self._index_of(comment_id)
        if index is None:
            return False
        current = self._comments[index]
        if current.is_deleted and current.content == DELETED_MARKER:
            return False
        with self._mutation():
            self._comments[index] = replace(current, is_deleted=True, content=DELETED_MARKER)
        return True

    def apply_reaction_update(
        self, comment_id: str, aggregated: Iterable[ReactionSummary]
    ) -> bool:
        """
        Pin already-aggregated reactions for a comment. The pin outlives
        set_actor_key and apply_replace (there are no rows to refold) and is
        dropped the next time apply_reaction_rows delivers the raw rows.
        """
        if comment_id not in self:
            return False
        with self._mutation():
            self._pinned[comment_id] = [summary for summary in aggregated if summary.count > 0]
        return True

    def apply_reaction_rows(self, comment_id: str, rows: Iterable[Reaction]) -> bool:
        if comment_id not in self:
            return False
        rows = [row for row in rows if row.comment_id == comment_id]
        with self._mutation():
            self._pinned.pop(comment_id, None)
            if rows:
                self._rows[comment_id] = rows
            else:
                self._rows.pop(comment_id, None)
        return True

    def set_actor_key(self, actor_key: str | None) -> None:
        if actor_key == self._actor_key:
            return
        with self._mutation():
            self._actor_key = actor_key

    # -- internals -----------------------------------------------------

    def _index_of(self, comment_id: str) -> int | None:
        for index, comment in enumerate(self._comments):
            if comment.id == comment_id:
                return index
        return None

    @staticmethod
    def _keep_deleted(current: Comment, incoming: Comment) -> Comment:
        if current.is_deleted:
            return replace(incoming, is_deleted=True, content=DELETED_MARKER)
        return incoming

    @contextmanager
    def _mutation(self):
        saved = (
            list(self._comments),
            dict(self._rows),
            dict(self._pinned),
            self._actor_key,
        )
        try:
            yield
            aggregates = self._build_aggregates()
            tree = self._build_tree(aggregates)
        except Exception:
            self._comments, self._rows, self._pinned, self._actor_key = saved
            raise
        self._aggregates = aggregates
        self._tree = tree
        self._notify()

    def _build_aggregates(self) -> dict[str, list[ReactionSummary]]:
        aggregates = {
            comment_id: aggregate(rows, self._actor_key) for comment_id, rows in self._rows.items()
        }
        aggregates.update(self._pinned)
        return {comment_id: summaries for comment_id, summaries in aggregates.items() if summaries}

    def _build_tree(self, aggregates: dict[str, list[ReactionSummary]]) -> list[Comment]:
        def _with_reactions(comment: Comment) -> Comment:
            return replace(comment, reactions=tuple(aggregates.get(comment.id, ())))

        tree = organize(_with_reactions(comment) for comment in self._comments)
        return [
            replace(root, replies=tuple(_with_reactions(reply) for reply in root.replies))
            for root in tree
        ]

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.get_tree())
            except Exception:
                logger.exception("Comment store listener failed")
