"""
Mutation coordinator: optimistic writes against the comment store.

Adds are applied locally first and reconciled (or rolled back) when the
create call settles. Deletes wait for the backend before touching the store.
Reactions fold optimistically, then converge through authoritative re-fetches
of the comment's raw rows. Realtime events for rows this client wrote itself
are dropped through a short-lived de-dup set.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from .composer import (
    Draft,
    PendingWrite,
    begin_submit,
    cancel_reply,
    confirm_write,
    edit,
    make_provisional_id,
    roll_back_write,
    set_timestamp,
    start_reply,
)
from .dedup import RecentWrites
from .errors import IdentityRequiredError, ValidationError
from .identity import ActorIdentity, owns_comment
from .models import PROVISIONAL_PREFIX, REACTION_TYPES, Comment
from .realtime import reaction_comment_id
from .reactions import toggle_rows
from .store import CommentStore

logger = logging.getLogger("framenote.review.coordinator")

NOTICE_ERROR = "error"
NOTICE_WARNING = "warning"


@dataclass(frozen=True)
class Notice:
    level: str
    message: str
    draft_text: str | None = None


class MutationCoordinator:
    def __init__(
        self,
        store: CommentStore,
        api,
        *,
        project_id: str,
        video_id: str,
        identity: ActorIdentity | None = None,
        dedup: RecentWrites | None = None,
        clock: Callable[[], float] = time.time,
        on_comment_added: Callable[[Comment], None] | None = None,
        on_notice: Callable[[Notice], None] | None = None,
    ) -> None:
        self.store = store
        self.api = api
        self.project_id = project_id
        self.video_id = video_id
        self.dedup = dedup or RecentWrites()
        self.draft = Draft()
        self.pending: dict[str, PendingWrite] = {}
        self.notices: list[Notice] = []
        self.on_comment_added = on_comment_added
        self.on_notice = on_notice
        self._clock = clock
        self._identity: ActorIdentity | None = None
        self._reaction_seq: dict[str, int] = {}
        self._reaction_row_counter = 0
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self.set_identity(identity)

    @property
    def identity(self) -> ActorIdentity | None:
        return self._identity

    @property
    def closed(self) -> bool:
        return self._closed

    def set_identity(self, identity: ActorIdentity | None) -> None:
        self._identity = identity
        self.store.set_actor_key(identity.reactor_key if identity else None)

    # Composer

    def edit_draft(self, text: str) -> Draft:
        self.draft = edit(self.draft, text)
        return self.draft

    def set_timestamp(self, seconds: float) -> Draft:
        self.draft = set_timestamp(self.draft, seconds)
        return self.draft

    def start_reply(self, comment_id: str) -> Draft:
        if comment_id not in self.store:
            raise ValidationError("Cannot reply to an unknown comment")
        self.draft = start_reply(self.draft, comment_id)
        return self.draft

    def cancel_reply(self) -> Draft:
        self.draft = cancel_reply(self.draft)
        return self.draft

    # Notices

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        if self.on_notice is None:
            return
        try:
            self.on_notice(notice)
        except Exception:
            logger.exception("Notice callback failed")

    def dismiss_notice(self, notice: Notice) -> None:
        if notice in self.notices:
            self.notices.remove(notice)

    # Add

    def _next_provisional_id(self) -> str:
        taken = {comment.id for comment in self.store.comments()} | set(self.pending)
        return make_provisional_id(int(self._clock() * 1000), taken)

    async def submit_comment(self) -> Comment | None:
        """
        Returns the confirmed comment, or None when the write was rolled back
        (or settled after close). Validation and missing identity raise before
        the store is touched.
        """
        identity = self._identity
        pending, self.draft = begin_submit(
            self.draft,
            identity,
            provisional_id=self._next_provisional_id(),
            project_id=self.project_id,
            video_id=self.video_id,
            now=datetime.fromtimestamp(self._clock(), UTC),
        )
        provisional = pending.provisional
        self.pending[provisional.id] = pending
        self.store.apply_insert(provisional)
        if self.on_comment_added is not None:
            try:
                self.on_comment_added(provisional)
            except Exception:
                logger.exception("on_comment_added callback failed")

        try:
            saved = await self.api.create_comment(
                project_id=self.project_id,
                video_id=self.video_id,
                content=provisional.content,
                timestamp_seconds=provisional.timestamp_seconds,
                author_name=provisional.author_name,
                user_id=identity.user_id,
                guest_session_id=identity.guest_session_id,
                parent_comment_id=provisional.parent_comment_id,
            )
        except Exception as exc:
            logger.warning("Failed to add comment to video %s: %s", self.video_id, exc)
            if self._closed:
                return None
            _, self.draft, unrestored = roll_back_write(pending, self.draft, str(exc))
            self.pending.pop(provisional.id, None)
            self.store.apply_remove(provisional.id)
            self.notify(Notice(NOTICE_ERROR, "Failed to add comment", draft_text=unrestored))
            return None

        if self._closed:
            return None
        confirmed = confirm_write(pending, saved).confirmed
        self.dedup.add(confirmed.id)
        self.pending.pop(provisional.id, None)
        self.store.apply_replace(provisional.id, confirmed)
        return confirmed

    # Delete

    async def delete_comment(self, comment_id: str, *, confirmed: bool = False) -> bool:
        if not confirmed:
            raise ValidationError("Deleting a comment must be confirmed")
        comment = self.store.get(comment_id)
        if comment is None:
            raise LookupError(f"Comment {comment_id} not found")
        if comment.is_provisional:
            raise ValidationError("Comment is still being saved")
        if not owns_comment(comment.author_id, comment.guest_session_id, self._identity):
            raise PermissionError("You can only delete your own comments")
        if comment.is_deleted:
            return True

        try:
            await self.api.delete_comment(comment_id, self._identity)
        except Exception as exc:
            logger.warning("Failed to delete comment %s: %s", comment_id, exc)
            if not self._closed:
                self.notify(Notice(NOTICE_ERROR, "Failed to delete comment"))
            return False

        if self._closed:
            return False
        self.store.apply_soft_delete(comment_id)
        return True

    # Reactions

    def _next_reaction_seq(self, comment_id: str) -> int:
        seq = self._reaction_seq.get(comment_id, 0) + 1
        self._reaction_seq[comment_id] = seq
        return seq

    async def toggle_reaction(self, comment_id: str, reaction_type: str) -> str:
        identity = self._identity
        if identity is None or not identity.reactor_key:
            raise IdentityRequiredError("Enter a name before reacting")
        if reaction_type not in REACTION_TYPES:
            raise ValidationError(f"Unknown reaction type: {reaction_type}")
        comment = self.store.get(comment_id)
        if comment is None:
            raise LookupError(f"Comment {comment_id} not found")
        if comment.is_provisional:
            raise ValidationError("Comment is still being saved")

        self._reaction_row_counter += 1
        rows, action = toggle_rows(
            self.store.reaction_rows(comment_id),
            comment_id,
            reaction_type,
            user_id=identity.user_id,
            guest_session_id=identity.guest_session_id,
            row_id=f"{PROVISIONAL_PREFIX}reaction-{self._reaction_row_counter}",
        )
        # Any fetch issued before this fold is stale now.
        self._next_reaction_seq(comment_id)
        self.store.apply_reaction_rows(comment_id, rows)

        try:
            server_action = await self.api.toggle_reaction(comment_id, reaction_type, identity)
        except Exception as exc:
            logger.warning("Failed to toggle %s on comment %s: %s", reaction_type, comment_id, exc)
            if self._closed:
                return action
            self.notify(Notice(NOTICE_WARNING, "Couldn't save your reaction"))
            await self.refresh_reactions(comment_id)
            return action
        return server_action or action

    async def refresh_reactions(self, comment_id: str) -> bool:
        """Replace the comment's rows with the backend's; stale answers are dropped."""
        seq = self._next_reaction_seq(comment_id)
        try:
            rows = await self.api.fetch_reactions(comment_id)
        except Exception as exc:
            logger.warning("Failed to refresh reactions for comment %s: %s", comment_id, exc)
            return False
        if self._closed or self._reaction_seq.get(comment_id) != seq:
            return False
        return self.store.apply_reaction_rows(comment_id, rows)

    # Realtime intake

    def handle_insert_event(self, row: dict) -> bool:
        if self._closed:
            return False
        try:
            comment = Comment.from_dict(row)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed comment event: %s", exc)
            return False
        if comment.video_id is not None and comment.video_id != self.video_id:
            return False
        if comment.id in self.dedup:
            logger.debug("Dropping echo of local write %s", comment.id)
            return False
        return self.store.apply_insert(comment)

    def handle_update_event(self, row: dict) -> bool:
        if self._closed:
            return False
        comment_id = row.get("id")
        if not comment_id or not row.get("is_deleted"):
            return False
        return self.store.apply_soft_delete(str(comment_id))

    def handle_reaction_event(self, payload: dict) -> asyncio.Task | None:
        if self._closed:
            return None
        comment_id = reaction_comment_id(payload)
        if comment_id is None or comment_id not in self.store:
            return None
        return self._spawn(self.refresh_reactions(comment_id))

    def _spawn(self, coro) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; realtime refresh skipped")
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Stop applying results; in-flight requests are left to finish on their own."""
        self._closed = True
        self.pending.clear()
