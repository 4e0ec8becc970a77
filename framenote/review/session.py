from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from .coordinator import NOTICE_ERROR, MutationCoordinator, Notice
from .dedup import RecentWrites
from .errors import ApiError
from .identity import ActorIdentity, generate_guest_name
from .models import Comment, GuestSession, Reaction
from .realtime import Subscription
from .store import CommentStore

logger = logging.getLogger("framenote.review.session")

MAX_GUEST_NAME_LENGTH = 30


class ReviewSession:
    """
    Everything one open video needs: the comment store, the coordinator that
    writes through it and the realtime subscription that feeds it. The
    subscription lives exactly as long as the session.
    """

    def __init__(
        self,
        *,
        project_id: str,
        video_id: str,
        api,
        feed,
        session_token: str | None = None,
        user_id: str | None = None,
        author_name: str | None = None,
        name_prompt: Callable[[], Awaitable[str | None]] | None = None,
        dedup: RecentWrites | None = None,
        on_comment_added: Callable[[Comment], None] | None = None,
        on_notice: Callable[[Notice], None] | None = None,
    ) -> None:
        self.project_id = project_id
        self.video_id = video_id
        self.api = api
        self.feed = feed
        self.session_token = session_token
        self.guest_session: GuestSession | None = None
        self.name_prompt = name_prompt
        self._user_id = user_id
        self._subscription: Subscription | None = None
        self._opened = False
        self._closed = False

        identity = ActorIdentity(author_name=author_name, user_id=user_id) if user_id else None
        self.store = CommentStore()
        self.coordinator = MutationCoordinator(
            self.store,
            api,
            project_id=project_id,
            video_id=video_id,
            identity=identity,
            dedup=dedup,
            on_comment_added=on_comment_added,
            on_notice=on_notice,
        )

    @property
    def identity(self) -> ActorIdentity | None:
        return self.coordinator.identity

    @property
    def tree(self) -> list[Comment]:
        return self.store.get_tree()

    async def open(
        self, snapshot: tuple[list[Comment], list[Reaction]] | None = None
    ) -> ReviewSession:
        if self._closed:
            raise RuntimeError("Review session is closed")
        if self._opened:
            return self
        if snapshot is None:
            snapshot = await self.api.fetch_snapshot(self.video_id)
        comments, reactions = snapshot
        self.store.load(comments, reactions)
        await self._restore_guest_session()
        self._subscription = await self.feed.subscribe(
            self.video_id,
            self.coordinator.handle_insert_event,
            self.coordinator.handle_reaction_event,
            on_update=self.coordinator.handle_update_event,
        )
        self._opened = True
        return self

    async def _restore_guest_session(self) -> None:
        if not self.session_token or self._user_id:
            return
        try:
            session = await self.api.get_guest_session(self.session_token)
        except Exception as exc:
            logger.warning("Guest session lookup failed: %s", exc)
            session = None
        if session is None or (session.project_id and session.project_id != self.project_id):
            self.session_token = None
            return
        self._adopt(session)

    def _adopt(self, session: GuestSession) -> None:
        self.guest_session = session
        if session.session_token:
            self.session_token = session.session_token
        self.coordinator.set_identity(ActorIdentity(author_name=session.name, guest_session_id=session.id))

    async def resolve_identity(self, name: str | None = None) -> ActorIdentity:
        current = self.coordinator.identity
        if name is None and current is not None and current.is_resolved:
            return current
        if name is None and self.name_prompt is not None:
            name = await self.name_prompt()
        name = (name or "").strip()[:MAX_GUEST_NAME_LENGTH] or generate_guest_name()

        if self._user_id:
            self.coordinator.set_identity(ActorIdentity(author_name=name, user_id=self._user_id))
        else:
            session = await self.api.create_guest_session(self.project_id, name)
            self._adopt(session)
        return self.coordinator.identity

    async def rename_guest(self, name: str) -> str:
        if not self.session_token or self.guest_session is None:
            raise RuntimeError("No guest session to rename")
        name = name.strip()[:MAX_GUEST_NAME_LENGTH]
        if not name:
            raise ValueError("Name is required")
        saved = await self.api.update_guest_name(self.session_token, name)
        self._adopt(GuestSession(
            id=self.guest_session.id,
            name=saved,
            project_id=self.guest_session.project_id,
            session_token=self.session_token,
        ))
        return saved

    async def submit_comment(self) -> Comment | None:
        identity = self.coordinator.identity
        if identity is None or not identity.is_resolved:
            try:
                await self.resolve_identity()
            except ApiError as exc:
                logger.warning("Could not start a guest session: %s", exc)
                self.coordinator.notify(Notice(NOTICE_ERROR, "Couldn't start a guest session"))
                return None
        return await self.coordinator.submit_comment()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.coordinator.close()
        if self._subscription is not None:
            await self._subscription.aclose()
            self._subscription = None

    async def __aenter__(self) -> ReviewSession:
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
