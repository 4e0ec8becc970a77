from __future__ import annotations

import asyncio
import logging
import os

import requests

from .errors import ApiError, ForbiddenError, NotFoundError
from .identity import ActorIdentity
from .models import Comment, GuestSession, Reaction

logger = logging.getLogger("framenote.review.api")

API_BASE_URL = os.environ.get("FRAMENOTE_API_BASE_URL", "http://127.0.0.1:5000")
API_TIMEOUT_SECONDS = float(os.environ.get("FRAMENOTE_API_TIMEOUT_SECONDS", "10"))


def _requester(identity: ActorIdentity | None) -> dict:
    if identity is None:
        return {}
    body = {}
    if identity.user_id:
        body["user_id"] = identity.user_id
    if identity.guest_session_id:
        body["guest_session_id"] = identity.guest_session_id
    return body


class ReviewApiClient:
    """
    Blocking client for the review backend. Returns the review dataclasses
    and raises ApiError (NotFoundError / ForbiddenError for 404 / 403) on any
    non-2xx answer or transport failure.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = (base_url or API_BASE_URL).rstrip("/")
        self.timeout = API_TIMEOUT_SECONDS if timeout is None else timeout
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(f"Request failed: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.status_code >= 400:
            message = str(data.get("error") or resp.reason or "Request failed")
            if resp.status_code == 404:
                raise NotFoundError(message, resp.status_code)
            if resp.status_code in {401, 403}:
                raise ForbiddenError(message, resp.status_code)
            raise ApiError(message, resp.status_code)
        return data

    # Comments

    def fetch_snapshot(self, video_id: str) -> tuple[list[Comment], list[Reaction]]:
        data = self._request("GET", f"/api/videos/{video_id}/comments")
        comments = [Comment.from_dict(row) for row in data.get("comments") or []]
        reactions = [Reaction.from_dict(row) for row in data.get("reactions") or []]
        return comments, reactions

    def create_comment(
        self,
        *,
        project_id: str,
        video_id: str,
        content: str,
        timestamp_seconds: float,
        author_name: str,
        user_id: str | None = None,
        guest_session_id: str | None = None,
        parent_comment_id: str | None = None,
    ) -> Comment:
        body = {
            "project_id": project_id,
            "video_id": video_id,
            "content": content,
            "timestamp_seconds": timestamp_seconds,
            "author_name": author_name,
            "user_id": user_id,
            "guest_session_id": guest_session_id,
            "parent_comment_id": parent_comment_id,
        }
        data = self._request("POST", "/api/comments", json=body)
        return Comment.from_dict(data.get("comment") or {})

    def delete_comment(self, comment_id: str, identity: ActorIdentity | None) -> None:
        self._request("DELETE", f"/api/comments/{comment_id}", json=_requester(identity))

    def toggle_reaction(
        self, comment_id: str, reaction_type: str, identity: ActorIdentity | None
    ) -> str:
        body = {"reaction_type": reaction_type, **_requester(identity)}
        data = self._request("POST", f"/api/comments/{comment_id}/reactions", json=body)
        return str(data.get("action") or "")

    def fetch_reactions(self, comment_id: str) -> list[Reaction]:
        data = self._request("GET", f"/api/comments/{comment_id}/reactions")
        return [Reaction.from_dict(row) for row in data.get("reactions") or []]

    # Guest sessions

    def create_guest_session(self, project_id: str, name: str) -> GuestSession:
        data = self._request(
            "POST", "/api/guest/sessions", json={"project_id": project_id, "name": name}
        )
        return GuestSession(
            id=str(data["guest_session_id"]),
            name=str(data.get("name") or name),
            project_id=project_id,
            session_token=data.get("session_token"),
        )

    def get_guest_session(self, token: str) -> GuestSession | None:
        data = self._request("GET", "/api/guest/session", params={"token": token})
        session = data.get("session")
        if not isinstance(session, dict):
            return None
        return GuestSession(
            id=str(session["id"]),
            name=str(session.get("name") or ""),
            project_id=session.get("project_id"),
            session_token=token,
        )

    def update_guest_name(self, token: str, name: str) -> str:
        data = self._request("PATCH", "/api/guest/session", json={"token": token, "name": name})
        return str(data.get("name") or name)

    def close(self) -> None:
        self._session.close()


class AsyncReviewApi:
    """Runs a ReviewApiClient off the event loop, one worker thread per call."""

    def __init__(self, client: ReviewApiClient | None = None) -> None:
        self.client = client or ReviewApiClient()

    async def fetch_snapshot(self, video_id: str) -> tuple[list[Comment], list[Reaction]]:
        return await asyncio.to_thread(self.client.fetch_snapshot, video_id)

    async def create_comment(self, **kwargs) -> Comment:
        return await asyncio.to_thread(self.client.create_comment, **kwargs)

    async def delete_comment(self, comment_id: str, identity: ActorIdentity | None) -> None:
        await asyncio.to_thread(self.client.delete_comment, comment_id, identity)

    async def toggle_reaction(
        self, comment_id: str, reaction_type: str, identity: ActorIdentity | None
    ) -> str:
        return await asyncio.to_thread(self.client.toggle_reaction, comment_id, reaction_type, identity)

    async def fetch_reactions(self, comment_id: str) -> list[Reaction]:
        return await asyncio.to_thread(self.client.fetch_reactions, comment_id)

    async def create_guest_session(self, project_id: str, name: str) -> GuestSession:
        return await asyncio.to_thread(self.client.create_guest_session, project_id, name)

    async def get_guest_session(self, token: str) -> GuestSession | None:
        return await asyncio.to_thread(self.client.get_guest_session, token)

    async def update_guest_name(self, token: str, name: str) -> str:
        return await asyncio.to_thread(self.client.update_guest_name, token, name)

    async def close(self) -> None:
        self.client.close()
