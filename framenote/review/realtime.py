"""
Realtime change feed.

Events are small JSON documents shaped like database change notifications:

    {"table": "comments", "event": "INSERT", "video_id": "...", "new": {...}}
    {"table": "comment_reactions", "event": "DELETE", "new": None, "old": {...}}

Comment events go out on a per-video channel; reaction events go out on one
shared channel because a reaction row does not carry its video id.
Delivery is best-effort and at-least-once, with no ordering guarantee.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from collections.abc import Callable

import redis.asyncio as aioredis

logger = logging.getLogger("framenote.review.realtime")

REALTIME_PREFIX = os.environ.get("FRAMENOTE_REALTIME_PREFIX", "framenote:realtime:")
REDIS_CONNECT_TIMEOUT_SECONDS = float(os.environ.get("FRAMENOTE_REDIS_CONNECT_TIMEOUT_SECONDS", "2"))

COMMENTS_TABLE = "comments"
REACTIONS_TABLE = "comment_reactions"
INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

EventCallback = Callable[[dict], None]


def comments_channel(video_id: str, prefix: str = REALTIME_PREFIX) -> str:
    return f"{prefix}comments:{video_id}"


def reactions_channel(prefix: str = REALTIME_PREFIX) -> str:
    return f"{prefix}reactions"


def comment_event(event: str, row: dict) -> dict:
    return {"table": COMMENTS_TABLE, "event": event, "video_id": row.get("video_id"), "new": row}


def reaction_event(event: str, *, new: dict | None = None, old: dict | None = None) -> dict:
    return {"table": REACTIONS_TABLE, "event": event, "new": new, "old": old}


def channel_for(payload: dict, prefix: str = REALTIME_PREFIX) -> str:
    if payload.get("table") == COMMENTS_TABLE:
        return comments_channel(str(payload.get("video_id")), prefix)
    return reactions_channel(prefix)


def encode_event(payload: dict) -> str:
    return json.dumps(payload, separators=(",", ":"))


def decode_event(raw) -> dict | None:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(payload, dict) or payload.get("table") not in (COMMENTS_TABLE, REACTIONS_TABLE):
        return None
    return payload


def reaction_comment_id(payload: dict) -> str | None:
    """The comment a reaction event touches, from whichever row image is present."""
    for key in ("new", "old"):
        row = payload.get(key)
        if isinstance(row, dict) and row.get("comment_id"):
            return str(row["comment_id"])
    return None


def dispatch_event(
    payload: dict,
    *,
    video_id: str,
    on_insert: EventCallback,
    on_reaction_change: EventCallback,
    on_update: EventCallback | None = None,
) -> None:
    table = payload.get("table")
    try:
        if table == COMMENTS_TABLE:
            row = payload.get("new")
            if not isinstance(row, dict):
                return
            if str(payload.get("video_id") or row.get("video_id")) != str(video_id):
                return
            if payload.get("event") == INSERT:
                on_insert(row)
            elif payload.get("event") == UPDATE and on_update is not None:
                on_update(row)
        elif table == REACTIONS_TABLE:
            on_reaction_change(payload)
    except Exception:
        logger.exception("Realtime callback failed for %s event", table)


class Subscription:
    """
    Handle for one live subscription. ``close()`` is idempotent and may be
    called from synchronous code; ``aclose()`` also waits for the listener
    to finish releasing its connection.
    """

    def __init__(self, on_close: Callable[[], None], *, task: asyncio.Task | None = None):
        self._on_close = on_close
        self._task = task
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_close()

    async def aclose(self) -> None:
        self.close()
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class InMemoryRealtimeFeed:
    """Synchronous fan-out inside one process."""

    def __init__(self, prefix: str = REALTIME_PREFIX):
        self.prefix = prefix
        self._handlers: dict[str, list[Callable[[dict], None]]] = {}

    async def subscribe(
        self,
        video_id: str,
        on_insert: EventCallback,
        on_reaction_change: EventCallback,
        on_update: EventCallback | None = None,
    ) -> Subscription:
        def _handle(payload: dict) -> None:
            dispatch_event(
                payload,
                video_id=video_id,
                on_insert=on_insert,
                on_reaction_change=on_reaction_change,
                on_update=on_update,
            )

        channels = (comments_channel(video_id, self.prefix), reactions_channel(self.prefix))
        for channel in channels:
            self._handlers.setdefault(channel, []).append(_handle)

        def _release() -> None:
            for channel in channels:
                handlers = self._handlers.get(channel, [])
                if _handle in handlers:
                    handlers.remove(_handle)
                if not handlers:
                    self._handlers.pop(channel, None)

        return Subscription(_release)

    def publish(self, payload: dict) -> int:
        handlers = list(self._handlers.get(channel_for(payload, self.prefix), ()))
        for handler in handlers:
            handler(payload)
        return len(handlers)

    def subscriber_count(self, channel: str) -> int:
        return len(self._handlers.get(channel, ()))

    async def close(self) -> None:
        self._handlers.clear()


class RedisRealtimeFeed:
    """Redis pub/sub listener; one pubsub connection and task per subscription."""

    def __init__(
        self,
        url: str | None = None,
        *,
        client: aioredis.Redis | None = None,
        prefix: str = REALTIME_PREFIX,
    ):
        if client is None and not url:
            raise ValueError("RedisRealtimeFeed needs a redis URL or client")
        self.prefix = prefix
        self._owns_client = client is None
        self._client = client or aioredis.Redis.from_url(
            url,
            socket_connect_timeout=REDIS_CONNECT_TIMEOUT_SECONDS,
            decode_responses=True,
        )

    async def subscribe(
        self,
        video_id: str,
        on_insert: EventCallback,
        on_reaction_change: EventCallback,
        on_update: EventCallback | None = None,
    ) -> Subscription:
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        channels = (comments_channel(video_id, self.prefix), reactions_channel(self.prefix))
        await pubsub.subscribe(*channels)

        async def _listen() -> None:
            try:
                async for message in pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    payload = decode_event(message.get("data"))
                    if payload is None:
                        logger.warning("Dropping malformed realtime message on %s", message.get("channel"))
                        continue
                    dispatch_event(
                        payload,
                        video_id=video_id,
                        on_insert=on_insert,
                        on_reaction_change=on_reaction_change,
                        on_update=on_update,
                    )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Realtime channel for video %s stopped: %s", video_id, exc)
            finally:
                with contextlib.suppress(Exception):
                    await pubsub.unsubscribe(*channels)
                with contextlib.suppress(Exception):
                    await pubsub.aclose()

        task = asyncio.create_task(_listen(), name=f"framenote-realtime-{video_id}")
        return Subscription(task.cancel, task=task)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
