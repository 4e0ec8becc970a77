from __future__ import annotations

import logging
from collections.abc import Callable

from ..metrics import REALTIME_PUBLISH
from ..review.realtime import (
    DELETE,
    INSERT,
    REALTIME_PREFIX,
    UPDATE,
    channel_for,
    comment_event,
    encode_event,
    reaction_event,
)
from .redis_client import _get_redis_client

logger = logging.getLogger("framenote.realtime")


class RealtimePublisher:
    """
    Publishes row changes to the realtime channels. Publishing is best-effort:
    a missing or failing redis never fails the write that triggered it.
    """

    def __init__(self, client_factory: Callable = _get_redis_client, prefix: str = REALTIME_PREFIX):
        self._client_factory = client_factory
        self.prefix = prefix

    def publish(self, payload: dict) -> bool:
        table = str(payload.get("table"))
        client = self._client_factory()
        if client is None:
            self._count(table, "skipped")
            return False
        try:
            client.publish(channel_for(payload, self.prefix), encode_event(payload))
        except Exception as exc:
            logger.warning("Realtime publish to %s failed: %s", table, exc)
            self._count(table, "error")
            return False
        self._count(table, "ok")
        return True

    @staticmethod
    def _count(table: str, status: str) -> None:
        if REALTIME_PUBLISH is not None:
            REALTIME_PUBLISH.labels(table, status).inc()

    def comment_inserted(self, row: dict) -> bool:
        return self.publish(comment_event(INSERT, row))

    def comment_updated(self, row: dict) -> bool:
        return self.publish(comment_event(UPDATE, row))

    def reaction_changed(self, action: str, *, new: dict | None, old: dict | None) -> bool:
        event = {"added": INSERT, "updated": UPDATE, "removed": DELETE}[action]
        return self.publish(reaction_event(event, new=new, old=old))
