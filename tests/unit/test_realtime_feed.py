from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from framenote.review.realtime import (
    InMemoryRealtimeFeed,
    RedisRealtimeFeed,
    channel_for,
    comment_event,
    comments_channel,
    decode_event,
    encode_event,
    reaction_comment_id,
    reaction_event,
    reactions_channel,
)

ROW = {"id": "c1", "video_id": "v1", "content": "hi"}


def test_channels():
    assert comments_channel("v1") == "framenote:realtime:comments:v1"
    assert reactions_channel() == "framenote:realtime:reactions"
    assert channel_for(comment_event("INSERT", ROW)) == comments_channel("v1")
    assert channel_for(reaction_event("DELETE", old={"comment_id": "c1"})) == reactions_channel()


def test_decode_event():
    payload = comment_event("INSERT", ROW)
    assert decode_event(encode_event(payload).encode()) == payload
    assert decode_event("not json") is None
    assert decode_event('["a"]') is None
    assert decode_event('{"table": "users"}') is None


def test_reaction_comment_id_prefers_new_then_old():
    assert reaction_comment_id(reaction_event("INSERT", new={"comment_id": "a"})) == "a"
    assert reaction_comment_id(reaction_event("DELETE", old={"comment_id": "b"})) == "b"
    assert reaction_comment_id(reaction_event("DELETE")) is None


def test_in_memory_feed_routes_by_video_and_table():
    async def scenario():
        feed = InMemoryRealtimeFeed()
        inserts, updates, reactions = [], [], []
        await feed.subscribe("v1", inserts.append, reactions.append, on_update=updates.append)

        feed.publish(comment_event("INSERT", ROW))
        feed.publish(comment_event("INSERT", {**ROW, "id": "c2", "video_id": "v2"}))
        feed.publish(comment_event("UPDATE", {**ROW, "is_deleted": True}))
        feed.publish(reaction_event("INSERT", new={"comment_id": "c1"}))

        assert inserts == [ROW]
        assert updates == [{**ROW, "is_deleted": True}]
        assert len(reactions) == 1

    asyncio.run(scenario())


def test_subscription_close_is_idempotent_and_stops_delivery():
    async def scenario():
        feed = InMemoryRealtimeFeed()
        inserts = []
        subscription = await feed.subscribe("v1", inserts.append, lambda payload: None)
        assert feed.subscriber_count(comments_channel("v1")) == 1

        subscription.close()
        subscription.close()
        feed.publish(comment_event("INSERT", ROW))

        assert subscription.closed
        assert inserts == []
        assert feed.subscriber_count(comments_channel("v1")) == 0
        assert feed.subscriber_count(reactions_channel()) == 0

    asyncio.run(scenario())


def test_subscription_as_context_manager():
    async def scenario():
        feed = InMemoryRealtimeFeed()
        async with await feed.subscribe("v1", lambda row: None, lambda payload: None):
            assert feed.subscriber_count(comments_channel("v1")) == 1
        assert feed.subscriber_count(comments_channel("v1")) == 0

        with await feed.subscribe("v1", lambda row: None, lambda payload: None):
            pass
        assert feed.subscriber_count(comments_channel("v1")) == 0

    asyncio.run(scenario())


def test_callback_errors_are_logged_not_raised(caplog):
    async def scenario():
        feed = InMemoryRealtimeFeed()

        def _boom(row):
            raise RuntimeError("bad handler")

        await feed.subscribe("v1", _boom, lambda payload: None)
        feed.publish(comment_event("INSERT", ROW))

    asyncio.run(scenario())
    assert "Realtime callback failed" in caplog.text


def _pubsub(listen):
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()
    pubsub.listen = listen
    client = MagicMock()
    client.pubsub.return_value = pubsub
    return client, pubsub


def test_redis_feed_dispatches_and_skips_malformed(caplog):
    async def listen():
        yield {"type": "subscribe", "channel": "x", "data": 1}
        yield {"type": "message", "channel": "c", "data": encode_event(comment_event("INSERT", ROW))}
        yield {"type": "message", "channel": "c", "data": "{not json"}
        yield {"type": "message", "channel": "r", "data": encode_event(reaction_event("INSERT", new={"comment_id": "c1"}))}

    async def scenario():
        client, pubsub = _pubsub(listen)
        feed = RedisRealtimeFeed(client=client)
        inserts, reactions = [], []

        subscription = await feed.subscribe("v1", inserts.append, reactions.append)
        for _ in range(5):
            await asyncio.sleep(0)
        await subscription.aclose()
        await feed.close()

        pubsub.subscribe.assert_awaited_once_with(comments_channel("v1"), reactions_channel())
        pubsub.aclose.assert_awaited()
        client.aclose.assert_not_called()
        return inserts, reactions

    inserts, reactions = asyncio.run(scenario())
    assert inserts == [ROW]
    assert len(reactions) == 1
    assert "malformed realtime message" in caplog.text


def test_redis_feed_close_cancels_listener():
    async def listen():
        await asyncio.Event().wait()
        yield {}

    async def scenario():
        client, pubsub = _pubsub(listen)
        feed = RedisRealtimeFeed(client=client)
        subscription = await feed.subscribe("v1", lambda row: None, lambda payload: None)
        await asyncio.sleep(0)

        await subscription.aclose()

        assert subscription.closed
        pubsub.unsubscribe.assert_awaited()
        pubsub.aclose.assert_awaited()

    asyncio.run(scenario())


def test_redis_feed_requires_url_or_client():
    with pytest.raises(ValueError):
        RedisRealtimeFeed()
