from __future__ import annotations

from datetime import UTC, datetime

import pytest

from framenote.review.composer import (
    Draft,
    WritePhase,
    begin_submit,
    cancel_reply,
    confirm_write,
    edit,
    make_provisional_id,
    roll_back_write,
    set_timestamp,
    start_reply,
    validate_draft,
)
from framenote.review.errors import IdentityRequiredError, ValidationError
from framenote.review.identity import ActorIdentity
from framenote.review.models import Comment

NOW = datetime(2025, 5, 5, 10, 0, tzinfo=UTC)
GUEST = ActorIdentity(author_name="Guest #1234", guest_session_id="g1")


def _submit(draft, identity=GUEST):
    return begin_submit(
        draft, identity, provisional_id="temp-1", project_id="p1", video_id="v1", now=NOW
    )


def test_draft_transitions_are_pure():
    draft = Draft()
    edited = edit(draft, "hi")
    assert draft.text == ""
    assert edited.text == "hi"
    assert set_timestamp(edited, 4).timestamp_seconds == 4.0
    replying = start_reply(edited, "c1")
    assert replying.replying_to == "c1"
    assert cancel_reply(replying).replying_to is None


def test_begin_submit_builds_provisional_and_clears_composer():
    draft = Draft(text="  hello  ", timestamp_seconds=12.3, replying_to="root-1")

    pending, next_draft = _submit(draft)

    assert pending.phase is WritePhase.OPTIMISTIC
    assert pending.provisional.id == "temp-1"
    assert pending.provisional.is_provisional
    assert pending.provisional.content == "hello"
    assert pending.provisional.timestamp_seconds == 12.3
    assert pending.provisional.parent_comment_id == "root-1"
    assert pending.provisional.guest_session_id == "g1"
    assert pending.provisional.client_key == "temp-1"
    assert pending.provisional.created_at == NOW
    assert next_draft == Draft(timestamp_seconds=12.3)


@pytest.mark.parametrize("text", ["", "   ", "x" * 2001])
def test_invalid_content_is_rejected(text):
    with pytest.raises(ValidationError):
        validate_draft(Draft(text=text), GUEST)


def test_negative_timestamp_is_rejected():
    with pytest.raises(ValidationError):
        _submit(Draft(text="hi", timestamp_seconds=-1))


@pytest.mark.parametrize("seconds", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_timestamp_is_rejected(seconds):
    with pytest.raises(ValidationError):
        validate_draft(Draft(text="hi", timestamp_seconds=seconds), GUEST)


@pytest.mark.parametrize("identity", [None, ActorIdentity(), ActorIdentity(author_name="  ")])
def test_missing_identity_blocks_submit(identity):
    with pytest.raises(IdentityRequiredError):
        _submit(Draft(text="hello"), identity)


def test_name_alone_is_enough_identity():
    pending, _ = _submit(Draft(text="hello"), ActorIdentity(author_name="Dana"))
    assert pending.provisional.author_name == "Dana"


def test_confirm_carries_render_key():
    pending, _ = _submit(Draft(text="hello"))
    saved = Comment(id="real-1", content="hello", timestamp_seconds=0, author_name="Guest #1234", created_at=NOW)

    confirmed = confirm_write(pending, saved)

    assert confirmed.phase is WritePhase.CONFIRMED
    assert confirmed.confirmed.id == "real-1"
    assert confirmed.confirmed.client_key == "temp-1"


def test_roll_back_restores_draft_into_empty_composer():
    original = Draft(text="hello", timestamp_seconds=3, replying_to="c9")
    pending, cleared = _submit(original)

    rolled, draft, unrestored = roll_back_write(pending, cleared, "boom")

    assert rolled.phase is WritePhase.ROLLED_BACK
    assert rolled.error == "boom"
    assert draft == original
    assert unrestored is None


def test_roll_back_keeps_newer_typing():
    pending, cleared = _submit(Draft(text="hello"))
    typing = edit(cleared, "second thought")

    _, draft, unrestored = roll_back_write(pending, typing, "boom")

    assert draft.text == "second thought"
    assert unrestored == "hello"


def test_settled_write_cannot_settle_again():
    pending, cleared = _submit(Draft(text="hello"))
    rolled, _, _ = roll_back_write(pending, cleared, "boom")
    with pytest.raises(ValueError):
        confirm_write(rolled, pending.provisional)


def test_provisional_ids_avoid_collisions():
    assert make_provisional_id(1700) == "temp-1700"
    assert make_provisional_id(1700, {"temp-1700"}) == "temp-1700-1"
    assert make_provisional_id(1700, {"temp-1700", "temp-1700-1"}) == "temp-1700-2"
