from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from framenote.review.models import DELETED_MARKER, Comment, Reaction, ReactionSummary
from framenote.review.store import CommentStore

T0 = datetime(2025, 3, 1, 9, 30, tzinfo=UTC)


def _comment(comment_id, *, ts=1.0, minute=0, parent=None, **kwargs):
    return Comment(
        id=comment_id,
        content=kwargs.pop("content", f"text {comment_id}"),
        timestamp_seconds=ts,
        author_name="Bob",
        created_at=T0 + timedelta(minutes=minute),
        video_id="v1",
        parent_comment_id=parent,
        **kwargs,
    )


def _reaction(row_id, comment_id, reaction_type, guest):
    return Reaction(id=row_id, comment_id=comment_id, reaction_type=reaction_type, guest_session_id=guest)


def test_initial_load_builds_tree_with_reactions():
    store = CommentStore(
        [_comment("a", ts=2), _comment("b", ts=1), _comment("a1", minute=1, parent="a")],
        [_reaction("r1", "a1", "like", "g1"), _reaction("r2", "a1", "like", "g2")],
        actor_key="g1",
    )

    tree = store.get_tree()

    assert [c.id for c in tree] == ["b", "a"]
    assert tree[1].replies[0].reactions == (ReactionSummary("like", 2, True),)
    assert store.reactions_for("a1") == [ReactionSummary("like", 2, True)]


def test_load_ignores_reactions_for_unknown_comments():
    store = CommentStore([_comment("a")], [_reaction("r1", "zzz", "like", "g1")])
    assert store.reaction_rows("zzz") == []


def test_apply_insert_is_idempotent():
    store = CommentStore()
    assert store.apply_insert(_comment("a")) is True
    assert store.apply_insert(_comment("a")) is False
    assert len(store) == 1


def test_apply_replace_swaps_provisional_and_keeps_render_key():
    store = CommentStore()
    store.apply_insert(_comment("temp-1", client_key="temp-1"))

    assert store.apply_replace("temp-1", _comment("real-1"))

    assert [c.id for c in store.comments()] == ["real-1"]
    assert store.get("real-1").client_key == "temp-1"


def test_apply_replace_when_realtime_arrived_first():
    store = CommentStore()
    store.apply_insert(_comment("temp-1", client_key="temp-1"))
    store.apply_insert(_comment("real-1"))

    store.apply_replace("temp-1", _comment("real-1"))

    assert [c.id for c in store.comments()] == ["real-1"]
    assert store.get("real-1").client_key == "temp-1"


def test_apply_replace_unknown_id_is_noop():
    store = CommentStore([_comment("a")])
    assert store.apply_replace("missing", _comment("b")) is False
    assert [c.id for c in store.comments()] == ["a"]


def test_apply_remove_drops_comment_and_rows():
    store = CommentStore([_comment("a")], [_reaction("r1", "a", "like", "g1")])
    assert store.apply_remove("a") is True
    assert store.get_tree() == []
    assert store.reaction_rows("a") == []
    assert store.apply_remove("a") is False


def test_soft_delete_keeps_position_and_replies():
    store = CommentStore([
        _comment("a", ts=1),
        _comment("b", ts=2),
        _comment("b1", minute=1, parent="b"),
    ])

    assert store.apply_soft_delete("b") is True

    tree = store.get_tree()
    assert [c.id for c in tree] == ["a", "b"]
    assert tree[1].is_deleted is True
    assert tree[1].content == DELETED_MARKER
    assert [r.id for r in tree[1].replies] == ["b1"]
    assert store.apply_soft_delete("b") is False


def test_soft_delete_is_not_undone_by_a_late_replace():
    store = CommentStore([_comment("a")])
    store.apply_soft_delete("a")
    store.apply_replace("a", _comment("a", content="restored?"))
    assert store.get("a").content == DELETED_MARKER
    assert store.get("a").is_deleted is True


def test_apply_reaction_update_drops_zero_counts():
    store = CommentStore([_comment("a")])
    store.apply_reaction_update("a", [ReactionSummary("like", 1, True), ReactionSummary("love", 0, False)])
    assert store.reactions_for("a") == [ReactionSummary("like", 1, True)]
    assert store.apply_reaction_update("ghost", []) is False


def test_apply_reaction_rows_recomputes_from_scratch():
    store = CommentStore([_comment("a")], [_reaction("r1", "a", "like", "g1")], actor_key="g2")
    store.apply_reaction_rows("a", [_reaction("r2", "a", "fire", "g2")])
    assert store.reactions_for("a") == [ReactionSummary("fire", 1, True)]
    store.apply_reaction_rows("a", [])
    assert store.reactions_for("a") == []
    assert store.get_tree()[0].reactions == ()


def test_set_actor_key_reflags_reactions():
    store = CommentStore([_comment("a")], [_reaction("r1", "a", "like", "g1")])
    assert store.reactions_for("a") == [ReactionSummary("like", 1, False)]
    store.set_actor_key("g1")
    assert store.reactions_for("a") == [ReactionSummary("like", 1, True)]


def test_replace_moves_reaction_rows_to_real_id():
    store = CommentStore()
    store.apply_insert(_comment("temp-1", client_key="temp-1"))
    store.apply_reaction_rows("temp-1", [_reaction("t", "temp-1", "like", "g1")])

    store.apply_replace("temp-1", _comment("real-1"))

    assert [r.comment_id for r in store.reaction_rows("real-1")] == ["real-1"]
    assert store.reaction_rows("temp-1") == []


def test_reaction_update_survives_actor_change_until_rows_arrive():
    store = CommentStore([_comment("a")], [_reaction("r1", "a", "like", "g1")], actor_key="g1")
    store.apply_reaction_update("a", [ReactionSummary("love", 3, True)])

    store.set_actor_key("g2")
    assert store.reactions_for("a") == [ReactionSummary("love", 3, True)]
    assert store.get_tree()[0].reactions == (ReactionSummary("love", 3, True),)

    store.apply_reaction_rows("a", [_reaction("r2", "a", "fire", "g2")])
    assert store.reactions_for("a") == [ReactionSummary("fire", 1, True)]


def test_reaction_update_follows_provisional_to_real_id():
    store = CommentStore()
    store.apply_insert(_comment("temp-1", client_key="temp-1"))
    store.apply_reaction_update("temp-1", [ReactionSummary("like", 1, True)])

    store.apply_replace("temp-1", _comment("real-1"))

    assert store.reactions_for("real-1") == [ReactionSummary("like", 1, True)]
    assert store.reactions_for("temp-1") == []


@pytest.mark.parametrize("seconds", [float("nan"), float("inf")])
def test_unsortable_insert_leaves_store_untouched(seconds):
    store = CommentStore([_comment("a")])
    seen = []
    store.add_listener(lambda tree: seen.append([c.id for c in tree]))

    with pytest.raises((ValueError, OverflowError)):
        store.apply_insert(_comment("bad", ts=seconds))

    assert "bad" not in store
    assert [c.id for c in store.get_tree()] == ["a"]
    assert seen == []

    assert store.apply_insert(_comment("b", ts=5.0))
    assert store.apply_soft_delete("a")
    assert [c.id for c in store.get_tree()] == ["a", "b"]
    assert seen[-1] == ["a", "b"]


def test_listeners_see_each_mutation_and_failures_are_contained(caplog):
    store = CommentStore()
    seen = []
    store.add_listener(lambda tree: seen.append([c.id for c in tree]))

    def _broken(tree):
        raise RuntimeError("boom")

    store.add_listener(_broken)
    store.apply_insert(_comment("a"))

    assert seen == [["a"]]
    assert store.get("a") is not None
    assert "listener failed" in caplog.text


def test_listener_can_be_removed():
    store = CommentStore()
    seen = []
    remove = store.add_listener(lambda tree: seen.append(len(tree)))
    store.apply_insert(_comment("a"))
    remove()
    store.apply_insert(_comment("b"))
    assert seen == [1]
