from __future__ import annotations

from datetime import UTC, datetime, timedelta

from framenote.review.models import Comment
from framenote.review.threads import flatten, iter_thread, organize, render_key

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


def _comment(comment_id, *, ts=0.0, minute=0, parent=None, **kwargs):
    return Comment(
        id=comment_id,
        content=f"comment {comment_id}",
        timestamp_seconds=ts,
        author_name="Alice",
        created_at=T0 + timedelta(minutes=minute),
        parent_comment_id=parent,
        **kwargs,
    )


def test_roots_cluster_by_whole_second_then_created_at():
    earlier = _comment("a", ts=5.9, minute=1)
    later = _comment("b", ts=5.1, minute=2)

    tree = organize([later, earlier])

    assert [c.id for c in tree] == ["a", "b"]


def test_roots_sort_by_timestamp_before_created_at():
    tree = organize([_comment("late", ts=30, minute=0), _comment("early", ts=2, minute=9)])
    assert [c.id for c in tree] == ["early", "late"]


def test_replies_sort_by_created_at_only():
    root = _comment("root", ts=10)
    first = _comment("r1", ts=50, minute=1, parent="root")
    second = _comment("r2", ts=1, minute=2, parent="root")

    tree = organize([second, root, first])

    assert len(tree) == 1
    assert [r.id for r in tree[0].replies] == ["r1", "r2"]


def test_orphan_reply_becomes_root():
    orphan = _comment("orphan", ts=3, parent="missing")
    tree = organize([orphan, _comment("root", ts=1)])
    assert [c.id for c in tree] == ["root", "orphan"]
    assert tree[1].parent_comment_id == "missing"


def test_deep_reply_attaches_to_nearest_root():
    tree = organize([
        _comment("root", ts=1),
        _comment("child", minute=1, parent="root"),
        _comment("grandchild", minute=2, parent="child"),
    ])

    assert [c.id for c in tree] == ["root"]
    assert [r.id for r in tree[0].replies] == ["child", "grandchild"]
    assert tree[0].replies[1].parent_comment_id == "child"


def test_chain_to_missing_parent_roots_at_last_known_ancestor():
    tree = organize([
        _comment("x", ts=4, parent="gone"),
        _comment("y", minute=1, parent="x"),
    ])
    assert [c.id for c in tree] == ["x"]
    assert [r.id for r in tree[0].replies] == ["y"]


def test_parent_cycle_does_not_loop():
    tree = organize([_comment("a", ts=1, parent="b"), _comment("b", ts=2, parent="a")])
    assert sorted(c.id for c in tree) == ["a", "b"]
    assert all(not c.replies for c in tree)


def test_duplicate_ids_are_kept_once():
    comment = _comment("a")
    assert len(organize([comment, comment])) == 1


def test_identical_keys_fall_back_to_id():
    tree = organize([_comment("b", ts=1), _comment("a", ts=1)])
    assert [c.id for c in tree] == ["a", "b"]


def test_organize_is_idempotent_over_its_own_output():
    comments = [
        _comment("r1", ts=7.2, minute=3),
        _comment("r2", ts=7.8, minute=1),
        _comment("x1", minute=5, parent="r1"),
        _comment("x2", minute=4, parent="r1"),
        _comment("o", ts=2, parent="nowhere"),
    ]
    tree = organize(comments)

    assert organize(comments) == tree
    assert organize(flatten(tree)) == tree


def test_flatten_preserves_every_comment_and_parent():
    comments = [
        _comment("root", ts=1),
        _comment("child", minute=1, parent="root"),
        _comment("grandchild", minute=2, parent="child"),
    ]
    flat = flatten(organize(comments))

    assert {c.id: c.parent_comment_id for c in flat} == {c.id: c.parent_comment_id for c in comments}
    assert all(c.replies == () for c in flat)


def test_iter_thread_walks_roots_then_their_replies():
    tree = organize([
        _comment("a", ts=1),
        _comment("b", ts=2),
        _comment("a1", minute=1, parent="a"),
    ])
    assert [c.id for c in iter_thread(tree)] == ["a", "a1", "b"]


def test_render_key_survives_confirmation():
    provisional = _comment("temp-1700000000000", client_key="temp-1700000000000")
    confirmed = _comment("real-1", client_key="temp-1700000000000")
    assert render_key(provisional) == render_key(confirmed)
    assert render_key(_comment("real-2")) == "real-2"
