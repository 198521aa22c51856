"""Follow graph and the mutual-follow messaging gate."""

from __future__ import annotations

import pytest

from chatter import models
from chatter.errors import Conflict, InvalidArgument, NotFound
from chatter.services.relationships import RelationshipService


def test_gate_requires_both_directions(db, make_user, follow):
    alice, bob = make_user("alice"), make_user("bob")

    assert not RelationshipService.can_exchange_messages(db, alice.id, bob.id)

    follow(alice, bob)
    assert not RelationshipService.can_exchange_messages(db, alice.id, bob.id)
    assert not RelationshipService.can_exchange_messages(db, bob.id, alice.id)

    follow(bob, alice)
    assert RelationshipService.can_exchange_messages(db, alice.id, bob.id)
    assert RelationshipService.can_exchange_messages(db, bob.id, alice.id)


def test_gate_is_false_for_self_and_unknown_users(db, make_user):
    alice = make_user("alice")
    assert not RelationshipService.can_exchange_messages(db, alice.id, alice.id)
    assert not RelationshipService.can_exchange_messages(db, alice.id, 999999)


def test_follow_creates_notification_and_counts(db, make_user):
    alice, bob = make_user("alice"), make_user("bob")

    RelationshipService.follow(db, alice.id, bob.id)

    assert RelationshipService.is_following(db, alice.id, bob.id)
    assert RelationshipService.follow_counts(db, bob.id) == (1, 0)
    assert RelationshipService.follow_counts(db, alice.id) == (0, 1)

    notifications = db.query(models.Notification).filter_by(user_id=bob.id).all()
    assert len(notifications) == 1
    assert notifications[0].notification_type == "follow"
    assert notifications[0].from_user_id == alice.id


def test_follow_rejects_self_duplicates_and_unknown_users(db, make_user):
    alice, bob = make_user("alice"), make_user("bob")

    with pytest.raises(InvalidArgument):
        RelationshipService.follow(db, alice.id, alice.id)
    with pytest.raises(NotFound):
        RelationshipService.follow(db, alice.id, 999999)

    RelationshipService.follow(db, alice.id, bob.id)
    with pytest.raises(Conflict):
        RelationshipService.follow(db, alice.id, bob.id)


def test_unfollow_and_toggle(db, make_user):
    alice, bob = make_user("alice"), make_user("bob")

    assert RelationshipService.unfollow(db, alice.id, bob.id) is False

    assert RelationshipService.toggle_follow(db, alice.id, bob.id) is True
    assert RelationshipService.is_following(db, alice.id, bob.id)

    assert RelationshipService.toggle_follow(db, alice.id, bob.id) is False
    assert not RelationshipService.is_following(db, alice.id, bob.id)


def test_follow_update_reaches_both_users(db, make_user, listen, drain):
    alice, bob = make_user("alice"), make_user("bob")
    alice_conn, bob_conn = listen(alice), listen(bob)
    drain(alice_conn)
    drain(bob_conn)

    RelationshipService.follow(db, alice.id, bob.id)

    expected = {"follower_id": alice.id, "followed_id": bob.id, "action": "follow"}
    assert [m["data"] for m in drain(alice_conn, "followUpdate")] == [expected]
    bob_events = drain(bob_conn)
    assert [m["data"] for m in bob_events if m["event"] == "followUpdate"] == [expected]
    assert [m["event"] for m in bob_events].count("newNotification") == 1
