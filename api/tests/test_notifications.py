"""Notification store: creation, dedup, ordering and read state."""

from __future__ import annotations

from datetime import timedelta

import pytest

from chatter import models
from chatter.errors import NotFound
from chatter.notification_types import NotificationType
from chatter.services.activity import ActivityService
from chatter.services.notifications import NotificationService
from chatter.websocket_manager import DASHBOARD_ROOM, connection_manager


@pytest.fixture
def post(db, make_user):
    author = make_user("author")
    post = models.Post(author_id=author.id, content="hello world")
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


def test_self_notification_is_suppressed(db, make_user):
    alice = make_user("alice")
    assert NotificationService.create(db, NotificationType.LIKE, alice.id, alice.id) is None
    assert db.query(models.Notification).count() == 0


def test_unknown_recipient_is_skipped(db, make_user):
    alice = make_user("alice")
    assert NotificationService.create(db, "follow", alice.id, 999999) is None


def test_unread_duplicate_is_suppressed(db, make_user, post):
    fan = make_user("fan")

    first = NotificationService.create(db, "like", fan.id, post.author_id, post_id=post.id)
    second = NotificationService.create(db, "like", fan.id, post.author_id, post_id=post.id)

    assert first is not None
    assert second is None
    assert db.query(models.Notification).filter_by(user_id=post.author_id).count() == 1


def test_duplicate_allowed_after_read(db, make_user, post):
    fan = make_user("fan")

    first = NotificationService.create(db, "like", fan.id, post.author_id, post_id=post.id)
    NotificationService.mark_read(db, post.author_id, first.id)

    again = NotificationService.create(db, "like", fan.id, post.author_id, post_id=post.id)
    assert again is not None
    assert again.id != first.id


def test_duplicate_allowed_outside_window(db, make_user, post):
    fan = make_user("fan")

    first = NotificationService.create(db, "like", fan.id, post.author_id, post_id=post.id)
    first.created_at = first.created_at - timedelta(hours=2)
    db.commit()

    assert NotificationService.create(db, "like", fan.id, post.author_id, post_id=post.id) is not None


def test_dedup_distinguishes_post_and_type(db, make_user, post):
    fan = make_user("fan")
    author_id = post.author_id

    assert NotificationService.create(db, "like", fan.id, author_id, post_id=post.id)
    assert NotificationService.create(db, "comment", fan.id, author_id, post_id=post.id)
    assert NotificationService.create(db, "follow", fan.id, author_id)
    assert NotificationService.create(db, "follow", fan.id, author_id) is None

    assert db.query(models.Notification).filter_by(user_id=author_id).count() == 3


def test_like_unlike_like_creates_single_notification(db, make_user, post):
    fan = make_user("fan")

    ActivityService.toggle_like(db, post.id, fan.id)
    ActivityService.toggle_like(db, post.id, fan.id)
    status = ActivityService.toggle_like(db, post.id, fan.id)

    assert status.liked is True
    assert status.likes_count == 1
    notifications = db.query(models.Notification).filter_by(user_id=post.author_id).all()
    assert [n.notification_type for n in notifications] == ["like"]


def test_list_is_newest_first_and_populated(db, make_user, post):
    fan, other = make_user("fan"), make_user("other")
    author_id = post.author_id

    NotificationService.create(db, "like", fan.id, author_id, post_id=post.id)
    NotificationService.create(db, "comment", other.id, author_id, post_id=post.id)
    NotificationService.create(db, "follow", other.id, author_id)

    items, next_cursor = NotificationService.list_for(db, author_id)

    assert next_cursor is None
    assert [n.notification_type for n in items] == ["follow", "comment", "like"]
    created = [n.created_at for n in items]
    assert created == sorted(created, reverse=True)
    like = items[-1]
    assert like.from_user.username == "fan"
    assert like.post.id == post.id
    assert like.text == "fan liked your post"


def test_list_tolerates_deleted_sender(db, make_user, post):
    fan = make_user("fan")
    NotificationService.create(db, "like", fan.id, post.author_id, post_id=post.id)

    db.delete(fan)
    db.commit()

    items, _ = NotificationService.list_for(db, post.author_id)
    assert len(items) == 1
    assert items[0].from_user is None
    assert items[0].text == "Someone liked your post"


def test_pagination_with_cursor(db, make_user):
    target = make_user("target")
    actors = [make_user(f"actor{i}") for i in range(3)]
    for actor in actors:
        NotificationService.create(db, "follow", actor.id, target.id)

    page, cursor = NotificationService.list_for(db, target.id, limit=2)
    assert len(page) == 2
    assert cursor == page[-1].created_at

    rest, cursor = NotificationService.list_for(db, target.id, limit=2, cursor=cursor)
    assert cursor is None
    assert {n.id for n in page}.isdisjoint({n.id for n in rest})


def test_mark_read_is_owner_only(db, make_user):
    alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
    notification = NotificationService.create(db, "follow", alice.id, bob.id)

    with pytest.raises(NotFound):
        NotificationService.mark_read(db, carol.id, notification.id)
    with pytest.raises(NotFound):
        NotificationService.mark_read(db, bob.id, 999999)

    updated = NotificationService.mark_read(db, bob.id, notification.id)
    assert updated.read is True
    assert updated.read_at is not None


def test_mark_all_read_is_idempotent(db, make_user):
    target = make_user("target")
    for actor in (make_user("a"), make_user("b")):
        NotificationService.create(db, "follow", actor.id, target.id)

    assert NotificationService.get_unread_count(db, target.id) == 2
    assert NotificationService.mark_all_read(db, target.id) == 2
    assert NotificationService.mark_all_read(db, target.id) == 0
    assert NotificationService.get_unread_count(db, target.id) == 0

    items, _ = NotificationService.list_for(db, target.id, unread_only=True)
    assert items == []


def test_mark_all_seen_leaves_read_state(db, make_user):
    target, actor = make_user("target"), make_user("actor")
    NotificationService.create(db, "follow", actor.id, target.id)

    assert NotificationService.mark_all_seen(db, target.id) == 1
    db.expire_all()
    notification = db.query(models.Notification).one()
    assert notification.seen is True
    assert notification.read is False


def test_new_notification_is_pushed_to_recipient_only(db, make_user, listen, drain):
    actor, target = make_user("actor"), make_user("target")
    actor_conn, target_conn = listen(actor), listen(target)
    drain(actor_conn)
    drain(target_conn)

    notification = NotificationService.create(db, "follow", actor.id, target.id)

    pushed = drain(target_conn, "newNotification")
    assert len(pushed) == 1
    assert pushed[0]["data"]["user_id"] == target.id
    assert pushed[0]["data"]["notification"]["id"] == notification.id
    assert pushed[0]["data"]["notification"]["from_user"]["username"] == "actor"
    assert drain(actor_conn, "newNotification") == []


def test_new_notification_is_mirrored_to_dashboard(db, make_user, listen, drain):
    admin, actor, target = make_user("admin"), make_user("actor"), make_user("target")
    admin_conn = listen(admin)
    assert connection_manager.join(admin_conn.connection_id, DASHBOARD_ROOM)
    drain(admin_conn)

    notification = NotificationService.create(db, "follow", actor.id, target.id)
    skipped = NotificationService.create(db, "follow", target.id, target.id)

    mirrored = drain(admin_conn)
    assert [m["event"] for m in mirrored] == ["notification"]
    assert mirrored[0]["data"]["user_id"] == target.id
    assert mirrored[0]["data"]["notification"]["id"] == notification.id
    assert mirrored[0]["data"]["notification"]["notification_type"] == "follow"
    assert skipped is None
