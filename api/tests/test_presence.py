"""Presence reference counting and announcements."""

from __future__ import annotations

from chatter.presence import USER_CONNECTED, USER_DISCONNECTED, PresenceTracker
from chatter.websocket_manager import Connection, ConnectionManager


def test_only_boundary_crossings_are_announced():
    events = []
    tracker = PresenceTracker(lambda event, user_id: events.append((event, user_id)))

    assert tracker.mark_online(1) is True
    assert tracker.mark_online(1) is False
    assert tracker.connection_count(1) == 2

    assert tracker.mark_offline(1) is False
    assert tracker.is_online(1)
    assert tracker.mark_offline(1) is True
    assert not tracker.is_online(1)

    assert events == [(USER_CONNECTED, 1), (USER_DISCONNECTED, 1)]


def test_offline_without_connections_is_ignored():
    events = []
    tracker = PresenceTracker(lambda event, user_id: events.append(event))

    assert tracker.mark_offline(5) is False
    assert events == []


def test_listener_failure_does_not_break_tracking():
    def explode(event, user_id):
        raise RuntimeError("listener down")

    tracker = PresenceTracker(explode)
    assert tracker.mark_online(1) is True
    assert tracker.online_user_ids() == [1]


def test_second_tab_does_not_flap_presence():
    manager = ConnectionManager()
    watcher = Connection(2)
    manager.connect(watcher)

    first_tab, second_tab = Connection(1), Connection(1)
    manager.connect(first_tab)
    manager.connect(second_tab)
    manager.disconnect(second_tab.connection_id)

    events = []
    while not watcher.outbox.empty():
        events.append(watcher.outbox.get_nowait())
    assert events == [{"event": USER_CONNECTED, "data": {"user_id": 1}}]
    assert manager.is_online(1)

    manager.disconnect(first_tab.connection_id)
    assert watcher.outbox.get_nowait() == {"event": USER_DISCONNECTED, "data": {"user_id": 1}}
    assert not manager.is_online(1)


def test_user_does_not_receive_own_presence():
    manager = ConnectionManager()
    first_tab = Connection(1)
    manager.connect(first_tab)

    assert first_tab.outbox.empty()
