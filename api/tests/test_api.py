"""HTTP surface: authentication and the error taxonomy's status codes."""

from __future__ import annotations

from chatter import models


def test_requires_authentication(client):
    assert client.get("/notifications").status_code == 401
    assert client.get("/chats").status_code == 401
    response = client.get("/chats", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_token_cookie_is_accepted(client, make_user):
    from chatter.auth import create_access_token

    alice = make_user("alice")
    client.cookies.set("token", create_access_token(alice.id))
    response = client.get("/notifications/unread-count")
    assert response.status_code == 200
    assert response.json() == {"unread_count": 0}


def test_message_flow_over_http(client, db, make_user, follow, auth_headers):
    alice, bob = make_user("alice"), make_user("bob")

    response = client.post(f"/messages/{bob.id}", json={"content": "hi"}, headers=auth_headers(alice))
    assert response.status_code == 403

    follow(alice, bob, mutual=True)

    response = client.post(f"/messages/{bob.id}", json={}, headers=auth_headers(alice))
    assert response.status_code == 400

    response = client.post("/messages/999999", json={"content": "hi"}, headers=auth_headers(alice))
    assert response.status_code == 404

    response = client.post(f"/messages/{bob.id}", json={"content": "hi"}, headers=auth_headers(alice))
    assert response.status_code == 201
    message = response.json()
    assert message["read"] is False and message["seen"] is False

    response = client.get(f"/messages/{alice.id}", headers=auth_headers(bob))
    assert [m["id"] for m in response.json()] == [message["id"]]

    response = client.put(f"/api/messages/{message['id']}/seen", headers=auth_headers(alice))
    assert response.status_code == 403
    response = client.put(f"/api/messages/{message['id']}/seen", headers=auth_headers(bob))
    assert response.status_code == 200
    assert response.json()["seen"] is True

    response = client.put(f"/messages/{alice.id}/read", headers=auth_headers(bob))
    assert response.json() == {"updated": 1}

    response = client.get("/chats", headers=auth_headers(bob))
    chats = response.json()
    assert len(chats) == 1
    assert chats[0]["user"]["username"] == "alice"
    assert chats[0]["unread_count"] == 0

    db.expire_all()
    seen_notice = (
        db.query(models.Notification)
        .filter_by(user_id=alice.id, notification_type="unread_message")
        .one()
    )
    assert seen_notice.from_user_id == bob.id


def test_share_post_over_http(client, make_user, follow, auth_headers):
    alice, bob = make_user("alice"), make_user("bob")
    follow(alice, bob, mutual=True)

    response = client.post("/posts", json={"content": "look"}, headers=auth_headers(bob))
    assert response.status_code == 201
    post_id = response.json()["id"]

    response = client.post(
        "/api/messages/sendPost",
        json={"recipient_id": bob.id, "post_id": post_id},
        headers=auth_headers(alice),
    )
    assert response.status_code == 201
    assert response.json()["post"]["id"] == post_id


def test_notification_endpoints(client, make_user, auth_headers):
    alice, bob = make_user("alice"), make_user("bob")

    response = client.post(f"/users/{bob.id}/follow", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["followers_count"] == 1

    response = client.post(f"/users/{bob.id}/follow", headers=auth_headers(alice))
    assert response.status_code == 409

    response = client.post(f"/users/{alice.id}/follow", headers=auth_headers(alice))
    assert response.status_code == 400

    response = client.get("/notifications", headers=auth_headers(bob))
    page = response.json()
    assert page["next_cursor"] is None
    assert [n["notification_type"] for n in page["items"]] == ["follow"]
    assert page["items"][0]["text"] == "alice started following you"
    notification_id = page["items"][0]["id"]

    response = client.get("/notifications/unread-count", headers=auth_headers(bob))
    assert response.json() == {"unread_count": 1}

    response = client.put(f"/notifications/{notification_id}/read", headers=auth_headers(alice))
    assert response.status_code == 404
    response = client.put(f"/notifications/{notification_id}/read", headers=auth_headers(bob))
    assert response.json()["read"] is True

    response = client.put("/notifications/read-all", headers=auth_headers(bob))
    assert response.json() == {"updated": 0}

    response = client.put("/notifications/seen-all", headers=auth_headers(bob))
    assert response.json() == {"updated": 1}

    response = client.get("/notifications?cursor=yesterday", headers=auth_headers(bob))
    assert response.status_code == 400


def test_follow_toggle_and_gate_endpoints(client, make_user, auth_headers):
    alice, bob = make_user("alice"), make_user("bob")

    response = client.post(f"/user/{bob.id}/follow", headers=auth_headers(alice))
    assert response.json()["following"] is True
    response = client.get(f"/users/{bob.id}/can-message", headers=auth_headers(alice))
    assert response.json() == {"user_id": bob.id, "can_message": False}

    client.post(f"/users/{alice.id}/follow", headers=auth_headers(bob))
    response = client.get(f"/users/{bob.id}/can-message", headers=auth_headers(alice))
    assert response.json()["can_message"] is True

    response = client.post(f"/user/{bob.id}/follow", headers=auth_headers(alice))
    assert response.json()["following"] is False
    response = client.post(f"/users/{bob.id}/unfollow", headers=auth_headers(alice))
    assert response.status_code == 200

    response = client.get("/users/999999/can-message", headers=auth_headers(alice))
    assert response.status_code == 404


def test_post_endpoints(client, make_user, auth_headers):
    alice, bob = make_user("alice"), make_user("bob")

    post_id = client.post("/posts", json={"content": "hi"}, headers=auth_headers(alice)).json()["id"]

    response = client.post(f"/posts/{post_id}/like", headers=auth_headers(bob))
    assert response.json() == {"post_id": post_id, "liked": True, "likes_count": 1}

    response = client.post(f"/posts/{post_id}/comments", json={"content": "nice"}, headers=auth_headers(bob))
    assert response.status_code == 201

    assert client.post(f"/posts/{post_id}/repost", headers=auth_headers(bob)).status_code == 201
    assert client.post(f"/posts/{post_id}/repost", headers=auth_headers(bob)).status_code == 409
    assert client.delete(f"/posts/{post_id}/repost", headers=auth_headers(bob)).status_code == 204

    assert client.delete(f"/posts/{post_id}", headers=auth_headers(bob)).status_code == 403
    assert client.delete(f"/posts/{post_id}", headers=auth_headers(alice)).status_code == 204
    assert client.post(f"/posts/{post_id}/like", headers=auth_headers(bob)).status_code == 404


def test_presence_endpoints(client, make_user, listen, auth_headers):
    alice, bob = make_user("alice"), make_user("bob")
    listen(bob)

    response = client.get(f"/users/{bob.id}/presence", headers=auth_headers(alice))
    assert response.json() == {"user_id": bob.id, "online": True}
    response = client.get("/users/online", headers=auth_headers(alice))
    assert response.json() == {"user_ids": [bob.id]}
    response = client.get("/users/999999/presence", headers=auth_headers(alice))
    assert response.status_code == 404
