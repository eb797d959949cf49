from ecofinds.models.notification import Notification, NotificationType
from ecofinds.services.notifications import create_notification


def _notify(db_session, user, title="Hello", type=NotificationType.ADMIN):
    note = create_notification(
        db_session, user_id=user.id, type=type, title=title, message=f"{title} body"
    )
    db_session.commit()
    return note


def test_create_notification_does_not_commit(db_session, make_user):
    user = make_user()
    create_notification(
        db_session, user_id=user.id, type=NotificationType.PURCHASE, title="t", message="m"
    )
    db_session.rollback()
    assert db_session.query(Notification).count() == 0


def test_list_is_scoped_and_newest_first(client, make_user, headers, db_session):
    user = make_user()
    other = make_user()
    _notify(db_session, user, "First")
    _notify(db_session, user, "Second")
    _notify(db_session, other, "Not yours")

    data = client.get("/notifications", headers=headers(user)).json()["data"]
    assert [n["title"] for n in data["notifications"]] == ["Second", "First"]
    assert data["notifications"][0]["type"] == "admin"
    assert data["pagination"] == {"page": 1, "limit": 20, "hasMore": False}


def test_unread_count_and_mark_read(client, make_user, headers, db_session):
    user = make_user()
    first = _notify(db_session, user, "First")
    _notify(db_session, user, "Second")
    first_id = first.id

    assert client.get("/notifications/unread-count", headers=headers(user)).json()["data"] == {
        "count": 2
    }

    r = client.put(
        "/notifications/read", json={"notification_ids": [first_id]}, headers=headers(user)
    )
    assert r.json()["data"] == {"updated": 1}

    unread = client.get("/notifications?unread_only=true", headers=headers(user)).json()["data"]
    assert [n["title"] for n in unread["notifications"]] == ["Second"]

    r = client.put("/notifications/read", headers=headers(user))
    assert r.json()["data"] == {"updated": 1}
    assert client.get("/notifications/unread-count", headers=headers(user)).json()["data"] == {
        "count": 0
    }


def test_cannot_mark_someone_elses(client, make_user, headers, db_session):
    owner = make_user()
    note_id = _notify(db_session, owner).id

    r = client.put(
        "/notifications/read",
        json={"notification_ids": [note_id]},
        headers=headers(make_user()),
    )
    assert r.json()["data"] == {"updated": 0}
    db_session.expire_all()
    assert db_session.get(Notification, note_id).is_read is False
