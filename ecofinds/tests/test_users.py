from ecofinds.models.follow import Follow
from ecofinds.models.notification import Notification
from ecofinds.models.product import ProductStatus
from ecofinds.models.user import User
from ecofinds.services.auth_service import get_password_hash, verify_password


def test_profile_with_stats(client, make_user, make_product, headers):
    user = make_user(name="Priya")
    make_product(user)
    make_product(user, status=ProductStatus.PENDING)

    data = client.get("/users/profile", headers=headers(user)).json()["data"]
    assert data["user"]["email"] == user.email
    assert data["user"]["role"] == "user"
    assert data["stats"] == {"listings": 2, "sales": 0, "purchases": 0}


def test_update_profile_json(client, make_user, headers):
    user = make_user()
    r = client.put(
        "/users/profile",
        json={"name": "Renamed", "location": "Nashik", "pincode": "422001"},
        headers=headers(user),
    )
    assert r.status_code == 200, r.text
    body = r.json()["data"]["user"]
    assert body["name"] == "Renamed"
    assert body["pincode"] == "422001"

    r = client.put("/users/profile", json={"pincode": "012345"}, headers=headers(user))
    assert r.status_code == 400
    assert r.json()["errors"] == [
        {"field": "pincode", "message": "Please provide a valid 6-digit PIN code"}
    ]


def test_avatar_replaces_previous_upload(client, make_user, headers, storage, db_session):
    user = make_user()

    r = client.put(
        "/users/profile",
        data={"name": "With Avatar"},
        files={"avatar": ("me.png", b"png-bytes", "image/png")},
        headers=headers(user),
    )
    assert r.status_code == 200, r.text
    first_key = storage.uploaded[0]
    assert r.json()["data"]["user"]["avatar"] == f"https://cdn.test/{first_key}.jpg"

    client.put(
        "/users/profile",
        files={"avatar": ("me2.png", b"png-bytes", "image/png")},
        headers=headers(user),
    )
    assert storage.deleted == [first_key]
    db_session.expire_all()
    assert db_session.get(User, user.id).avatar_key == storage.uploaded[1]


def test_avatar_must_be_an_image(client, make_user, headers, storage):
    r = client.put(
        "/users/profile",
        files={"avatar": ("notes.txt", b"hello", "text/plain")},
        headers=headers(make_user()),
    )
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "avatar"
    assert storage.uploaded == []


def test_change_password(client, make_user, headers, db_session):
    user = make_user(password_hash=get_password_hash("oldpass1"))

    r = client.put(
        "/users/change-password",
        json={"currentPassword": "wrong", "newPassword": "newpass1"},
        headers=headers(user),
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Current password is incorrect"

    r = client.put(
        "/users/change-password",
        json={"currentPassword": "oldpass1", "newPassword": "newpass1"},
        headers=headers(user),
    )
    assert r.status_code == 200
    db_session.expire_all()
    assert verify_password("newpass1", db_session.get(User, user.id).password_hash)


def test_follow_and_unfollow_keep_counters(client, make_user, headers, db_session):
    fan = make_user(name="Fan")
    star = make_user(name="Star")

    assert client.post(f"/users/{star.id}/follow", headers=headers(fan)).status_code == 200
    r = client.post(f"/users/{star.id}/follow", headers=headers(fan))
    assert r.status_code == 409

    db_session.expire_all()
    assert db_session.get(User, star.id).followers_count == 1
    assert db_session.get(User, fan.id).following_count == 1
    note = db_session.query(Notification).filter_by(user_id=star.id).one()
    assert note.message == "Fan started following you"

    followers = client.get(f"/users/{star.id}/followers").json()["data"]["users"]
    assert [u["id"] for u in followers] == [fan.id]
    following = client.get(f"/users/{fan.id}/following").json()["data"]["users"]
    assert [u["id"] for u in following] == [star.id]

    profile = client.get(f"/users/{star.id}", headers=headers(fan)).json()["data"]
    assert profile["is_following"] is True
    assert "email" not in profile["user"]

    assert client.delete(f"/users/{star.id}/follow", headers=headers(fan)).status_code == 200
    assert client.delete(f"/users/{star.id}/follow", headers=headers(fan)).status_code == 409
    db_session.expire_all()
    assert db_session.get(User, star.id).followers_count == 0
    assert db_session.query(Follow).count() == 0


def test_follow_rules(client, make_user, headers):
    user = make_user()
    assert client.post(f"/users/{user.id}/follow", headers=headers(user)).status_code == 409
    assert client.post("/users/999/follow", headers=headers(user)).status_code == 404


def test_public_profile_hides_inactive(client, make_user):
    gone = make_user(is_active=False)
    assert client.get(f"/users/{gone.id}").status_code == 404
    assert client.get("/users/999").status_code == 404

    visible = make_user()
    data = client.get(f"/users/{visible.id}").json()["data"]
    assert data["is_following"] is False
    assert data["stats"]["listings"] == 0


def test_own_listings_by_status(client, make_user, make_product, headers):
    user = make_user()
    make_product(user, title="Live")
    make_product(user, status=ProductStatus.PENDING, title="Waiting")

    data = client.get("/users/products?status=pending", headers=headers(user)).json()["data"]
    assert [p["title"] for p in data["products"]] == ["Waiting"]

    public = client.get(f"/users/{user.id}/products").json()["data"]
    assert [p["title"] for p in public["products"]] == ["Live"]


def test_favorites_list(client, make_user, make_product, headers):
    seller = make_user()
    fan = make_user()
    product = make_product(seller)
    client.post(f"/products/{product.id}/favorite", headers=headers(fan))

    data = client.get("/users/favorites", headers=headers(fan)).json()["data"]
    assert [p["id"] for p in data["products"]] == [product.id]
