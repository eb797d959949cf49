from ecofinds.models.cart import CartItem
from ecofinds.models.product import ProductStatus


def test_add_then_merge_quantity(client, make_user, make_product, headers, db_session):
    seller = make_user()
    buyer = make_user()
    product = make_product(seller)

    r = client.post("/cart/add", json={"product_id": product.id, "quantity": 2}, headers=headers(buyer))
    assert r.status_code == 200, r.text
    assert r.json()["data"] == {"action": "added", "quantity": 2}

    r = client.post("/cart/add", json={"product_id": product.id, "quantity": 3}, headers=headers(buyer))
    assert r.json()["data"] == {"action": "updated", "quantity": 5}
    assert db_session.query(CartItem).count() == 1


def test_merge_caps_at_ten(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    product = make_product(seller)
    client.post("/cart/add", json={"product_id": product.id, "quantity": 8}, headers=headers(buyer))
    r = client.post("/cart/add", json={"product_id": product.id, "quantity": 5}, headers=headers(buyer))
    assert r.json()["data"]["quantity"] == 10


def test_add_rejects_own_missing_and_unapproved(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    own = make_product(seller)
    pending = make_product(seller, status=ProductStatus.PENDING)

    r = client.post("/cart/add", json={"product_id": own.id}, headers=headers(seller))
    assert r.status_code == 409
    r = client.post("/cart/add", json={"product_id": pending.id}, headers=headers(buyer))
    assert r.status_code == 409
    r = client.post("/cart/add", json={"product_id": 9999}, headers=headers(buyer))
    assert r.status_code == 404


def test_add_validates_quantity_bounds(client, make_user, headers):
    buyer = make_user()
    r = client.post("/cart/add", json={"product_id": 1, "quantity": 11}, headers=headers(buyer))
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "quantity"


def test_update_remove_and_missing_item(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    product = make_product(seller)
    h = headers(buyer)
    client.post("/cart/add", json={"product_id": product.id}, headers=h)

    r = client.put(f"/cart/update/{product.id}", json={"quantity": 7}, headers=h)
    assert r.status_code == 200
    assert client.get(f"/cart/check/{product.id}", headers=h).json()["data"] == {
        "in_cart": True,
        "quantity": 7,
    }

    assert client.put(f"/cart/update/{product.id}", json={"quantity": 0}, headers=h).status_code == 400

    assert client.delete(f"/cart/remove/{product.id}", headers=h).status_code == 200
    assert client.delete(f"/cart/remove/{product.id}", headers=h).status_code == 404
    assert client.put(f"/cart/update/{product.id}", json={"quantity": 2}, headers=h).status_code == 404


def test_cart_is_scoped_to_caller(client, make_user, make_product, headers):
    seller = make_user()
    alice = make_user()
    bob = make_user()
    product = make_product(seller)
    client.post("/cart/add", json={"product_id": product.id}, headers=headers(alice))

    assert client.get("/cart/count", headers=headers(bob)).json()["data"] == {"count": 0}
    assert client.delete(f"/cart/remove/{product.id}", headers=headers(bob)).status_code == 404
    assert client.get("/cart/count", headers=headers(alice)).json()["data"] == {"count": 1}


def test_view_summary_and_clear(client, make_user, make_product, headers):
    seller = make_user()
    buyer = make_user()
    lamp = make_product(seller, title="Lamp", price=300.0)
    chair = make_product(seller, title="Chair", price=1200.0)
    h = headers(buyer)
    client.post("/cart/add", json={"product_id": lamp.id, "quantity": 2}, headers=h)
    client.post("/cart/add", json={"product_id": chair.id}, headers=h)

    data = client.get("/cart", headers=h).json()["data"]
    assert {item["title"] for item in data["items"]} == {"Lamp", "Chair"}
    assert data["summary"] == {
        "subtotal": 1800.0,
        "service_fee": 50.0,
        "total": 1850.0,
        "item_count": 2,
    }
    item = next(i for i in data["items"] if i["title"] == "Lamp")
    assert item["line_total"] == 600.0
    assert item["seller_name"] == seller.name
    assert item["primary_image"] == "https://cdn.test/seed-0.jpg"

    r = client.delete("/cart/clear", headers=h)
    assert r.json()["data"] == {"removed": 2}
    empty = client.get("/cart", headers=h).json()["data"]
    assert empty["items"] == []
    assert empty["summary"]["total"] == 0.0
