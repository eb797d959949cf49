from io import BytesIO

from fastapi.testclient import TestClient

from ecofinds.main import app

from ecofinds.models.cart import CartItem
from ecofinds.models.favorite import Favorite
from ecofinds.models.product import Product, ProductStatus
from ecofinds.models.product_images import ProductImage
from ecofinds.models.purchase import PaymentMethod, Purchase, PurchaseStatus
from ecofinds.models.user import User


def _form(category_id, **overrides):
    fields = {
        "title": "Wooden study table",
        "description": "Solid teak table, minor scratches on one leg",
        "price": "2500",
        "category_id": str(category_id),
        "condition": "good",
        "location": "Mumbai",
    }
    fields.update(overrides)
    return fields


def _image(name="photo.jpg", content_type="image/jpeg", size=1024):
    return ("images", (name, BytesIO(b"x" * size), content_type))


def test_create_product_with_images(client, make_user, category, headers, storage, db_session):
    seller = make_user()
    r = client.post(
        "/products",
        data=_form(category.id),
        files=[_image("a.jpg"), _image("b.png", "image/png")],
        headers=headers(seller),
    )
    assert r.status_code == 201, r.text
    product = r.json()["data"]["product"]
    assert product["status"] == "pending"
    assert len(product["images"]) == 2
    assert [img["is_primary"] for img in product["images"]] == [True, False]
    assert product["primary_image"] == product["images"][0]["image_url"]
    assert len(storage.uploaded) == 2

    db_session.expire_all()
    assert db_session.get(User, seller.id).listings_count == 1


def test_create_product_without_images_uses_placeholder(client, make_user, category, headers):
    seller = make_user()
    r = client.post("/products", data=_form(category.id), headers=headers(seller))
    assert r.status_code == 201, r.text
    images = r.json()["data"]["product"]["images"]
    assert len(images) == 1
    assert images[0]["is_primary"] is True
    assert images[0]["image_url"].endswith("placeholder-product.jpg")


def test_create_product_reports_all_invalid_fields(client, make_user, category, headers, storage):
    seller = make_user()
    r = client.post(
        "/products",
        data=_form(category.id, title="ab", price="-5", condition="broken"),
        files=[_image()],
        headers=headers(seller),
    )
    assert r.status_code == 400
    fields = {e["field"] for e in r.json()["errors"]}
    assert {"title", "price", "condition"} <= fields
    assert storage.uploaded == []


def test_create_product_rejects_non_image_upload(client, make_user, category, headers):
    seller = make_user()
    r = client.post(
        "/products",
        data=_form(category.id),
        files=[_image("notes.txt", "text/plain")],
        headers=headers(seller),
    )
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "images"


def test_failed_insert_removes_uploaded_files(
    client, make_user, category, headers, storage, monkeypatch
):
    from ecofinds.services import product_service

    def _boom(*args, **kwargs):
        raise RuntimeError("counter update failed")

    monkeypatch.setattr(product_service, "adjust_user_counter", _boom)
    seller = make_user()
    client_no_raise = TestClient(app, raise_server_exceptions=False)
    r = client_no_raise.post(
        "/products",
        data=_form(category.id),
        files=[_image("a.jpg"), _image("b.jpg")],
        headers=headers(seller),
    )
    assert r.status_code == 500
    assert sorted(storage.deleted) == sorted(storage.uploaded)
    assert len(storage.deleted) == 2


def test_list_only_shows_approved_with_filters_and_pagination(client, make_user, make_product):
    seller = make_user()
    make_product(seller, title="Cheap lamp", price=200.0)
    make_product(seller, title="Pricey sofa", price=9000.0)
    make_product(seller, title="Pending bike", status=ProductStatus.PENDING)

    r = client.get("/products")
    assert r.status_code == 200
    titles = [p["title"] for p in r.json()["data"]["products"]]
    assert sorted(titles) == ["Cheap lamp", "Pricey sofa"]

    r = client.get("/products", params={"min_price": 1000, "sort_by": "price_low"})
    assert [p["title"] for p in r.json()["data"]["products"]] == ["Pricey sofa"]

    r = client.get("/products", params={"limit": 1, "sort_by": "price_high"})
    data = r.json()["data"]
    assert [p["title"] for p in data["products"]] == ["Pricey sofa"]
    assert data["pagination"] == {"page": 1, "limit": 1, "hasMore": True}


def test_search_requires_two_characters(client):
    r = client.get("/products/search/a")
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "query"


def test_search_matches_title_description_and_brand(client, make_user, make_product):
    seller = make_user()
    make_product(seller, title="Road bicycle", brand="Hercules")
    make_product(seller, title="Desk", description="Comes with a bicycle bell drawer")
    make_product(seller, title="Kettle", description="Electric kettle, barely used")

    r = client.get("/products/search/bicycle")
    assert r.status_code == 200
    assert sorted(p["title"] for p in r.json()["data"]["products"]) == ["Desk", "Road bicycle"]

    r = client.get("/products/search/hercules")
    assert [p["title"] for p in r.json()["data"]["products"]] == ["Road bicycle"]


def test_get_product_counts_views_and_returns_similar(
    client, make_user, make_product, headers, db_session
):
    seller = make_user()
    viewer = make_user()
    product = make_product(seller)
    make_product(seller, title="Another camera")

    first = client.get(f"/products/{product.id}")
    assert first.status_code == 200
    second = client.get(f"/products/{product.id}", headers=headers(viewer))
    detail = second.json()["data"]["product"]
    assert detail["views_count"] == 2
    assert detail["is_favorited"] is False
    assert [p["title"] for p in detail["similar_products"]] == ["Another camera"]


def test_pending_product_visible_only_to_owner_and_admin(
    client, make_user, make_product, admin_user, headers
):
    seller = make_user()
    stranger = make_user()
    product = make_product(seller, status=ProductStatus.PENDING)

    assert client.get(f"/products/{product.id}").status_code == 404
    assert client.get(f"/products/{product.id}", headers=headers(stranger)).status_code == 404
    assert client.get(f"/products/{product.id}", headers=headers(seller)).status_code == 200
    assert client.get(f"/products/{product.id}", headers=headers(admin_user)).status_code == 200


def test_update_requires_owner_or_admin(client, make_user, make_product, admin_user, headers):
    seller = make_user()
    other = make_user()
    product = make_product(seller)

    r = client.put(f"/products/{product.id}", json={"price": 999}, headers=headers(other))
    assert r.status_code == 403

    r = client.put(f"/products/{product.id}", json={"price": 999}, headers=headers(seller))
    assert r.status_code == 200
    assert r.json()["data"]["product"]["price"] == 999

    r = client.put(
        f"/products/{product.id}", json={"title": "Admin edit"}, headers=headers(admin_user)
    )
    assert r.status_code == 200
    assert r.json()["data"]["product"]["title"] == "Admin edit"


def test_update_validates_subset_of_fields(client, make_user, make_product, headers):
    seller = make_user()
    product = make_product(seller)
    r = client.put(
        f"/products/{product.id}",
        json={"description": "short", "pincode": "12"},
        headers=headers(seller),
    )
    assert r.status_code == 400
    assert {e["field"] for e in r.json()["errors"]} == {"description", "pincode"}


def test_update_with_new_images_makes_first_primary(client, make_user, make_product, headers):
    seller = make_user()
    product = make_product(seller, images=2)
    r = client.put(
        f"/products/{product.id}",
        data={"title": "Refreshed camera"},
        files=[_image("new.jpg")],
        headers=headers(seller),
    )
    assert r.status_code == 200, r.text
    images = r.json()["data"]["product"]["images"]
    assert len(images) == 3
    primaries = [img for img in images if img["is_primary"]]
    assert len(primaries) == 1
    assert primaries[0]["image_url"].startswith("https://cdn.test/products/")


def test_set_primary_image_leaves_exactly_one(client, make_user, make_product, headers):
    seller = make_user()
    product = make_product(seller, images=3)
    target = product.images[2].id

    r = client.put(
        f"/products/{product.id}/images/{target}/primary", headers=headers(seller)
    )
    assert r.status_code == 200
    images = r.json()["data"]["product"]["images"]
    assert [img["id"] for img in images if img["is_primary"]] == [target]


def test_deleting_primary_image_promotes_oldest(
    client, make_user, make_product, headers, storage
):
    seller = make_user()
    product = make_product(seller, images=3)
    primary, second, third = [img.id for img in product.images]

    r = client.delete(f"/products/{product.id}/images/{primary}", headers=headers(seller))
    assert r.status_code == 200
    images = r.json()["data"]["product"]["images"]
    assert [img["id"] for img in images] == [second, third]
    assert [img["id"] for img in images if img["is_primary"]] == [second]
    assert storage.deleted == ["products/seed-0"]


def test_delete_image_of_other_product_is_404(client, make_user, make_product, headers):
    seller = make_user()
    product = make_product(seller)
    other = make_product(seller)
    r = client.delete(
        f"/products/{product.id}/images/{other.images[0].id}", headers=headers(seller)
    )
    assert r.status_code == 404


def test_delete_product_cascades_and_keeps_purchases(
    client, make_user, make_product, headers, db_session, storage
):
    seller = make_user()
    buyer = make_user()
    product = make_product(seller, images=2)
    product_id = product.id
    db_session.add_all(
        [
            CartItem(user_id=buyer.id, product_id=product_id, quantity=2),
            Favorite(user_id=buyer.id, product_id=product_id),
            Purchase(
                buyer_id=buyer.id,
                seller_id=seller.id,
                product_id=product_id,
                product_title=product.title,
                price=product.price,
                quantity=1,
                payment_method=PaymentMethod.CASH,
                status=PurchaseStatus.COMPLETED,
            ),
        ]
    )
    db_session.commit()

    r = client.delete(f"/products/{product_id}", headers=headers(seller))
    assert r.status_code == 200, r.text

    db_session.expire_all()
    assert db_session.get(Product, product_id) is None
    assert db_session.query(ProductImage).filter_by(product_id=product_id).count() == 0
    assert db_session.query(CartItem).count() == 0
    assert db_session.query(Favorite).count() == 0
    purchase = db_session.query(Purchase).one()
    assert purchase.product_id is None
    assert purchase.product_title == "Vintage camera"
    assert sorted(storage.deleted) == ["products/seed-0", "products/seed-1"]


def test_delete_product_by_stranger_is_forbidden(client, make_user, make_product, headers):
    seller = make_user()
    stranger = make_user()
    product = make_product(seller)
    r = client.delete(f"/products/{product.id}", headers=headers(stranger))
    assert r.status_code == 403


def test_favorite_toggle_flips_and_counts(client, make_user, make_product, headers, db_session):
    seller = make_user()
    fan = make_user()
    product = make_product(seller)

    r = client.post(f"/products/{product.id}/favorite", headers=headers(fan))
    assert r.json()["data"] == {"is_favorited": True}
    db_session.expire_all()
    assert db_session.get(Product, product.id).favorites_count == 1

    detail = client.get(f"/products/{product.id}", headers=headers(fan)).json()
    assert detail["data"]["product"]["is_favorited"] is True

    r = client.post(f"/products/{product.id}/favorite", headers=headers(fan))
    assert r.json()["data"] == {"is_favorited": False}
    db_session.expire_all()
    assert db_session.get(Product, product.id).favorites_count == 0


def test_cannot_favorite_own_listing(client, make_user, make_product, headers):
    seller = make_user()
    product = make_product(seller)
    r = client.post(f"/products/{product.id}/favorite", headers=headers(seller))
    assert r.status_code == 409
    assert r.json()["success"] is False


def test_categories_with_approved_counts(client, make_user, make_product, category):
    seller = make_user()
    make_product(seller)
    make_product(seller, status=ProductStatus.PENDING)

    r = client.get("/products/categories/all")
    assert r.status_code == 200
    categories = r.json()["data"]["categories"]
    assert categories == [
        {
            "id": category.id,
            "name": "Electronics",
            "icon": "📱",
            "description": "Gadgets",
            "created_at": categories[0]["created_at"],
            "product_count": 1,
        }
    ]


def test_products_by_category_and_seller(client, make_user, make_product, category):
    seller = make_user()
    other = make_user()
    make_product(seller, title="Mine")
    make_product(other, title="Theirs")

    r = client.get(f"/products/category/{category.id}")
    assert r.json()["data"]["category"]["name"] == "Electronics"
    assert len(r.json()["data"]["products"]) == 2

    r = client.get(f"/products/user/{seller.id}")
    assert [p["title"] for p in r.json()["data"]["products"]] == ["Mine"]

    assert client.get("/products/category/999").status_code == 404
