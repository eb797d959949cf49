from fastapi import APIRouter, status

from ecofinds.dependencies import CurrentUser, db_dependency
from ecofinds.schemas.cart import CartAdd, CartUpdate, CartView
from ecofinds.schemas.common import envelope
from ecofinds.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", status_code=status.HTTP_200_OK)
def view_cart(db: db_dependency, user: CurrentUser):
    return envelope(CartView(**CartService(db).view(user)))


@router.post("/add", status_code=status.HTTP_200_OK)
def add_to_cart(body: CartAdd, db: db_dependency, user: CurrentUser):
    result = CartService(db).add(user, body.product_id, body.quantity)
    message = "Item added to cart" if result["action"] == "added" else "Cart updated"
    return envelope(result, message=message)


@router.put("/update/{product_id}", status_code=status.HTTP_200_OK)
def update_cart_item(product_id: int, body: CartUpdate, db: db_dependency, user: CurrentUser):
    result = CartService(db).update_quantity(user, product_id, body.quantity)
    return envelope(result, message="Cart item updated")


@router.delete("/remove/{product_id}", status_code=status.HTTP_200_OK)
def remove_from_cart(product_id: int, db: db_dependency, user: CurrentUser):
    CartService(db).remove(user, product_id)
    return envelope(message="Item removed from cart")


@router.delete("/clear", status_code=status.HTTP_200_OK)
def clear_cart(db: db_dependency, user: CurrentUser):
    removed = CartService(db).clear(user)
    return envelope({"removed": removed}, message="Cart cleared")


@router.get("/count", status_code=status.HTTP_200_OK)
def cart_count(db: db_dependency, user: CurrentUser):
    return envelope({"count": CartService(db).count(user)})


@router.get("/check/{product_id}", status_code=status.HTTP_200_OK)
def check_cart(product_id: int, db: db_dependency, user: CurrentUser):
    return envelope(CartService(db).check(user, product_id))
