import logging
from typing import Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ecofinds.config import settings
from ecofinds.exceptions import DomainConflict, NotFound
from ecofinds.models.cart import MAX_QUANTITY, CartItem
from ecofinds.models.product import Product, ProductStatus
from ecofinds.models.user import User

logger = logging.getLogger(__name__)


class CartService:
    """Cart operations. Every query is filtered by the caller's user id."""

    def __init__(self, db: Session):
        self.db = db

    def _merge(self, user_id: int, product_id: int, quantity: int) -> int:
        merged = CartItem.quantity + quantity
        result = self.db.execute(
            update(CartItem)
            .where(CartItem.user_id == user_id, CartItem.product_id == product_id)
            .values(quantity=case((merged > MAX_QUANTITY, MAX_QUANTITY), else_=merged))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def _quantity(self, user_id: int, product_id: int) -> int:
        return (
            self.db.execute(
                select(CartItem.quantity).where(
                    CartItem.user_id == user_id, CartItem.product_id == product_id
                )
            ).scalar_one_or_none()
            or 0
        )

    def add(self, user: User, product_id: int, quantity: int = 1) -> dict:
        product = self.db.get(Product, product_id)
        if not product:
            raise NotFound("Product not found")
        if product.seller_id == user.id:
            raise DomainConflict("You cannot add your own product to cart")
        if product.status != ProductStatus.APPROVED:
            raise DomainConflict("Product is not available for purchase")

        action = "updated"
        if self._merge(user.id, product_id, quantity) == 0:
            self.db.add(
                CartItem(
                    user_id=user.id,
                    product_id=product_id,
                    quantity=min(quantity, MAX_QUANTITY),
                )
            )
            action = "added"
            try:
                self.db.commit()
            except IntegrityError:
                # a concurrent request inserted the pair first
                self.db.rollback()
                self._merge(user.id, product_id, quantity)
                action = "updated"
                self.db.commit()
        else:
            self.db.commit()

        return {"action": action, "quantity": self._quantity(user.id, product_id)}

    def update_quantity(self, user: User, product_id: int, quantity: int) -> dict:
        result = self.db.execute(
            update(CartItem)
            .where(CartItem.user_id == user.id, CartItem.product_id == product_id)
            .values(quantity=quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise NotFound("Item not found in cart")
        self.db.commit()
        return {"product_id": product_id, "quantity": quantity}

    def remove(self, user: User, product_id: int) -> None:
        result = self.db.execute(
            delete(CartItem).where(
                CartItem.user_id == user.id, CartItem.product_id == product_id
            )
        )
        if result.rowcount == 0:
            self.db.rollback()
            raise NotFound("Item not found in cart")
        self.db.commit()

    def clear(self, user: User) -> int:
        result = self.db.execute(delete(CartItem).where(CartItem.user_id == user.id))
        self.db.commit()
        return result.rowcount

    def count(self, user: User) -> int:
        return self.db.execute(
            select(func.count(CartItem.id)).where(CartItem.user_id == user.id)
        ).scalar_one()

    def check(self, user: User, product_id: int) -> dict:
        quantity = self._quantity(user.id, product_id)
        return {"in_cart": quantity > 0, "quantity": quantity}

    def view(self, user: User) -> dict:
        items = (
            self.db.execute(
                select(CartItem)
                .join(Product, CartItem.product_id == Product.id)
                .where(
                    CartItem.user_id == user.id,
                    Product.status == ProductStatus.APPROVED,
                )
                .options(
                    selectinload(CartItem.product).selectinload(Product.images),
                    selectinload(CartItem.product).selectinload(Product.seller),
                )
                .order_by(CartItem.created_at.desc(), CartItem.id.desc())
            )
            .scalars()
            .all()
        )

        rows = []
        subtotal = 0.0
        for item in items:
            product = item.product
            line_total = float(product.price) * item.quantity
            subtotal += line_total
            rows.append(
                {
                    "id": item.id,
                    "product_id": product.id,
                    "quantity": item.quantity,
                    "title": product.title,
                    "price": float(product.price),
                    "condition": product.condition.value,
                    "status": product.status.value,
                    "primary_image": product.primary_image,
                    "seller_id": product.seller_id,
                    "seller_name": product.seller.name,
                    "line_total": line_total,
                }
            )

        service_fee = float(settings.SERVICE_FEE) if rows else 0.0
        return {
            "items": rows,
            "summary": {
                "subtotal": subtotal,
                "service_fee": service_fee,
                "total": subtotal + service_fee,
                "item_count": len(rows),
            },
        }

    def remove_product_for(self, user_id: int, product_id: int) -> Optional[int]:
        """Stage removal of one cart row inside the caller's transaction."""
        result = self.db.execute(
            delete(CartItem).where(
                CartItem.user_id == user_id, CartItem.product_id == product_id
            )
        )
        return result.rowcount
